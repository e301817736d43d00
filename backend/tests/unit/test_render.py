"""
光栅化与PDF写出单元测试
"""

import base64
import io

import pytest
from pypdf import PdfReader

from snapshot_export.interfaces import DocumentWriteError, RenderFailureError
from snapshot_export.models import Element, Rect, RenderOptions
from snapshot_export.render import PillowRasterizer, ReportLabDocumentWriter

WHITE = (255, 255, 255)
RED = (255, 0, 0)


def _el(tag="div", rect=(0, 0, 0, 0), computed=None, children=None, **kwargs) -> Element:
    x, y, w, h = rect
    return Element(
        tag=tag,
        rect=Rect(x=x, y=y, width=w, height=h),
        computed=computed or {},
        children=children or [],
        **kwargs,
    )


def _options(width=100, height=40, scale=1.0) -> RenderOptions:
    return RenderOptions(scale=scale, background_color="#ffffff", width=width, height=height)


@pytest.fixture
def rasterizer(spec) -> PillowRasterizer:
    return PillowRasterizer(spec)


class TestPillowRasterizer:
    """光栅化器测试"""

    def test_render_dimensions(self, rasterizer):
        """测试位图尺寸 = 尺寸 × 缩放"""
        root = _el(rect=(0, 0, 50, 30))
        bitmap = rasterizer.render(root, _options(50, 30, scale=2))
        assert (bitmap.width, bitmap.height) == (100, 60)

    def test_background_color(self, rasterizer):
        root = _el(rect=(10, 10, 50, 30), computed={"background-color": "rgb(255, 0, 0)"})
        bitmap = rasterizer.render(root, _options(50, 30))
        assert bitmap.image.getpixel((5, 5)) == RED

    def test_nonstandard_background_resolved(self, rasterizer):
        root = _el(rect=(0, 0, 50, 30), computed={"background-color": "lab(0 0 0)"})
        bitmap = rasterizer.render(root, _options(50, 30))
        assert bitmap.image.getpixel((5, 5)) == (0, 0, 0)

    def test_hook_sees_duplicate(self, rasterizer):
        """测试钩子修改只作用于渲染副本"""
        root = _el(rect=(0, 0, 50, 30))
        seen = []

        def hook(document, duplicate):
            seen.append(duplicate)
            assert document.is_attached(duplicate)
            duplicate.style.set_property("background-color", "rgb(0, 0, 255)")

        bitmap = rasterizer.render(root, _options(50, 30), on_clone=hook)
        assert len(seen) == 1
        assert seen[0] is not root
        assert root.style.get_property_value("background-color") == ""
        assert bitmap.image.getpixel((5, 5)) == (0, 0, 255)

    def test_hook_failure_wrapped(self, rasterizer):
        def hook(document, duplicate):
            raise ValueError("boom")

        with pytest.raises(RenderFailureError):
            rasterizer.render(_el(rect=(0, 0, 50, 30)), _options(50, 30), on_clone=hook)

    def test_zero_size_fails(self, rasterizer):
        with pytest.raises(RenderFailureError):
            rasterizer.render(_el(rect=(0, 0, 50, 30)), _options(0, 30))

    def test_clipped_child_not_painted(self, rasterizer):
        """测试裁剪容器外的内容不绘制"""
        child = _el(rect=(60, 0, 20, 20), computed={"position": "absolute", "background-color": "rgb(255, 0, 0)"})
        container = _el(rect=(0, 0, 50, 40), computed={"overflow": "hidden"}, children=[child])
        root = _el(rect=(0, 0, 100, 40), children=[container])

        assert rasterizer.render(root, _options()).image.getpixel((65, 5)) == WHITE

        container.style.set_property("overflow", "visible")
        assert rasterizer.render(root, _options()).image.getpixel((65, 5)) == RED

    def test_hidden_nodes_not_painted(self, rasterizer):
        red = {"background-color": "rgb(255, 0, 0)"}
        root = _el(rect=(0, 0, 100, 40), children=[
            _el(rect=(0, 0, 20, 20), computed={**red, "display": "none"}),
            _el(rect=(30, 0, 20, 20), computed={**red, "visibility": "hidden"}),
            _el(rect=(60, 0, 20, 20), computed={**red, "opacity": "0"}),
        ])
        image = rasterizer.render(root, _options()).image
        for x in (10, 40, 70):
            assert image.getpixel((x, 10)) == WHITE

    def test_z_index_order(self, rasterizer):
        top = _el(rect=(0, 0, 20, 20), computed={"background-color": "rgb(0, 0, 255)", "z-index": "2"})
        bottom = _el(rect=(0, 0, 20, 20), computed={"background-color": "rgb(255, 0, 0)", "z-index": "1"})
        root = _el(rect=(0, 0, 100, 40), children=[top, bottom])
        assert rasterizer.render(root, _options()).image.getpixel((10, 10)) == (0, 0, 255)

    def test_border(self, rasterizer):
        root = _el(rect=(0, 0, 100, 40), computed={
            "border-top-style": "solid",
            "border-top-width": "4px",
            "border-top-color": "rgb(255, 0, 0)",
        })
        image = rasterizer.render(root, _options()).image
        assert image.getpixel((50, 1)) == RED
        assert image.getpixel((50, 10)) == WHITE

    def test_data_image_painted(self, rasterizer, png_bytes):
        src = "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
        root = _el(rect=(0, 0, 100, 40), children=[_el("img", rect=(0, 0, 20, 20), attrs={"src": src})])
        assert rasterizer.render(root, _options()).image.getpixel((10, 10)) == (0, 255, 0)

    def test_external_image_skipped(self, rasterizer):
        root = _el(rect=(0, 0, 100, 40), children=[
            _el("img", rect=(0, 0, 20, 20), attrs={"src": "http://example.com/a.png"}),
        ])
        assert rasterizer.render(root, _options()).image.getpixel((10, 10)) == WHITE

    def test_text_painted(self, rasterizer):
        root = _el(rect=(0, 0, 100, 40), children=[
            _el("p", rect=(0, 0, 100, 40), text="HELLO", computed={"color": "rgb(0, 0, 0)", "font-size": "24px"}),
        ])
        image = rasterizer.render(root, _options()).image
        assert image.getextrema() != ((255, 255), (255, 255), (255, 255))


class TestReportLabDocumentWriter:
    """PDF写出测试"""

    def _jpeg(self) -> bytes:
        from PIL import Image

        buffer = io.BytesIO()
        Image.new("RGB", (20, 30), "red").save(buffer, format="JPEG")
        return buffer.getvalue()

    def test_save_multi_page(self, temp_dir):
        """测试多页写出"""
        document = ReportLabDocumentWriter().create_document("portrait", "in", "a4")
        document.add_image(self._jpeg(), "JPEG", 0.7, 0.3, 6.87, 11.09)
        document.add_page()
        document.add_image(self._jpeg(), "JPEG", 0.7, 0.3, 6.87, 5.0)
        path = temp_dir / "out" / "report.pdf"
        document.save(str(path))

        reader = PdfReader(str(path))
        assert len(reader.pages) == 2
        assert float(reader.pages[0].mediabox.width) == pytest.approx(595.27, abs=0.1)

    def test_landscape(self):
        document = ReportLabDocumentWriter().create_document("landscape", "mm", "a4")
        assert document.page_size[0] > document.page_size[1]

    def test_unsupported_format(self):
        with pytest.raises(DocumentWriteError):
            ReportLabDocumentWriter().create_document("portrait", "in", "b7")

    def test_unsupported_unit(self):
        with pytest.raises(DocumentWriteError):
            ReportLabDocumentWriter().create_document("portrait", "furlong", "a4")

    def test_invalid_image_data(self, temp_dir):
        document = ReportLabDocumentWriter().create_document("portrait", "in", "a4")
        document.add_image(b"not an image", "JPEG", 0, 0, 1, 1)
        with pytest.raises(DocumentWriteError):
            document.save(str(temp_dir / "bad.pdf"))

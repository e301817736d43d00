"""
克隆与内容过滤单元测试
"""

import pytest

from snapshot_export.config.runtime_config import ExportConfig
from snapshot_export.dom import SnapshotLayoutEngine
from snapshot_export.interfaces import ContentNotFoundError
from snapshot_export.models import Element, SnapshotDocument
from snapshot_export.pipeline import ContentFilter, SnapshotCloner

MARKERS = ["Download PDF", "Generating PDF", "Loading"]


@pytest.fixture
def cloner(engine: SnapshotLayoutEngine) -> SnapshotCloner:
    return SnapshotCloner(ExportConfig(), engine)


class TestSnapshotCloner:
    """快照克隆器测试"""

    def test_locate_missing_root(self, cloner, sample_document: SnapshotDocument):
        """测试根节点缺失时中止且不产生克隆"""
        before = len(sample_document.body.children)
        with pytest.raises(ContentNotFoundError):
            cloner.locate(sample_document, "missing-root")
        assert len(sample_document.body.children) == before

    def test_clone_decoration(self, cloner, sample_document: SnapshotDocument, engine):
        """测试克隆根修饰"""
        source = cloner.locate(sample_document)
        clone = cloner.clone(sample_document, source)
        style = clone.style

        assert clone.id == "pdf-content-clone"
        assert clone.source is source
        assert clone.parent is sample_document.body
        assert style.get_property_value("position") == "fixed"
        assert style.get_property_value("left") == "100px"
        assert style.get_property_value("top") == "50px"
        assert style.get_property_value("width") == "800px"
        assert style.get_property_value("height") == "auto"
        assert style.get_property_value("min-height") == "600px"
        assert style.get_property_value("overflow") == "visible"
        assert style.get_property_value("background-color") == "rgb(255, 255, 255)"
        assert style.get_property_value("z-index") == "-9999"
        assert style.get_property_value("pointer-events") == "none"
        assert engine.bounding_rect(clone) == engine.bounding_rect(source)

    def test_clone_uses_full_scroll_extent(self, cloner, sample_document: SnapshotDocument):
        source = cloner.locate(sample_document)
        source.scroll_height = 1500
        clone = cloner.clone(sample_document, source)
        assert clone.style.get_property_value("min-height") == "1500px"

    def test_fallback_background(self, cloner, sample_document: SnapshotDocument):
        source = cloner.locate(sample_document)
        del source.computed["background-color"]
        clone = cloner.clone(sample_document, source)
        assert clone.style.get_property_value("background-color") == "#8c52ff"

    def test_source_untouched(self, cloner, sample_document: SnapshotDocument):
        source = cloner.locate(sample_document)
        cloner.clone(sample_document, source)
        assert len(source.style) == 0
        assert source.id == "pdf-content"

    def test_cleanup_removes_clone(self, cloner, sample_document: SnapshotDocument):
        """测试清理摘除（幂等）"""
        clone = cloner.clone(sample_document, cloner.locate(sample_document))
        assert cloner.cleanup(sample_document, clone) == 1
        assert sample_document.get_element_by_id("pdf-content-clone") is None
        assert cloner.cleanup(sample_document, clone) == 0

    def test_cleanup_finds_leftovers(self, cloner, sample_document: SnapshotDocument):
        cloner.clone(sample_document, cloner.locate(sample_document))
        cloner.clone(sample_document, cloner.locate(sample_document))
        assert cloner.cleanup(sample_document) == 2
        assert sample_document.get_element_by_id("pdf-content-clone") is None


class TestContentFilter:
    """内容过滤测试"""

    def test_removes_control_wrapper_and_styles(self, sample_document: SnapshotDocument):
        root = sample_document.get_element_by_id("pdf-content").clone()
        result = ContentFilter(MARKERS).filter(root)

        assert result.removed_controls == 1
        assert result.removed_styles == 1
        assert root.find_all("button") == []
        assert root.find_all("style") == []
        assert not any("actions" in el.class_list for el in root.walk())
        assert len(root.find_all("h1", "p", "img")) == 4

    def test_wrapper_with_content_keeps_content(self):
        """测试包装节点内有报告内容时只移除按钮"""
        button = Element(tag="button", text="Generating PDF...")
        note = Element(tag="span", text="数据截至 12 月")
        wrapper = Element(tag="div", children=[button, note])
        root = Element(tag="div", children=[wrapper])

        ContentFilter(MARKERS).filter(root)
        assert wrapper.parent is root
        assert wrapper.children == [note]

    def test_button_directly_under_root(self):
        button = Element(tag="button", children=[Element(tag="span", text="Loading")])
        root = Element(tag="div", children=[Element(tag="p", text="内容"), button])

        assert ContentFilter(MARKERS).filter(root).removed_controls == 1
        assert [el.tag for el in root.children] == ["p"]

    def test_ordinary_buttons_kept(self):
        root = Element(tag="div", children=[Element(tag="button", text="展开详情")])
        assert ContentFilter(MARKERS).filter(root).removed_controls == 0
        assert len(root.children) == 1

"""
样式解析与归一化单元测试
"""

import pytest

from snapshot_export.config import StyleSpec
from snapshot_export.config.runtime_config import ExportConfig
from snapshot_export.dom import SnapshotLayoutEngine
from snapshot_export.models import Element, SnapshotDocument
from snapshot_export.pipeline import ContentFilter, SnapshotCloner
from snapshot_export.style import CssColorProbe, StyleNormalizer, resolve_style


def _find(root: Element, class_name: str) -> Element:
    return root.query_all(lambda el: class_name in el.class_list)[0]


@pytest.fixture
def clone(sample_document: SnapshotDocument, engine: SnapshotLayoutEngine) -> Element:
    """已挂载并过滤的示例克隆"""
    cloner = SnapshotCloner(ExportConfig(), engine)
    root = cloner.clone(sample_document, cloner.locate(sample_document))
    ContentFilter(ExportConfig().control_markers).filter(root)
    return root


@pytest.fixture
def normalizer(engine: SnapshotLayoutEngine, spec: StyleSpec) -> StyleNormalizer:
    return StyleNormalizer(engine, CssColorProbe(), spec)


class TestResolveStyle:
    """单节点样式解析测试"""

    def _resolve(self, engine, spec, computed, probe=None, ancestor_color=None):
        el = Element(tag="div", computed=computed)
        return resolve_style(el, engine, spec, probe or CssColorProbe(), ancestor_color)

    def test_color_always_present(self, engine, spec):
        """测试颜色总是写出"""
        record = self._resolve(engine, spec, {})
        assert record.get("color") == "rgb(0, 0, 0)"

    def test_transparent_color_uses_ancestor(self, engine, spec):
        record = self._resolve(engine, spec, {"color": "transparent"}, ancestor_color="rgb(1, 2, 3)")
        assert record.get("color") == "rgb(1, 2, 3)"

    @pytest.mark.parametrize("color", [
        "rgba(255, 255, 255, 0)",
        "hsla(0, 0%, 0%, 0)",
        "rgba(12, 34, 56, 0%)",
        "rgb(255 255 255 / 0)",
    ])
    def test_zero_alpha_color_uses_ancestor(self, engine, spec, color):
        """测试 alpha 为 0 的文本颜色视为透明"""
        record = self._resolve(engine, spec, {"color": color}, ancestor_color="rgb(10, 20, 30)")
        assert record.get("color") == "rgb(10, 20, 30)"

    def test_zero_alpha_without_ancestor_black(self, engine, spec):
        record = self._resolve(engine, spec, {"color": "rgba(255, 255, 255, 0.0)"})
        assert record.get("color") == "rgb(0, 0, 0)"

    def test_translucent_color_kept(self, engine, spec):
        record = self._resolve(engine, spec, {"color": "rgba(255, 0, 0, 0.5)"}, ancestor_color="rgb(10, 20, 30)")
        assert record.get("color") == "rgba(255, 0, 0, 0.5)"

    def test_oklch_probe_failure_black(self, engine, spec, failing_probe):
        """测试 oklch + 探针失败 → #000000"""
        record = self._resolve(engine, spec, {"color": "oklch(60% 0.1 200)"}, probe=failing_probe)
        assert record.get("color") == "#000000"

    def test_oklch_converted_to_hex(self, engine, spec):
        color = self._resolve(engine, spec, {"color": "oklch(60% 0.1 200)"}).get("color")
        assert color.startswith("#")
        assert color != "#000000"

    def test_transparent_background_omitted(self, engine, spec):
        """测试透明背景省略，透明边框颜色保留"""
        record = self._resolve(engine, spec, {
            "background-color": "rgba(0, 0, 0, 0)",
            "border-top-color": "transparent",
        })
        assert "background-color" not in record
        assert record.get("border-top-color") == "transparent"

    def test_placeholders_skipped(self, engine, spec):
        record = self._resolve(engine, spec, {"width": "initial", "height": "", "display": "block"})
        assert "width" not in record
        assert "height" not in record
        assert record.get("display") == "block"

    def test_nonstandard_property_value(self, engine, spec, failing_probe):
        record = self._resolve(engine, spec, {"border-top-color": "lab(50 20 30)"}, probe=failing_probe)
        assert record.get("border-top-color") == "#000000"

    def test_border_shorthand_rewrite(self, engine, spec):
        """测试边框简写颜色分量改写"""
        record = self._resolve(engine, spec, {
            "border": "1px solid lab(0 0 0)",
            "border-width": "1px",
            "border-style": "solid",
            "border-color": "lab(0 0 0)",
        })
        assert record.get("border") == "1px solid #000000"
        assert record.get("border-color") == "#000000"

    def test_background_shorthand_rewrite(self, engine, spec):
        record = self._resolve(engine, spec, {
            "background": "oklch(0 0 0) none repeat",
            "background-color": "oklch(0 0 0)",
        })
        assert record.get("background-color") == "#000000"
        assert record.get("background") == "#000000 none repeat"

    def test_declaration_order(self, engine, spec):
        record = self._resolve(engine, spec, {"opacity": "1", "display": "block", "font-size": "12px"})
        indexes = [spec.properties.index(name) for name in record.names]
        assert indexes == sorted(indexes)


class TestStyleNormalizer:
    """克隆树归一化测试"""

    def test_relieve_max_width(self, normalizer, clone):
        """测试 max-width 释放"""
        assert normalizer.relieve_constraints(clone) == 1
        paragraph = clone.find_all("p")[0]
        assert paragraph.style.get_property_value("max-width") == "none"
        assert paragraph.style.get_property_priority("max-width") == "important"

    @pytest.mark.parametrize("value", ["100%", "60rem"])
    def test_relieve_non_px_max_width(self, normalizer, clone, value):
        """测试非像素单位按开头数字比较"""
        heading = clone.find_all("h1")[0]
        heading.computed["max-width"] = value
        assert normalizer.relieve_constraints(clone) == 2
        assert heading.style.get_property_value("max-width") == "none"

    def test_relieve_keeps_wide_max_width(self, normalizer, clone):
        heading = clone.find_all("h1")[0]
        heading.computed["max-width"] = "2000px"
        assert normalizer.relieve_constraints(clone) == 1
        assert heading.style.get_property_value("max-width") == ""

    def test_inline_styles_every_node(self, normalizer, clone):
        records = normalizer.inline_styles(clone)
        nodes = list(clone.walk())
        assert len(records) == len(nodes)
        for el in nodes:
            assert el.style.get_property_priority("color") == "important"

    def test_color_totality(self, normalizer, clone, spec):
        """测试文本节点颜色非透明"""
        normalizer.inline_styles(clone)
        normalizer.ensure_text_colors(clone)
        for el in clone.walk():
            if el.tag not in spec.text_tags:
                continue
            color = el.style.get_property_value("color")
            assert color
            assert not spec.is_transparent(color)
            assert not spec.uses_nonstandard_color(color)

    def test_transparent_text_inherits_parent(self, normalizer, clone):
        normalizer.inline_styles(clone)
        paragraph = clone.find_all("p")[0]
        assert paragraph.style.get_property_value("color") == "rgb(20, 20, 20)"

    def test_zero_alpha_text_inherits_parent(self, normalizer, clone):
        """测试复核阶段 alpha 为 0 的颜色回退到父节点颜色"""
        paragraph = clone.find_all("p")[0]
        paragraph.style.set_property("color", "rgba(255, 255, 255, 0)")
        normalizer.ensure_text_colors(clone)
        assert paragraph.style.get_property_value("color") == "rgb(20, 20, 20)"

    def test_oklch_probe_failure_black(self, engine, spec, failing_probe, clone):
        """测试探针失败时标题颜色为 #000000，流程不中断"""
        StyleNormalizer(engine, failing_probe, spec).inline_styles(clone)
        heading = clone.find_all("h1")[0]
        assert heading.style.get_property_value("color") == "#000000"

    def test_ensure_text_colors_without_inline(self, normalizer, clone):
        assert normalizer.ensure_text_colors(clone) > 0
        heading = clone.find_all("h1")[0]
        assert heading.style.get_property_value("color").startswith("#")

    def test_flatten_absolute_transform(self, normalizer, clone, engine):
        """测试变换展平"""
        badge = _find(clone, "badge")
        before = engine.bounding_rect(badge)

        assert normalizer.flatten_transforms(clone) == 1
        assert badge.style.get_property_value("left") == "290px"
        assert badge.style.get_property_value("top") == "-10px"
        assert badge.style.get_property_value("transform") == "none"
        assert badge.style.get_property_value("margin-top") == "0px"
        assert engine.bounding_rect(badge) == before

    def test_widen_clipping_container(self, normalizer, clone, engine):
        """测试溢出放宽"""
        card = _find(clone, "card")
        assert engine.clips_overflow(card)

        assert normalizer.widen_overflow(clone) == 1
        assert not engine.clips_overflow(card)
        assert clone.style.get_property_value("overflow") == "visible"

    def test_widen_skips_container_without_escaping_child(self, normalizer, clone, engine):
        card = _find(clone, "card")
        _find(clone, "badge").remove()

        assert normalizer.widen_overflow(clone) == 0
        assert engine.clips_overflow(card)
        assert clone.style.get_property_value("overflow-y") == "visible"

    def test_normalize(self, normalizer, clone, engine):
        """测试完整归一化统计与尺寸"""
        result = normalizer.normalize(clone)
        assert result.relieved == 1
        assert result.flattened == 1
        assert result.widened == 1
        assert result.inlined == len(list(clone.walk()))

        card = _find(clone, "card")
        assert card.style.get_property_value("border-top-color").startswith("#")
        assert engine.scroll_size(clone) == (800, 600)

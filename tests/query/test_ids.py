import dataclasses

import polars as pl
import pytest

from popcatalog.core.enums import MetricIdKind
from popcatalog.core.query.ids import MetricId


class TestMetricId:
    def test_kind_selects_column(self):
        assert MetricId.hxl("#population+adults").column == "hxl_tag"
        assert MetricId.from_id("be-1").column == "id"
        assert MetricId.common_name("Adults").column == "human_readable_name"

    def test_kind_is_coerced_from_string(self):
        assert MetricId("hxl", "#x").kind is MetricIdKind.HXL

    def test_value_must_be_text(self):
        with pytest.raises(TypeError):
            MetricId(MetricIdKind.ID, 12)  # type: ignore[arg-type]

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            MetricId("geometry", "x")

    def test_frozen_and_hashable(self):
        mid = MetricId.from_id("be-1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            mid.value = "be-2"  # type: ignore[misc]
        assert {mid, MetricId.from_id("be-1")} == {mid}

    def test_with_value_keeps_kind(self):
        mid = MetricId.common_name("Child.*").with_value("Children aged 5 to 17")
        assert mid == MetricId.common_name("Children aged 5 to 17")

    def test_str(self):
        assert str(MetricId.hxl("#population+ind")) == "hxl:#population+ind"


class TestParse:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("hxl:#population+adults", MetricId.hxl("#population+adults")),
            ("id:be-1", MetricId.from_id("be-1")),
            ("name:Adults", MetricId.common_name("Adults")),
            ("common_name:Adults", MetricId.common_name("Adults")),
            ("HXL:#pop", MetricId.hxl("#pop")),
            ("be-1", MetricId.from_id("be-1")),
            ("urn:abc", MetricId.from_id("urn:abc")),
        ],
    )
    def test_parse(self, text, expected):
        assert MetricId.parse(text) == expected

    def test_value_may_contain_colon(self):
        assert MetricId.parse("name:Ratio: adults to children").value == "Ratio: adults to children"


class TestExpressions:
    def test_exact_expression_is_equality(self):
        df = pl.DataFrame({"hxl_tag": ["#population+adults", "#population+adultsx"]})
        out = df.filter(MetricId.hxl("#population+adults").to_expr())
        assert out.height == 1

    def test_fuzzy_expression_is_regex_containment(self):
        df = pl.DataFrame({"human_readable_name": ["Adults", "Young adults", "Children"]})
        out = df.filter(MetricId.common_name("dults").to_fuzzy_expr())
        assert out["human_readable_name"].to_list() == ["Adults", "Young adults"]

    def test_fuzzy_expression_case_insensitive(self):
        df = pl.DataFrame({"human_readable_name": ["Adults", "Children"]})
        out = df.filter(MetricId.common_name("adults").to_fuzzy_expr(case_sensitive=False))
        assert out["human_readable_name"].to_list() == ["Adults"]

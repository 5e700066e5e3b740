"""
Unit Tests - Report Drill-down
"""
import pytest
from pydantic import ValidationError

from attribution_engine.reporting.drilldown import (
    ReportQuery,
    build_key_prefix,
    build_report,
    filter_crm_for_marketing_row,
    group_keys_by_depth,
    parse_key_to_parent_filters,
    scope_rows,
)
from attribution_engine.reporting.tree import build_marketing_tree
from tests.factories import marketing_row, subscription


@pytest.fixture
def country_product_rows():
    return [
        marketing_row(classified_country="DK", classified_product="sleep", clicks=5),
        marketing_row(classified_country="DK", classified_product="joints", clicks=7),
        marketing_row(classified_country="SE", classified_product="sleep", clicks=1),
    ]


class TestReportQuery:
    """Tests for ReportQuery validation"""

    def test_defaults(self):
        query = ReportQuery(dimensions=["network"])
        assert query.depth == 0
        assert query.parent_filters == {}

    @pytest.mark.parametrize("depth", [-1, 2, 5])
    def test_depth_out_of_range(self, depth):
        """Depth must lie in [0, len(dimensions))"""
        with pytest.raises(ValidationError):
            ReportQuery(dimensions=["network", "campaign"], depth=depth)

    def test_unknown_dimension_accepted(self):
        """Unknown dimensions are not a validation error"""
        query = ReportQuery(dimensions=["network", "bogus"])
        assert query.level_dimensions == ["network", "bogus"]

    def test_empty_dimensions_accepted(self):
        assert ReportQuery(dimensions=[]).level_dimensions == []

    def test_depth_beyond_empty_dimensions(self):
        with pytest.raises(ValidationError):
            ReportQuery(dimensions=[], depth=1)

    def test_bad_sort_direction(self):
        with pytest.raises(ValidationError):
            ReportQuery(dimensions=["network"], sort_direction="sideways")


class TestKeyPrefix:
    """Tests for build_key_prefix"""

    def test_follows_dimension_order(self):
        prefix = build_key_prefix(
            ["network", "campaign", "ad"], {"campaign": "summer", "network": "google"}
        )
        assert prefix == "google::summer"

    def test_outside_filters_first(self):
        """Filters on dimensions outside the report lead the key"""
        prefix = build_key_prefix(["product"], {"country": "DK"})
        assert prefix == "DK"

    def test_no_filters(self):
        assert build_key_prefix(["network"], {}) == ""


class TestBuildReport:
    """Tests for build_report"""

    def test_drill_keys_match_full_tree(self, sample_marketing_rows):
        """A drilled level carries the keys and metrics of the full tree's children"""
        dims = ["network", "campaign"]
        full = build_marketing_tree(sample_marketing_rows, dims)
        google = next(r for r in full if r.key == "Google Ads")

        drilled = build_report(
            sample_marketing_rows,
            ReportQuery(dimensions=dims, depth=1, parent_filters={"network": "Google Ads"}),
        )

        assert drilled == google.children

    def test_unknown_dimension_yields_empty_tree(self, sample_marketing_rows):
        assert build_report(sample_marketing_rows, ReportQuery(dimensions=["network", "bogus"])) == []

    def test_country_then_product_key_stability(self, country_product_rows):
        """Drilling product under country DK yields 'DK::<product>' keys"""
        full = build_marketing_tree(country_product_rows, ["country", "product"])
        dk = next(r for r in full if r.key == "DK")

        drilled = build_report(
            country_product_rows,
            ReportQuery(dimensions=["product"], parent_filters={"country": "DK"}),
        )

        assert [r.key for r in drilled] == ["DK::joints", "DK::sleep"]
        assert [r.key for r in drilled] == [c.key for c in dk.children]

    def test_scope_rows(self, country_product_rows):
        assert len(scope_rows(country_product_rows, {"country": "DK"})) == 2
        assert len(scope_rows(country_product_rows, {})) == 3
        assert scope_rows(country_product_rows, {"country": "NO"}) == []


class TestKeyHelpers:
    """Tests for key parsing helpers"""

    def test_parse_key_to_parent_filters(self):
        filters = parse_key_to_parent_filters("google::summer", ["network", "campaign", "ad"])
        assert filters == {"network": "google", "campaign": "summer"}

    def test_parse_round_trips_tree_keys(self, sample_marketing_rows):
        dims = ["network", "campaign", "ad"]
        tree = build_marketing_tree(sample_marketing_rows, dims)
        child = tree[0].children[0]

        filters = parse_key_to_parent_filters(child.key, dims)
        drilled = build_report(
            sample_marketing_rows,
            ReportQuery(dimensions=dims, depth=2, parent_filters=filters),
        )
        assert drilled == child.children

    def test_group_keys_by_depth(self):
        grouped = group_keys_by_depth(["a", "a::b", "c", "a::b::d"])
        assert grouped == {0: ["a", "c"], 1: ["a::b"], 2: ["a::b::d"]}


class TestFilterCrmForMarketingRow:
    """Tests for CRM detail filtering"""

    def test_resolves_names_to_tracking_ids(self, sample_marketing_rows):
        """A campaign row's sales are found through its campaign id"""
        sales = [
            subscription(tracking_id_4="c1"),
            subscription(tracking_id_4="c2"),
            subscription(tracking_id_4="c1"),
        ]
        found = filter_crm_for_marketing_row(
            sales, {"campaign": "summer sale"}, sample_marketing_rows, ["campaign"],
        )
        assert found == [sales[0], sales[2]]

    def test_no_matching_rows(self, sample_marketing_rows):
        found = filter_crm_for_marketing_row(
            [subscription(tracking_id_4="c1")], {"campaign": "nope"},
            sample_marketing_rows, ["campaign"],
        )
        assert found == []

    def test_no_tracking_dimensions_returns_all(self, sample_marketing_rows):
        sales = [subscription(), subscription()]
        found = filter_crm_for_marketing_row(
            sales, {"classifiedProduct": "joint-care"}, sample_marketing_rows, ["classifiedProduct"],
        )
        assert found == sales

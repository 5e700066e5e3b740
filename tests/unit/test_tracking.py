"""
Unit Tests - On-Page Tracking Matcher
"""
import pytest

from attribution_engine.matching.tracking import (
    match_by_tracking_key,
    match_by_visitor,
    merge_attribution,
)
from attribution_engine.records.on_page import (
    AttributedCounts,
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)


def crm(trials, approved, **tracking):
    tracking.setdefault("source", "google")
    tracking.setdefault("campaign_id", "c1")
    tracking.setdefault("adset_id", "a1")
    tracking.setdefault("ad_id", "x1")
    return CrmTrackingRow(trials=trials, approved=approved, **tracking)


def traffic(dimension_value, visitors, **tracking):
    tracking.setdefault("source", "google")
    tracking.setdefault("campaign_id", "c1")
    tracking.setdefault("adset_id", "a1")
    tracking.setdefault("ad_id", "x1")
    return TrafficTrackingRow(dimension_value=dimension_value, unique_visitors=visitors, **tracking)


class TestMatchByTrackingKey:
    """Tests for tracking-tuple matching"""

    def test_single_row_gets_everything(self):
        """Single-row combo: proportion 1.0"""
        result = match_by_tracking_key([crm(10, 4)], [traffic("/landing", 100)])

        assert result["/landing"].trials == pytest.approx(10)
        assert result["/landing"].approved == pytest.approx(4)

    def test_proportional_split(self):
        """30/70 weights split 10 trials into 3 and 7"""
        result = match_by_tracking_key(
            [crm(10, 0)],
            [traffic("/a", 30), traffic("/b", 70)],
        )
        assert result["/a"].trials == pytest.approx(3)
        assert result["/b"].trials == pytest.approx(7)

    def test_conservation_per_key(self):
        """Attributed trials over a key's rows equal the key's CRM trials"""
        crm_rows = [crm(7, 3), crm(5, 1, ad_id="x2")]
        traffic_rows = [
            traffic("/a", 13), traffic("/b", 29), traffic("/c", 1),
            traffic("/a", 4, ad_id="x2"), traffic("/d", 9, ad_id="x2"),
        ]
        result = match_by_tracking_key(crm_rows, traffic_rows)

        total = sum(c.trials for c in result.values())
        assert total == pytest.approx(12, abs=1e-6)

    def test_zero_weight_combo(self):
        """comboTotal of 0 yields proportion 0, not an error"""
        result = match_by_tracking_key([crm(10, 4)], [traffic("/a", 0)])
        assert result["/a"].trials == 0

    def test_dimension_keys_lower_cased(self):
        """Result keys are lower-cased; missing values become 'unknown'"""
        result = match_by_tracking_key([crm(2, 0)], [traffic("Mobile", 1), traffic(None, 1)])
        assert set(result) == {"mobile", "unknown"}

    def test_excluded_field_widens_key(self):
        """Excluding the ad lets a CRM row match traffic on other ads"""
        crm_rows = [crm(4, 0, ad_id="x1")]
        traffic_rows = [traffic("/a", 1, ad_id="x2")]

        assert match_by_tracking_key(crm_rows, traffic_rows) == {}
        widened = match_by_tracking_key(crm_rows, traffic_rows, ["ad_id"])
        assert widened["/a"].trials == pytest.approx(4)

    def test_null_literal_matches_missing(self):
        """'null' tracking ids meet real nulls"""
        result = match_by_tracking_key(
            [crm(1, 0, adset_id="null")],
            [traffic("/a", 5, adset_id=None)],
        )
        assert result["/a"].trials == pytest.approx(1)


class TestMatchByVisitor:
    """Tests for visitor-identity matching"""

    def test_even_split_over_distinct_values(self):
        """A visitor's conversions split evenly over the values they touched"""
        result = match_by_visitor(
            [CrmVisitorRow(visitor_id="v1", trials=2, approved=1)],
            [
                TrafficVisitorRow(dimension_value="/a", visitor_id="v1"),
                TrafficVisitorRow(dimension_value="/b", visitor_id="v1"),
                TrafficVisitorRow(dimension_value="/a", visitor_id="v1"),
            ],
        )
        assert result["/a"].trials == pytest.approx(1)
        assert result["/b"].approved == pytest.approx(0.5)

    def test_unseen_visitor_ignored(self):
        result = match_by_visitor(
            [CrmVisitorRow(visitor_id="v9", trials=1)],
            [TrafficVisitorRow(dimension_value="/a", visitor_id="v1")],
        )
        assert result == {}


class TestMergeAttribution:
    """Tests for merge_attribution"""

    def test_nonzero_visitor_wins(self):
        """Visitor result replaces tracking result; values are never summed"""
        merged = merge_attribution(
            {"/a": AttributedCounts(3, 1)},
            {"/a": AttributedCounts(7, 2)},
        )
        assert merged["/a"] == AttributedCounts(3, 1)

    def test_zero_visitor_falls_back_to_tracking(self):
        merged = merge_attribution(
            {"/a": AttributedCounts(0, 0)},
            {"/a": AttributedCounts(7, 2), "/b": AttributedCounts(1, 0)},
        )
        assert merged["/a"] == AttributedCounts(7, 2)
        assert merged["/b"] == AttributedCounts(1, 0)

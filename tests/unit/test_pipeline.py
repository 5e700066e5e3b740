"""
Unit Tests - Attribution Pipeline and Settings
"""
import pytest
from pydantic import ValidationError

from attribution_engine.config.settings import AttributionSettings, ReportSettings, Settings
from attribution_engine.pipeline import AttributionPipeline
from attribution_engine.records.on_page import (
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)
from attribution_engine.reporting.drilldown import ReportQuery

DIMS = ["network", "campaign", "adset", "ad"]


class TestBuildReport:
    """Tests for AttributionPipeline.build_report"""

    def test_unattributed_sales_land_under_unknown(self, sample_marketing_rows, sample_sales):
        result = AttributionPipeline().build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=DIMS),
        )
        unknown = next(r for r in result.rows if r.key == "Unknown")

        assert unknown.metrics["trials"] == pytest.approx(1)
        assert unknown.metrics["cost"] == 0
        assert result.unmatched_sales == 1
        assert result.matched_sales == 4

    def test_unknown_row_can_be_disabled(self, sample_marketing_rows, sample_sales, monkeypatch):
        monkeypatch.setenv("ATTRIBUTION_INCLUDE_UNATTRIBUTED_ROW", "false")
        result = AttributionPipeline().build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=DIMS),
        )

        assert all(r.key != "Unknown" for r in result.rows)
        assert result.unattributed.trials == 1

    def test_totals_conserved_with_unknown_row(self, sample_marketing_rows, sample_sales):
        """Root rows carry every trial in the CRM input"""
        result = AttributionPipeline().build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=["classifiedCountry", "network"]),
        )
        assert sum(r.metrics["trials"] for r in result.rows) == pytest.approx(3)

    def test_drill_down_matches_full_tree(self, sample_marketing_rows, sample_sales):
        """Attribution runs on the full row set, so drilled numbers agree"""
        pipeline = AttributionPipeline()
        full = pipeline.build_report(sample_marketing_rows, sample_sales, ReportQuery(dimensions=DIMS))
        google = next(r for r in full.rows if r.key == "Google Ads")

        drilled = pipeline.build_report(
            sample_marketing_rows,
            sample_sales,
            ReportQuery(dimensions=DIMS, depth=1, parent_filters={"network": "Google Ads"}),
        )

        assert drilled.rows == google.children

    def test_to_dict(self, sample_marketing_rows, sample_sales, test_settings):
        data = AttributionPipeline(test_settings).build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=["network"]),
        ).to_dict()

        assert data["attribution"]["matchFields"] == ["source"]
        assert data["attribution"]["totalSales"] == 5
        assert {r["key"] for r in data["rows"]} == {"Google Ads", "Facebook", "Unknown"}

    def test_unattributed_uses_wire_names(self, sample_marketing_rows, sample_sales):
        """Unattributed counters carry the same camelCase names as report metrics"""
        unattributed = AttributionPipeline().build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=DIMS),
        ).to_dict()["attribution"]["unattributed"]

        assert unattributed["trials"] == 1
        assert "trialsApproved" in unattributed
        assert "upsellNewCustomers" in unattributed
        assert "trials_approved" not in unattributed

    def test_unknown_dimension_gives_empty_report(self, sample_marketing_rows, sample_sales):
        result = AttributionPipeline().build_report(
            sample_marketing_rows, sample_sales, ReportQuery(dimensions=["network", "bogus"]),
        )
        assert result.rows == []

    def test_build_report_from_frames(self, marketing_df, sales_df):
        result = AttributionPipeline().build_report_from_frames(
            marketing_df, sales_df, ReportQuery(dimensions=["network", "campaign", "ad"]),
        )

        assert result.load_stats["marketing"]["rowsLoaded"] == 3
        assert result.load_stats["crm"]["rowsLoaded"] == 3
        assert result.unmatched_sales == 0
        facebook = next(r for r in result.rows if r.key == "Facebook")
        assert facebook.metrics["ots"] == pytest.approx(1)
        assert facebook.metrics["upsells"] == pytest.approx(1)


class TestOnPageAttribution:
    """Tests for AttributionPipeline.on_page_attribution"""

    def test_merges_both_matchers(self):
        merged = AttributionPipeline().on_page_attribution(
            [CrmTrackingRow(source="g", campaign_id="c1", trials=4)],
            [
                TrafficTrackingRow(dimension_value="/a", source="g", campaign_id="c1", unique_visitors=1),
                TrafficTrackingRow(dimension_value="/b", source="g", campaign_id="c1", unique_visitors=1),
            ],
            [CrmVisitorRow(visitor_id="v1", trials=5)],
            [TrafficVisitorRow(dimension_value="/b", visitor_id="v1")],
        )

        assert merged["/a"].trials == pytest.approx(2)
        assert merged["/b"].trials == pytest.approx(5)


class TestSettings:
    """Tests for configuration"""

    def test_defaults(self, test_settings):
        settings = test_settings
        assert settings.app_env == "testing"
        assert not settings.is_production
        assert settings.attribution.weight_field == "impressions"
        assert settings.report.default_sort_by == "clicks"
        assert settings.attribution.source_mapping["facebook"] == ["facebook", "meta", "fb"]

    def test_weight_field_from_env(self, monkeypatch):
        monkeypatch.setenv("ATTRIBUTION_WEIGHT_FIELD", "clicks")
        assert AttributionSettings().weight_field == "clicks"

    def test_invalid_weight_field(self, monkeypatch):
        monkeypatch.setenv("ATTRIBUTION_WEIGHT_FIELD", "revenue")
        with pytest.raises(ValidationError):
            AttributionSettings()

    def test_invalid_sort_direction(self, monkeypatch):
        monkeypatch.setenv("REPORT_DEFAULT_SORT_DIRECTION", "up")
        with pytest.raises(ValidationError):
            ReportSettings()

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(APP_ENV="moon")

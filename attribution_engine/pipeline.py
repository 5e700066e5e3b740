"""
Attribution Pipeline

Orchestrates one report request end to end:

    frames -> loaders -> attach_crm_metrics (exact tier + cascade)
           -> unattributed carry-over -> build_report (tree / drill-down)

and the on-page variant that merges the tracking and visitor matchers.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import polars as pl
import structlog

from attribution_engine.config import Settings, get_settings
from attribution_engine.ingestion.loaders import LoadResult, load_marketing_rows, load_sale_rows
from attribution_engine.matching.cascade import AttributionOutcome, attach_crm_metrics
from attribution_engine.matching.tracking import match_by_tracking_key, match_by_visitor, merge_attribution
from attribution_engine.records.on_page import (
    AttributedCounts,
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)
from attribution_engine.records.rows import AttributedRow, CrmMetrics, MarketingRow, ReportRow
from attribution_engine.reporting.drilldown import ReportQuery, build_report
from attribution_engine.reporting.tree import CRM_WIRE_NAMES

logger = structlog.get_logger(__name__)


@dataclass
class ReportResult:
    """Report tree plus attribution statistics for one request"""
    rows: List[ReportRow]
    match_fields: List[str]
    total_sales: int
    matched_sales: int
    unmatched_sales: int
    tier_counts: Dict[int, int]
    unattributed: CrmMetrics
    started_at: datetime
    duration_seconds: float
    load_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [row.to_dict() for row in self.rows],
            "attribution": {
                "matchFields": self.match_fields,
                "totalSales": self.total_sales,
                "matchedSales": self.matched_sales,
                "unmatchedSales": self.unmatched_sales,
                "tierCounts": {str(k): v for k, v in sorted(self.tier_counts.items(), reverse=True)},
                "unattributed": {
                    CRM_WIRE_NAMES[name]: value for name, value in self.unattributed.as_dict().items()
                },
            },
            "load": self.load_stats,
            "durationSeconds": round(self.duration_seconds, 4),
        }


def _load_stats(result: LoadResult) -> Dict[str, Any]:
    return {
        "rowsLoaded": result.rows_loaded,
        "rowsFailed": result.rows_failed,
        "valuesNulled": result.values_nulled,
        "validation": result.validation_status,
    }


class AttributionPipeline:
    """
    Report pipeline orchestrator.

    Example:
        pipeline = AttributionPipeline()
        query = ReportQuery(dimensions=["network", "campaign"])
        result = pipeline.build_report(marketing_rows, sales, query)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def attribute(
        self,
        marketing_rows: Sequence[MarketingRow],
        sales: Sequence,
        dimensions: Sequence[str],
    ) -> AttributionOutcome:
        """Attach CRM metrics to marketing rows for the given dimensions"""
        attribution = self.settings.attribution
        return attach_crm_metrics(
            marketing_rows,
            sales,
            dimensions,
            weight_field=attribution.weight_field,
            source_mapping=attribution.source_mapping,
        )

    def _report_rows(self, outcome: AttributionOutcome) -> List[AttributedRow]:
        rows = list(outcome.rows)
        if outcome.unmatched and self.settings.attribution.include_unattributed_row:
            # Every dimension of a blank row resolves to 'Unknown'.
            rows.append(AttributedRow(MarketingRow(), outcome.unattributed_metrics()))
        return rows

    def build_report(
        self,
        marketing_rows: Sequence[MarketingRow],
        sales: Sequence,
        query: ReportQuery,
    ) -> ReportResult:
        """
        Attribute over the full row set, then build the requested level.

        Args:
            marketing_rows: Marketing rows for the date range
            sales: CRM sales for the same date range
            query: Dimensions, depth and parent filters of the request

        Returns:
            ReportResult with the report rows and attribution statistics
        """
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()

        outcome = self.attribute(marketing_rows, sales, query.dimensions)
        rows = build_report(self._report_rows(outcome), query)

        result = ReportResult(
            rows=rows,
            match_fields=outcome.match_fields,
            total_sales=len(sales),
            matched_sales=outcome.matched_count,
            unmatched_sales=len(outcome.unmatched),
            tier_counts=outcome.tier_counts(),
            unattributed=outcome.unattributed_metrics(),
            started_at=started_at,
            duration_seconds=time.perf_counter() - start,
        )

        logger.info(
            "Report built",
            dimensions=query.dimensions,
            depth=query.depth,
            report_rows=len(rows),
            matched=result.matched_sales,
            unmatched=result.unmatched_sales,
            duration_seconds=round(result.duration_seconds, 4),
        )
        return result

    def build_report_from_frames(
        self,
        marketing_df: pl.DataFrame,
        sales_df: pl.DataFrame,
        query: ReportQuery,
    ) -> ReportResult:
        """Load both frames, then build the report"""
        marketing = load_marketing_rows(marketing_df)
        sales = load_sale_rows(sales_df)

        result = self.build_report(marketing.rows, sales.rows, query)
        result.load_stats = {
            "marketing": _load_stats(marketing),
            "crm": _load_stats(sales),
        }
        return result

    def on_page_attribution(
        self,
        crm_tracking: Iterable[CrmTrackingRow],
        traffic_tracking: Sequence[TrafficTrackingRow],
        crm_visitors: Iterable[CrmVisitorRow] = (),
        traffic_visitors: Sequence[TrafficVisitorRow] = (),
        exclude_fields: Iterable[str] = (),
    ) -> Dict[str, AttributedCounts]:
        """
        Attribute CRM trials/approvals to page-level dimension values.

        Visitor matches take precedence over tracking-key matches per value.
        """
        tracking = match_by_tracking_key(crm_tracking, traffic_tracking, exclude_fields)
        visitor = match_by_visitor(crm_visitors, traffic_visitors)
        merged = merge_attribution(visitor, tracking)

        logger.info(
            "On-page attribution complete",
            tracking_values=len(tracking),
            visitor_values=len(visitor),
            dimension_values=len(merged),
        )
        return merged

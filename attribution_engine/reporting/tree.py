"""
Marketing Report Tree

Builds a hierarchical report from flat attributed rows. Each level groups the
rows by one dimension, sums base and attributed CRM metrics, and derives
ratios from the sums, never by averaging per-row ratios.
"""

from datetime import date
from typing import Dict, List, Optional, Sequence, Union

import structlog

from attribution_engine.config import get_settings
from attribution_engine.records.rows import (
    BASE_METRICS,
    CRM_METRIC_FIELDS,
    DATE_DIMENSIONS,
    KEY_DELIMITER,
    MARKETING_DIMENSIONS,
    AttributedRow,
    MarketingRow,
    ReportRow,
)
from attribution_engine.reporting.formatting import format_attribute, parse_report_date

logger = structlog.get_logger(__name__)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# snake_case CrmMetrics field -> wire metric name
CRM_WIRE_NAMES: Dict[str, str] = {name: _camel(name) for name in CRM_METRIC_FIELDS}


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def compute_node_metrics(rows: Sequence[AttributedRow]) -> Dict[str, float]:
    """Summed base + CRM metrics of a group, with derived ratios"""
    totals: Dict[str, float] = {name: 0.0 for name in BASE_METRICS}
    crm_totals: Dict[str, float] = {name: 0.0 for name in CRM_METRIC_FIELDS}

    for item in rows:
        for name in BASE_METRICS:
            totals[name] += item.row.metric(name)
        for name in CRM_METRIC_FIELDS:
            crm_totals[name] += getattr(item.crm, name)

    cost = totals["cost"]
    clicks = totals["clicks"]
    impressions = totals["impressions"]
    conversions = totals["conversions"]

    metrics: Dict[str, float] = dict(totals)
    metrics.update({
        "ctr": _ratio(clicks, impressions),
        "cpc": _ratio(cost, clicks),
        "cpm": _ratio(cost, impressions) * 1000,
        "conversionRate": _ratio(conversions, impressions),
    })
    for name, value in crm_totals.items():
        metrics[CRM_WIRE_NAMES[name]] = value

    metrics.update({
        "approvalRate": _ratio(crm_totals["trials_approved"], crm_totals["subscriptions"]),
        "otsApprovalRate": _ratio(crm_totals["ots_approved"], crm_totals["ots"]),
        "upsellApprovalRate": _ratio(crm_totals["upsells_approved"], crm_totals["upsells"]),
        "realCpa": _ratio(cost, crm_totals["trials"]),
    })
    return metrics


def _as_attributed(row: Union[AttributedRow, MarketingRow]) -> AttributedRow:
    return row if isinstance(row, AttributedRow) else AttributedRow(row)


def _sort_value(row: ReportRow, sort_by: str) -> float:
    value = row.metrics.get(sort_by)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def sort_rows(
    rows: List[ReportRow],
    raw_values: Dict[str, str],
    dimension: str,
    sort_by: str,
    sort_direction: str,
) -> List[ReportRow]:
    """
    Date levels are always newest first; other levels sort by a metric.

    raw_values maps row key -> raw dimension value used for date parsing.
    """
    if dimension in DATE_DIMENSIONS:
        return sorted(
            rows,
            key=lambda r: parse_report_date(raw_values[r.key]) or date.min,
            reverse=True,
        )
    return sorted(
        rows,
        key=lambda r: _sort_value(r, sort_by),
        reverse=sort_direction != "ascend",
    )


def _build_level(
    rows: Sequence[AttributedRow],
    dimensions: Sequence[str],
    level: int,
    key_prefix: str,
    start_depth: int,
    sort_by: str,
    sort_direction: str,
) -> List[ReportRow]:
    if level >= len(dimensions) or not rows:
        return []

    dimension = dimensions[level]
    is_last = level == len(dimensions) - 1

    groups: Dict[str, List[AttributedRow]] = {}
    for row in rows:
        groups.setdefault(row.dimension_value(dimension), []).append(row)

    result: List[ReportRow] = []
    raw_values: Dict[str, str] = {}
    for value, group in groups.items():
        key = f"{key_prefix}{KEY_DELIMITER}{value}" if key_prefix else value
        raw_values[key] = value
        node = ReportRow(
            key=key,
            attribute=format_attribute(dimension, value),
            depth=start_depth + level,
            has_children=not is_last,
            metrics=compute_node_metrics(group),
        )
        if not is_last:
            node.children = _build_level(
                group, dimensions, level + 1, key, start_depth, sort_by, sort_direction,
            )
        result.append(node)

    return sort_rows(result, raw_values, dimension, sort_by, sort_direction)


def build_marketing_tree(
    rows: Sequence[Union[AttributedRow, MarketingRow]],
    dimensions: Sequence[str],
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    *,
    key_prefix: str = "",
    start_depth: int = 0,
) -> List[ReportRow]:
    """
    Build a report tree from flat rows.

    Args:
        rows: Attributed rows (plain marketing rows count as unattributed)
        dimensions: Ordered dimension ids, one per tree level
        sort_by: Metric to sort by (defaults to the configured metric)
        sort_direction: 'ascend' or 'descend'
        key_prefix: Key path of the parent when building a drill-down level
        start_depth: Depth reported for the first level

    Returns:
        Root rows; an empty list for empty input or an unknown dimension
    """
    if not rows or not dimensions:
        return []

    unknown = [d for d in dimensions if d not in MARKETING_DIMENSIONS]
    if unknown:
        logger.warning("Unknown report dimensions", dimensions=unknown)
        return []

    report_settings = get_settings().report
    return _build_level(
        [_as_attributed(r) for r in rows],
        list(dimensions),
        0,
        key_prefix,
        start_depth,
        sort_by or report_settings.default_sort_by,
        sort_direction or report_settings.default_sort_direction,
    )

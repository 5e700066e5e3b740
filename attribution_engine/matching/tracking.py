"""
Tracking Matcher

Attributes CRM trials/approvals to page-level dimension values (URL, device
type, ...) that the CRM knows nothing about. Two independent sources of truth:

- tracking tuple: CRM conversions and page views meet on a shared tracking
  key; a key's conversions are split over its dimension values by visitors.
- visitor identity: a CRM conversion carrying a visitor id is split evenly
  over the dimension values that visitor touched.

merge_attribution() combines both per dimension value.
"""

from collections import defaultdict
from typing import Dict, Iterable, Optional, Sequence

import structlog

from attribution_engine.matching.keys import build_tracking_key
from attribution_engine.records.on_page import (
    AttributedCounts,
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)

logger = structlog.get_logger(__name__)


def _dimension_key(value: Optional[str]) -> str:
    return str(value).lower() if value is not None else "unknown"


def match_by_tracking_key(
    crm_rows: Iterable[CrmTrackingRow],
    traffic_rows: Sequence[TrafficTrackingRow],
    exclude_fields: Iterable[str] = (),
) -> Dict[str, AttributedCounts]:
    """
    Distribute CRM conversions over dimension values sharing a tracking key.

    Tracking fields the caller groups or filters by are excluded from the key
    to avoid matching a dimension against itself.

    Args:
        crm_rows: CRM trials/approved per tracking tuple
        traffic_rows: Unique visitors per (dimension value, tracking tuple)
        exclude_fields: Tracking fields left out of the key

    Returns:
        Attributed counts keyed by lower-cased dimension value
    """
    exclude = tuple(exclude_fields)

    def key_of(row) -> str:
        return build_tracking_key(row.source, row.campaign_id, row.adset_id, row.ad_id, exclude)

    crm_index: Dict[str, AttributedCounts] = defaultdict(AttributedCounts)
    for row in crm_rows:
        bucket = crm_index[key_of(row)]
        bucket.trials += row.trials
        bucket.approved += row.approved

    combo_totals: Dict[str, float] = defaultdict(float)
    traffic_keys = []
    for row in traffic_rows:
        key = key_of(row)
        traffic_keys.append(key)
        combo_totals[key] += row.unique_visitors

    result: Dict[str, AttributedCounts] = defaultdict(AttributedCounts)
    for row, key in zip(traffic_rows, traffic_keys):
        crm = crm_index.get(key)
        if crm is None:
            continue
        total = combo_totals[key]
        proportion = row.unique_visitors / total if total > 0 else 0.0

        bucket = result[_dimension_key(row.dimension_value)]
        bucket.trials += crm.trials * proportion
        bucket.approved += crm.approved * proportion

    logger.debug(
        "Tracking match complete",
        crm_keys=len(crm_index),
        traffic_rows=len(traffic_rows),
        dimension_values=len(result),
    )
    return dict(result)


def match_by_visitor(
    crm_rows: Iterable[CrmVisitorRow],
    traffic_rows: Sequence[TrafficVisitorRow],
) -> Dict[str, AttributedCounts]:
    """
    Distribute each identified visitor's conversions evenly across the
    dimension values the visitor appeared under.
    """
    crm_index: Dict[str, AttributedCounts] = {}
    for row in crm_rows:
        if not row.visitor_id:
            continue
        bucket = crm_index.setdefault(row.visitor_id, AttributedCounts())
        bucket.trials += row.trials
        bucket.approved += row.approved

    # Distinct dimension values per visitor
    visitor_dims: Dict[str, set] = defaultdict(set)
    for row in traffic_rows:
        if row.visitor_id in crm_index:
            visitor_dims[row.visitor_id].add(_dimension_key(row.dimension_value))

    result: Dict[str, AttributedCounts] = defaultdict(AttributedCounts)
    for visitor_id, dim_keys in visitor_dims.items():
        crm = crm_index[visitor_id]
        dim_count = len(dim_keys)
        for dim_key in dim_keys:
            bucket = result[dim_key]
            bucket.trials += crm.trials / dim_count
            bucket.approved += crm.approved / dim_count

    logger.debug(
        "Visitor match complete",
        crm_visitors=len(crm_index),
        matched_visitors=len(visitor_dims),
        dimension_values=len(result),
    )
    return dict(result)


def merge_attribution(
    visitor_match: Dict[str, AttributedCounts],
    tracking_match: Dict[str, AttributedCounts],
) -> Dict[str, AttributedCounts]:
    """
    Per dimension value, use the visitor result when it is nonzero, else the
    tracking result. The two are never added or averaged.
    """
    merged: Dict[str, AttributedCounts] = {}
    for dim_key in set(visitor_match) | set(tracking_match):
        visitor = visitor_match.get(dim_key)
        if visitor is not None and not visitor.is_zero():
            merged[dim_key] = AttributedCounts(visitor.trials, visitor.approved)
            continue
        tracking = tracking_match.get(dim_key)
        if tracking is not None:
            merged[dim_key] = AttributedCounts(tracking.trials, tracking.approved)
        else:
            merged[dim_key] = AttributedCounts()
    return merged

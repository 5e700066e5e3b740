"""
Attribution Matching Module
"""
from .keys import build_tracking_key, match_fields_for, normalize_tracking_value
from .metrics import compute_crm_metrics, filter_sales_for_metric
from .tracking import match_by_tracking_key, match_by_visitor, merge_attribution
from .cascade import AttributionOutcome, attach_crm_metrics

__all__ = [
    "build_tracking_key",
    "match_fields_for",
    "normalize_tracking_value",
    "compute_crm_metrics",
    "filter_sales_for_metric",
    "match_by_tracking_key",
    "match_by_visitor",
    "merge_attribution",
    "AttributionOutcome",
    "attach_crm_metrics",
]

"""Hierarchical attribution reports"""

from attribution_engine.reporting.drilldown import (
    ReportQuery,
    build_key_prefix,
    build_report,
    filter_crm_for_marketing_row,
    group_keys_by_depth,
    parse_key_to_parent_filters,
    scope_rows,
)
from attribution_engine.reporting.tree import build_marketing_tree, compute_node_metrics

__all__ = [
    "ReportQuery",
    "build_key_prefix",
    "build_marketing_tree",
    "build_report",
    "compute_node_metrics",
    "filter_crm_for_marketing_row",
    "group_keys_by_depth",
    "parse_key_to_parent_filters",
    "scope_rows",
]

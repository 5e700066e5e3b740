"""
Report Drill-down

Lazy expansion of a report: the caller asks for one level of the tree below
a parent row, identified by the parent's dimension values. Keys produced here
are identical to the keys the full tree would give the same rows.
"""

from typing import Dict, List, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from attribution_engine.matching.keys import marketing_match_key, match_fields_for, sale_match_key
from attribution_engine.records.rows import (
    KEY_DELIMITER,
    AttributedRow,
    MarketingRow,
    ReportRow,
)
from attribution_engine.reporting.tree import build_marketing_tree

logger = structlog.get_logger(__name__)


class ReportQuery(BaseModel):
    """One report (or drill-down level) request"""

    dimensions: List[str]
    depth: int = 0
    parent_filters: Dict[str, str] = Field(default_factory=dict)
    sort_by: Optional[str] = None
    sort_direction: Optional[str] = None

    @field_validator("sort_direction")
    @classmethod
    def validate_sort_direction(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("ascend", "descend"):
            raise ValueError("sort_direction must be 'ascend' or 'descend'")
        return v

    @model_validator(mode="after")
    def validate_depth(self) -> "ReportQuery":
        if self.depth < 0 or (self.depth > 0 and self.depth >= len(self.dimensions)):
            raise ValueError(
                f"depth {self.depth} out of range for {len(self.dimensions)} dimensions"
            )
        return self

    @property
    def level_dimensions(self) -> List[str]:
        return self.dimensions[self.depth:]


def build_key_prefix(dimensions: Sequence[str], parent_filters: Dict[str, str]) -> str:
    """
    Key path of the parent row.

    Filters on dimensions outside the report come first in insertion order,
    then filters on report dimensions in dimension order.
    """
    outside = [value for dim, value in parent_filters.items() if dim not in dimensions]
    inside = [parent_filters[dim] for dim in dimensions if dim in parent_filters]
    return KEY_DELIMITER.join(outside + inside)


def scope_rows(
    rows: Sequence[Union[AttributedRow, MarketingRow]],
    parent_filters: Dict[str, str],
) -> List[Union[AttributedRow, MarketingRow]]:
    """Rows whose raw dimension values equal every parent filter"""
    if not parent_filters:
        return list(rows)
    return [
        row for row in rows
        if all(row.dimension_value(dim) == value for dim, value in parent_filters.items())
    ]


def build_report(
    rows: Sequence[Union[AttributedRow, MarketingRow]],
    query: ReportQuery,
) -> List[ReportRow]:
    """Build the tree below the query's parent, starting at query.depth"""
    scoped = scope_rows(rows, query.parent_filters)
    logger.debug(
        "Building report level",
        dimensions=query.level_dimensions,
        depth=query.depth,
        rows=len(rows),
        scoped=len(scoped),
    )
    return build_marketing_tree(
        scoped,
        query.level_dimensions,
        query.sort_by,
        query.sort_direction,
        key_prefix=build_key_prefix(query.dimensions, query.parent_filters),
        start_depth=query.depth,
    )


def parse_key_to_parent_filters(key: str, dimensions: Sequence[str]) -> Dict[str, str]:
    """
    Map each key part to the dimension at the same position.

    Example:
        >>> parse_key_to_parent_filters("google::Summer", ["network", "campaign"])
        {'network': 'google', 'campaign': 'Summer'}
    """
    parts = key.split(KEY_DELIMITER)
    return {dim: value for dim, value in zip(dimensions, parts)}


def group_keys_by_depth(keys: Sequence[str]) -> Dict[int, List[str]]:
    """Group row keys by depth (number of delimiters)"""
    grouped: Dict[int, List[str]] = {}
    for key in keys:
        grouped.setdefault(key.count(KEY_DELIMITER), []).append(key)
    return grouped


def filter_crm_for_marketing_row(
    sales: Sequence,
    dimension_filters: Dict[str, str],
    rows: Sequence[MarketingRow],
    dimensions: Sequence[str],
) -> List:
    """
    CRM sales behind one report row.

    The marketing rows under the report row resolve its display values to
    tracking values; sales sharing a match key with any of them are returned.
    """
    if not sales:
        return []

    matching = scope_rows(rows, dimension_filters)
    if not matching:
        return []

    fields = match_fields_for(dimensions)
    if not fields:
        return list(sales)

    keys = {marketing_match_key(row, fields) for row in matching}
    return [sale for sale in sales if sale_match_key(sale, fields) in keys]

"""
CRM Attribution with Fallback Cascade

Attaches CRM metrics to marketing rows in two phases:

1. Exact tier: sales are grouped by the full match key (every tracking field
   the requested dimensions carry). Each group is spread over the marketing
   rows sharing its key, proportionally to the rows' weight.
2. Fallback cascade: sales whose key matched no marketing row are re-grouped
   on a shorter key (rightmost match field removed) and spread the same way,
   level by level. The source is never dropped while it is a match field,
   so a fallback never credits one network with another network's sales.

Every sale is attributed at most once. Sales left over after the coarsest
level are reported back as unmatched; the caller decides where they go.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from attribution_engine.config import get_settings
from attribution_engine.config.settings import WEIGHT_FIELDS
from attribution_engine.matching.keys import marketing_match_key, match_fields_for, sale_match_key
from attribution_engine.matching.metrics import compute_crm_metrics
from attribution_engine.records.rows import AttributedRow, CrmMetrics, MarketingRow

logger = structlog.get_logger(__name__)


@dataclass
class _RowIndex:
    """Marketing rows grouped by match key at one level"""
    rows_by_key: Dict[str, List[int]]
    weight_by_key: Dict[str, float]


@dataclass
class AttributionOutcome:
    """Attributed rows plus an audit of where every sale went"""
    rows: List[AttributedRow]
    match_fields: List[str]
    # sale position -> number of match fields in the key it was attributed on
    tier_by_sale: Dict[int, int] = field(default_factory=dict)
    unmatched: List = field(default_factory=list)
    zero_weight_sales: int = 0

    @property
    def matched_count(self) -> int:
        return len(self.tier_by_sale)

    def tier_counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = defaultdict(int)
        for tier in self.tier_by_sale.values():
            counts[tier] += 1
        return dict(counts)

    def unattributed_metrics(self) -> CrmMetrics:
        return compute_crm_metrics(self.unmatched)


def _index_rows(rows: Sequence[MarketingRow], fields: Sequence[str], weight_field: str) -> _RowIndex:
    rows_by_key: Dict[str, List[int]] = defaultdict(list)
    weight_by_key: Dict[str, float] = defaultdict(float)
    for i, row in enumerate(rows):
        key = marketing_match_key(row, fields)
        rows_by_key[key].append(i)
        weight_by_key[key] += row.metric(weight_field)
    return _RowIndex(rows_by_key, weight_by_key)


def _attribute_level(
    rows: Sequence[MarketingRow],
    sales: Sequence,
    pending: List[int],
    fields: Sequence[str],
    accumulators: List[CrmMetrics],
    outcome: AttributionOutcome,
    weight_field: str,
    source_mapping: Optional[Dict[str, List[str]]],
) -> List[int]:
    """
    Attribute the pending sales at one key level.

    Returns the positions of sales whose key matched no marketing row.
    """
    index = _index_rows(rows, fields, weight_field)

    sale_groups: Dict[str, List[int]] = defaultdict(list)
    for pos in pending:
        sale_groups[sale_match_key(sales[pos], fields, source_mapping)].append(pos)

    still_unmatched: List[int] = []
    for key, positions in sale_groups.items():
        row_positions = index.rows_by_key.get(key)
        if not row_positions:
            still_unmatched.extend(positions)
            continue

        crm = compute_crm_metrics(sales[pos] for pos in positions)
        total_weight = index.weight_by_key[key]
        if total_weight <= 0:
            outcome.zero_weight_sales += len(positions)
        for row_pos in row_positions:
            row_weight = rows[row_pos].metric(weight_field)
            proportion = row_weight / total_weight if total_weight > 0 else 0.0
            accumulators[row_pos].add_scaled(crm, proportion)

        for pos in positions:
            outcome.tier_by_sale[pos] = len(fields)

    return still_unmatched


def match_exact_tier(
    rows: Sequence[MarketingRow],
    sales: Sequence,
    fields: Sequence[str],
    accumulators: List[CrmMetrics],
    outcome: AttributionOutcome,
    weight_field: str,
    source_mapping: Optional[Dict[str, List[str]]] = None,
) -> List[int]:
    """Attribute all sales on the full match key; returns unmatched positions"""
    return _attribute_level(
        rows, sales, list(range(len(sales))), fields,
        accumulators, outcome, weight_field, source_mapping,
    )


def coarsest_level(fields: Sequence[str]) -> int:
    """Fewest match fields a fallback key keeps: up to the source, else one"""
    if "source" in fields:
        return list(fields).index("source") + 1
    return 1


def cascade_unmatched(
    rows: Sequence[MarketingRow],
    sales: Sequence,
    pending: List[int],
    fields: Sequence[str],
    accumulators: List[CrmMetrics],
    outcome: AttributionOutcome,
    weight_field: str,
    source_mapping: Optional[Dict[str, List[str]]] = None,
) -> List[int]:
    """
    Retry unmatched sales on progressively shorter keys.

    Only the sales still pending at a level are grouped there, so a sale
    matched at one level never reappears at a coarser one.
    """
    for level in range(len(fields) - 1, coarsest_level(fields) - 1, -1):
        if not pending:
            break
        level_fields = fields[:level]
        before = len(pending)
        pending = _attribute_level(
            rows, sales, pending, level_fields,
            accumulators, outcome, weight_field, source_mapping,
        )
        logger.debug(
            "Fallback level complete",
            fields=list(level_fields),
            attributed=before - len(pending),
            remaining=len(pending),
        )
    return pending


def attach_crm_metrics(
    rows: Sequence[MarketingRow],
    sales: Sequence,
    dimensions: Sequence[str],
    weight_field: Optional[str] = None,
    source_mapping: Optional[Dict[str, List[str]]] = None,
) -> AttributionOutcome:
    """
    Attribute CRM sales onto marketing rows for the requested dimensions.

    Inputs are never modified; every returned AttributedRow carries a fresh
    CrmMetrics accumulator.

    Args:
        rows: Marketing rows (already scoped to the request)
        sales: CRM sales for the same date range
        dimensions: Requested report dimensions; only ad-hierarchy and date
            dimensions take part in matching
        weight_field: Marketing metric used for proportional splits
            (defaults to the configured weight field)
        source_mapping: Network -> CRM sources (defaults to configuration)

    Returns:
        AttributionOutcome with attributed rows and the per-sale audit
    """
    weight_field = weight_field or get_settings().attribution.weight_field
    if weight_field not in WEIGHT_FIELDS:
        raise ValueError(f"weight_field must be one of: {list(WEIGHT_FIELDS)}")

    fields = match_fields_for(dimensions)
    accumulators = [CrmMetrics() for _ in rows]
    outcome = AttributionOutcome(rows=[], match_fields=fields)

    if not sales or not fields:
        outcome.unmatched = list(sales)
        outcome.rows = [AttributedRow(row, acc) for row, acc in zip(rows, accumulators)]
        if sales:
            logger.info("No tracking dimensions requested, CRM left unattributed", sales=len(sales))
        return outcome

    pending = match_exact_tier(
        rows, sales, fields, accumulators, outcome, weight_field, source_mapping,
    )
    exact_matched = len(sales) - len(pending)
    pending = cascade_unmatched(
        rows, sales, pending, fields, accumulators, outcome, weight_field, source_mapping,
    )

    outcome.unmatched = [sales[pos] for pos in pending]
    outcome.rows = [AttributedRow(row, acc) for row, acc in zip(rows, accumulators)]

    if outcome.zero_weight_sales:
        logger.warning(
            "Sales matched marketing rows with zero total weight",
            sales=outcome.zero_weight_sales,
            weight_field=weight_field,
        )

    logger.info(
        "CRM attribution complete",
        rows=len(rows),
        sales=len(sales),
        match_fields=fields,
        exact=exact_matched,
        fallback=outcome.matched_count - exact_matched,
        unmatched=len(outcome.unmatched),
    )
    return outcome

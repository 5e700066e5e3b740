"""
CRM metric computation.

Counts CRM sales into a CrmMetrics accumulator. The metric-specific
predicates below mirror the counting rules so that a detail listing of the
records behind a number always has the same size as the number.
"""

from typing import Callable, Dict, Iterable, List, Set

from attribution_engine.records.rows import CrmMetrics


def compute_crm_metrics(sales: Iterable) -> CrmMetrics:
    """
    Count a group of sales into CRM metrics.

    - Non-upsell subscriptions drive subscriptions/trials/approvals/on-hold
      and the new-customer set.
    - Upsell subscriptions are counted separately; their new customers only
      count when the customer has no regular new subscription in the group.
    - Deleted upsells are never approved.
    """
    metrics = CrmMetrics()
    new_customers: Set[int] = set()
    upsell_new_customers: Set[int] = set()

    for sale in sales:
        if sale.type == "subscription":
            if sale.is_upsell_sub:
                metrics.upsell_subs += 1
                if sale.has_trial:
                    metrics.upsell_sub_trials += 1
                if sale.is_new_customer:
                    upsell_new_customers.add(sale.customer_id)
            else:
                metrics.subscriptions += 1
                if sale.has_trial:
                    metrics.trials += 1
                if sale.is_approved:
                    metrics.trials_approved += 1
                if sale.is_on_hold:
                    metrics.on_hold += 1
                if sale.is_new_customer:
                    new_customers.add(sale.customer_id)
        elif sale.type == "ots":
            metrics.ots += 1
            if sale.is_approved:
                metrics.ots_approved += 1
        elif sale.type == "upsell":
            metrics.upsells += 1
            if sale.is_deleted:
                metrics.upsells_deleted += 1
            if sale.is_approved and not sale.is_deleted:
                metrics.upsells_approved += 1

    metrics.customers = len(new_customers)
    metrics.upsell_new_customers = len(upsell_new_customers - new_customers)
    return metrics


def _regular_sub(sale) -> bool:
    return sale.type == "subscription" and not sale.is_upsell_sub


METRIC_PREDICATES: Dict[str, Callable] = {
    "customers": lambda s: _regular_sub(s) and s.is_new_customer,
    "subscriptions": _regular_sub,
    "trials": lambda s: _regular_sub(s) and s.has_trial,
    "trialsApproved": lambda s: _regular_sub(s) and s.is_approved,
    "onHold": lambda s: _regular_sub(s) and s.is_on_hold,
    "ots": lambda s: s.type == "ots",
    "otsApproved": lambda s: s.type == "ots" and s.is_approved,
    "upsells": lambda s: s.type == "upsell",
    "upsellsApproved": lambda s: s.type == "upsell" and s.is_approved and not s.is_deleted,
}


def filter_sales_for_metric(sales: Iterable, metric_id: str) -> List:
    """
    Records behind one metric cell.

    'customers' is deduplicated by customer id, matching the distinct count.
    Unknown metric ids select nothing.
    """
    predicate = METRIC_PREDICATES.get(metric_id)
    if predicate is None:
        return []

    selected = [s for s in sales if predicate(s)]
    if metric_id != "customers":
        return selected

    seen: Set[int] = set()
    unique = []
    for sale in selected:
        if sale.customer_id in seen:
            continue
        seen.add(sale.customer_id)
        unique.append(sale)
    return unique

"""
Display formatting for report rows.

Formatting is applied to the `attribute` of a row after aggregation; keys and
metric values stay raw.
"""

import math
import re
from datetime import date, datetime
from typing import Dict, Optional

from attribution_engine.records.rows import COUNTRY_DIMENSIONS, DATE_DIMENSIONS


# Metrics shown as whole numbers; ratios and money stay fractional.
ROUNDED_METRICS = frozenset({
    "customers",
    "upsellNewCustomers",
    "subscriptions",
    "upsellSubs",
    "upsellSubTrials",
    "trials",
    "trialsApproved",
    "onHold",
    "ots",
    "otsApproved",
    "upsells",
    "upsellsApproved",
    "upsellsDeleted",
    "realCpa",
})

_WORD_START = re.compile(r"(^|[\s\-_/(])(\w)")


def to_title_case(value: str) -> str:
    """'google ads' -> 'Google Ads', 'sleep-repair' -> 'Sleep-Repair'"""
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), value.lower())


def format_attribute(dimension: str, value: str) -> str:
    """Display value of a dimension value"""
    if dimension in COUNTRY_DIMENSIONS:
        return value.upper()
    if dimension in DATE_DIMENSIONS:
        return value
    return to_title_case(value)


def parse_report_date(value: str) -> Optional[date]:
    """Parse 'YYYY-MM-DD', 'dd/mm/yyyy' or an ISO datetime; None if neither"""
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_display_metrics(metrics: Dict[str, float]) -> Dict[str, float]:
    """Round count metrics for display"""
    return {
        name: round_half_up(value) if name in ROUNDED_METRICS else value
        for name, value in metrics.items()
    }

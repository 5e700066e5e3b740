"""
Tracking Key Builder

Builds the composite keys used to bucket marketing rows and CRM sales that
share no primary key. A key is the '::'-joined list of normalized tracking
values; two records with equal keys belong to the same attribution bucket.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from attribution_engine.matching.sources import map_crm_source_to_network, normalize_network
from attribution_engine.records.rows import KEY_DELIMITER, MarketingRow


TRACKING_FIELDS = ("source", "campaign_id", "adset_id", "ad_id")

# Canonical match order: coarsest scope first, so the cascade drops the ad first.
MATCH_FIELD_ORDER = ("date",) + TRACKING_FIELDS

DIMENSION_MATCH_FIELDS: Dict[str, str] = {
    "date": "date",
    "network": "source",
    "campaign": "campaign_id",
    "adset": "adset_id",
    "ad": "ad_id",
}


def normalize_tracking_value(value: Optional[str]) -> str:
    """Map None, the literal 'null' and '' to ''"""
    if value is None or value == "null":
        return ""
    return str(value)


def build_tracking_key(
    source: Optional[str],
    campaign_id: Optional[str],
    adset_id: Optional[str],
    ad_id: Optional[str],
    exclude_fields: Iterable[str] = (),
) -> str:
    """
    Build a tracking key, omitting excluded fields.

    Excluded fields are dropped rather than blanked, so excluding every field
    yields '' and collapses all records into one bucket.

    Example:
        >>> build_tracking_key("google", "c1", "null", "x1", ["source"])
        'c1::::x1'
    """
    excluded = set(exclude_fields)
    values = (source, campaign_id, adset_id, ad_id)
    parts = [
        normalize_tracking_value(value)
        for name, value in zip(TRACKING_FIELDS, values)
        if name not in excluded
    ]
    return KEY_DELIMITER.join(parts)


def to_iso_date(value: Optional[str]) -> str:
    """Convert 'dd/mm/yyyy' or a datetime string to 'YYYY-MM-DD'"""
    if not value:
        return ""
    parts = value.split("/")
    if len(parts) == 3:
        return f"{parts[2]}-{parts[1].zfill(2)}-{parts[0].zfill(2)}"
    if len(value) > 10 and value[4] == "-":
        try:
            return datetime.fromisoformat(value).date().isoformat()
        except ValueError:
            return value[:10]
    return value


def match_fields_for(dimensions: Sequence[str]) -> List[str]:
    """Match fields implied by the requested dimensions, in canonical order"""
    requested = {DIMENSION_MATCH_FIELDS[d] for d in dimensions if d in DIMENSION_MATCH_FIELDS}
    return [f for f in MATCH_FIELD_ORDER if f in requested]


def _compose(date_value: str, tracking: Sequence[Optional[str]], fields: Sequence[str]) -> str:
    excluded = [f for f in TRACKING_FIELDS if f not in fields]
    key = build_tracking_key(*tracking, exclude_fields=excluded)
    if "date" not in fields:
        return key
    if len(excluded) == len(TRACKING_FIELDS):
        return date_value
    return KEY_DELIMITER.join((date_value, key))


def marketing_match_key(row: MarketingRow, fields: Sequence[str]) -> str:
    """Key of a marketing row over the given match fields"""
    return _compose(
        to_iso_date(row.date),
        (normalize_network(row.network), row.campaign_id, row.adset_id, row.ad_id),
        fields,
    )


def sale_match_key(
    sale,
    fields: Sequence[str],
    source_mapping: Optional[Dict[str, List[str]]] = None,
) -> str:
    """Key of a CRM sale over the given match fields"""
    return _compose(
        to_iso_date(sale.date),
        (
            map_crm_source_to_network(sale.source, source_mapping),
            sale.tracking_id_4,
            sale.tracking_id_2,
            sale.tracking_id,
        ),
        fields,
    )

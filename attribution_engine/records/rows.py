"""
Attribution Record Types

Typed shapes for everything flowing through the engine:
- MarketingRow: one spend/traffic row per (date x dimension tuple)
- SaleRow: tagged union of CRM conversion events (subscription | ots | upsell)
- CrmMetrics: additive counters computed from a group of sales
- AttributedRow: a marketing row with the CRM metrics attributed to it
- ReportRow: one node of a hierarchical report
"""

from dataclasses import dataclass, field, fields
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


UNKNOWN = "Unknown"
KEY_DELIMITER = "::"

BASE_METRICS = ("cost", "clicks", "impressions", "conversions")


class MarketingRow(BaseModel):
    """Flat marketing row as produced by the spend/traffic source"""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    network: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    adset_id: Optional[str] = None
    adset_name: Optional[str] = None
    ad_id: Optional[str] = None
    ad_name: Optional[str] = None
    date: Optional[str] = None
    classified_product: Optional[str] = None
    classified_country: Optional[str] = None

    cost: float = Field(default=0.0, ge=0)
    clicks: float = Field(default=0.0, ge=0)
    impressions: float = Field(default=0.0, ge=0)
    conversions: float = Field(default=0.0, ge=0)

    def dimension_value(self, dimension: str) -> str:
        """Raw value of a report dimension, 'Unknown' when missing"""
        getter = MARKETING_DIMENSIONS.get(dimension)
        value = getter(self) if getter else None
        return value or UNKNOWN

    def metric(self, name: str) -> float:
        return float(getattr(self, name) or 0)


# Ad-hierarchy dimensions show names; the id stands in when the name is absent.
MARKETING_DIMENSIONS: Dict[str, Callable[[MarketingRow], Optional[str]]] = {
    "network": lambda r: r.network,
    "campaign": lambda r: r.campaign_name or r.campaign_id,
    "adset": lambda r: r.adset_name or r.adset_id,
    "ad": lambda r: r.ad_name or r.ad_id,
    "date": lambda r: r.date,
    "classifiedProduct": lambda r: r.classified_product,
    "classifiedCountry": lambda r: r.classified_country,
    "product": lambda r: r.classified_product,
    "country": lambda r: r.classified_country,
}

COUNTRY_DIMENSIONS = frozenset({"classifiedCountry", "country"})
DATE_DIMENSIONS = frozenset({"date"})


class _SaleBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    id: int
    date: str
    source: Optional[str] = None
    tracking_id_4: Optional[str] = None  # campaign
    tracking_id_2: Optional[str] = None  # adset
    tracking_id: Optional[str] = None  # ad
    visitor_id: Optional[str] = None
    customer_id: Optional[int] = None
    country: Optional[str] = None
    product: Optional[str] = None
    total: float = 0.0


class SubscriptionSale(_SaleBase):
    """Subscription (trial) sale"""
    type: Literal["subscription"] = "subscription"
    customer_id: int
    has_trial: bool = False
    is_approved: bool = False
    is_on_hold: bool = False
    is_upsell_sub: bool = False
    is_new_customer: bool = False


class OtsSale(_SaleBase):
    """One-time sale"""
    type: Literal["ots"] = "ots"
    is_approved: bool = False


class UpsellSale(_SaleBase):
    """Upsell invoice attached to a parent subscription"""
    type: Literal["upsell"] = "upsell"
    is_approved: bool = False
    is_deleted: bool = False


SaleRow = Annotated[
    Union[SubscriptionSale, OtsSale, UpsellSale],
    Field(discriminator="type"),
]

SALE_ROW_ADAPTER: TypeAdapter = TypeAdapter(SaleRow)


@dataclass
class CrmMetrics:
    """CRM counters for one group of sales, or one row's attributed share"""
    customers: float = 0.0
    upsell_new_customers: float = 0.0
    subscriptions: float = 0.0
    upsell_subs: float = 0.0
    upsell_sub_trials: float = 0.0
    trials: float = 0.0
    trials_approved: float = 0.0
    on_hold: float = 0.0
    ots: float = 0.0
    ots_approved: float = 0.0
    upsells: float = 0.0
    upsells_approved: float = 0.0
    upsells_deleted: float = 0.0

    def add_scaled(self, other: "CrmMetrics", proportion: float) -> None:
        """Add proportion * other into this accumulator"""
        for name in CRM_METRIC_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(other, name) * proportion)

    def total(self) -> float:
        return sum(getattr(self, name) for name in CRM_METRIC_FIELDS)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in CRM_METRIC_FIELDS}


CRM_METRIC_FIELDS = tuple(f.name for f in fields(CrmMetrics))


@dataclass(frozen=True)
class AttributedRow:
    """Marketing row plus the CRM metrics attributed to it"""
    row: MarketingRow
    crm: CrmMetrics = field(default_factory=CrmMetrics)

    def dimension_value(self, dimension: str) -> str:
        return self.row.dimension_value(dimension)


@dataclass
class ReportRow:
    """One node of a hierarchical report"""
    key: str
    attribute: str
    depth: int
    has_children: bool
    metrics: Dict[str, float]
    children: Optional[List["ReportRow"]] = None

    def to_dict(self, rounded: bool = True) -> Dict[str, Any]:
        """Wire representation; counts are rounded here and nowhere earlier"""
        from attribution_engine.reporting.formatting import round_display_metrics

        data: Dict[str, Any] = {
            "key": self.key,
            "attribute": self.attribute,
            "depth": self.depth,
            "hasChildren": self.has_children,
            "metrics": round_display_metrics(self.metrics) if rounded else dict(self.metrics),
        }
        if self.children is not None:
            data["children"] = [child.to_dict(rounded) for child in self.children]
        return data

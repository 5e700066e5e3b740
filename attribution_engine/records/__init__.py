"""
Record Types Module
"""
from .rows import (
    AttributedRow,
    CrmMetrics,
    MarketingRow,
    OtsSale,
    ReportRow,
    SaleRow,
    SubscriptionSale,
    UpsellSale,
    SALE_ROW_ADAPTER,
    UNKNOWN,
)
from .on_page import (
    AttributedCounts,
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)

__all__ = [
    "AttributedRow",
    "CrmMetrics",
    "MarketingRow",
    "OtsSale",
    "ReportRow",
    "SaleRow",
    "SubscriptionSale",
    "UpsellSale",
    "SALE_ROW_ADAPTER",
    "UNKNOWN",
    "AttributedCounts",
    "CrmTrackingRow",
    "CrmVisitorRow",
    "TrafficTrackingRow",
    "TrafficVisitorRow",
]

"""
On-Page Attribution Record Types

Rows exchanged with the page-view analytics store when CRM conversions are
attributed to page-level dimensions (URL, device type, ...).
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CrmTrackingRow(BaseModel):
    """CRM conversions grouped by tracking tuple"""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    source: Optional[str] = None
    campaign_id: Optional[str] = None
    adset_id: Optional[str] = None
    ad_id: Optional[str] = None
    trials: float = Field(default=0.0, ge=0)
    approved: float = Field(default=0.0, ge=0)


class TrafficTrackingRow(BaseModel):
    """Page views for one dimension value within one tracking tuple"""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    dimension_value: Optional[str] = None
    source: Optional[str] = None
    campaign_id: Optional[str] = None
    adset_id: Optional[str] = None
    ad_id: Optional[str] = None
    unique_visitors: float = Field(default=0.0, ge=0)


class CrmVisitorRow(BaseModel):
    """CRM conversions for one identified visitor"""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    visitor_id: str
    trials: float = Field(default=0.0, ge=0)
    approved: float = Field(default=0.0, ge=0)


class TrafficVisitorRow(BaseModel):
    """A (dimension value, visitor) pair seen in the traffic source"""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    dimension_value: Optional[str] = None
    visitor_id: str


@dataclass
class AttributedCounts:
    """Trials/approved attributed to one dimension value"""
    trials: float = 0.0
    approved: float = 0.0

    def is_zero(self) -> bool:
        return self.trials == 0 and self.approved == 0

"""
Report Endpoints

Thin HTTP layer over the attribution pipeline. The caller posts the flat rows
its queries returned; the engine attributes and aggregates them.
"""

from typing import Any, Dict, List, Optional

import polars as pl
import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError, field_validator

from attribution_engine.ingestion.loaders import DataQualityError
from attribution_engine.matching.keys import TRACKING_FIELDS
from attribution_engine.pipeline import AttributionPipeline
from attribution_engine.records.on_page import (
    CrmTrackingRow,
    CrmVisitorRow,
    TrafficTrackingRow,
    TrafficVisitorRow,
)
from attribution_engine.reporting.drilldown import ReportQuery

router = APIRouter()
logger = structlog.get_logger(__name__)


class MarketingReportRequest(BaseModel):
    """Report (or drill-down level) request with its source rows"""
    dimensions: List[str]
    depth: int = 0
    parent_filters: Dict[str, str] = Field(default_factory=dict)
    sort_by: Optional[str] = None
    sort_direction: Optional[str] = None
    marketing_rows: List[Dict[str, Any]] = Field(default_factory=list)
    sales: List[Dict[str, Any]] = Field(default_factory=list)


class OnPageRequest(BaseModel):
    """On-page attribution request"""
    crm_tracking: List[CrmTrackingRow] = Field(default_factory=list)
    traffic_tracking: List[TrafficTrackingRow] = Field(default_factory=list)
    crm_visitors: List[CrmVisitorRow] = Field(default_factory=list)
    traffic_visitors: List[TrafficVisitorRow] = Field(default_factory=list)
    exclude_fields: List[str] = Field(default_factory=list)

    @field_validator("exclude_fields")
    @classmethod
    def validate_exclude_fields(cls, v: List[str]) -> List[str]:
        unknown = [f for f in v if f not in TRACKING_FIELDS]
        if unknown:
            raise ValueError(f"Unknown tracking fields: {unknown}")
        return v


class OnPageValue(BaseModel):
    dimensionValue: str
    trials: float
    approved: float


class OnPageResponse(BaseModel):
    rows: List[OnPageValue]


def get_pipeline() -> AttributionPipeline:
    return AttributionPipeline()


def _frame(records: List[Dict[str, Any]]) -> pl.DataFrame:
    return pl.DataFrame(records, infer_schema_length=None, strict=False)


def _error_detail(error: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(e["loc"]), "msg": e["msg"]} for e in error.errors()]


@router.post("/marketing")
def marketing_report(
    request: MarketingReportRequest,
    pipeline: AttributionPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    """
    Build one level of the marketing report.

    Depth is validated before any row is processed; unknown dimensions
    yield an empty report.
    """
    try:
        query = ReportQuery(
            dimensions=request.dimensions,
            depth=request.depth,
            parent_filters=request.parent_filters,
            sort_by=request.sort_by,
            sort_direction=request.sort_direction,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_error_detail(e))

    try:
        result = pipeline.build_report_from_frames(
            _frame(request.marketing_rows),
            _frame(request.sales),
            query,
        )
    except DataQualityError as e:
        logger.warning("Rejected report input", source=e.source)
        raise HTTPException(status_code=422, detail=str(e))

    return result.to_dict()


@router.post("/on-page", response_model=OnPageResponse)
def on_page_report(
    request: OnPageRequest,
    pipeline: AttributionPipeline = Depends(get_pipeline),
) -> OnPageResponse:
    """Attribute CRM trials/approvals to page-level dimension values"""
    merged = pipeline.on_page_attribution(
        request.crm_tracking,
        request.traffic_tracking,
        request.crm_visitors,
        request.traffic_visitors,
        request.exclude_fields,
    )
    rows = [
        OnPageValue(dimensionValue=key, trials=counts.trials, approved=counts.approved)
        for key, counts in sorted(merged.items(), key=lambda item: (-item[1].trials, item[0]))
    ]
    return OnPageResponse(rows=rows)

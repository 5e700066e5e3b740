"""
Source Frame Loaders

Turn flat polars frames from the marketing and CRM stores into typed rows:
- string cleanup (trim, empty -> null, literal 'null' tracking ids -> null)
- rule-based validation of the frame
- per-row model validation; invalid rows are skipped and counted
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import polars as pl
import structlog
from pydantic import BaseModel, Field, ValidationError

from attribution_engine.config import get_settings
from attribution_engine.quality.validators import (
    DataValidator,
    ValidationResult,
    create_marketing_validator,
    create_sales_validator,
)
from attribution_engine.records.rows import SALE_ROW_ADAPTER, MarketingRow

logger = structlog.get_logger(__name__)


MARKETING_TRACKING_COLUMNS = ("network", "campaign_id", "adset_id", "ad_id")
SALE_TRACKING_COLUMNS = ("source", "tracking_id_4", "tracking_id_2", "tracking_id", "visitor_id")
DATE_COLUMNS = ("date",)


class DataQualityError(Exception):
    """Raised in strict mode when an error-level check fails"""

    def __init__(self, source: str, result: ValidationResult):
        self.source = source
        self.result = result
        names = [c.name for c in result.errors]
        super().__init__(f"Data quality checks failed for {source}: {names}")


class LoadStatus(str, Enum):
    """Load status"""
    COMPLETED = "completed"
    PARTIAL = "partial"


class LoadResult(BaseModel):
    """Typed rows plus load statistics"""
    source: str
    status: LoadStatus
    rows: List[Any] = Field(default_factory=list)
    rows_loaded: int = 0
    rows_failed: int = 0
    values_nulled: int = 0
    validation_status: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime


def clean_frame(df: pl.DataFrame, tracking_columns: Sequence[str]) -> Tuple[pl.DataFrame, int]:
    """
    Trim string columns and null out empty values.

    The literal 'null' is treated as missing in tracking columns only.

    Returns:
        (cleaned frame, number of values turned into nulls)
    """
    for col in DATE_COLUMNS:
        if col in df.columns and df.schema[col] != pl.Utf8:
            df = df.with_columns(pl.col(col).cast(pl.Utf8))

    string_cols = [col for col, dtype in df.schema.items() if dtype == pl.Utf8]
    if not string_cols:
        return df, 0

    nulls_before = sum(df[col].null_count() for col in string_cols)

    exprs = []
    for col in string_cols:
        trimmed = pl.col(col).str.strip_chars()
        missing = trimmed == ""
        if col in tracking_columns:
            missing = missing | (trimmed.str.to_lowercase() == "null")
        exprs.append(pl.when(missing).then(None).otherwise(trimmed).alias(col))
    df = df.with_columns(exprs)

    nulls_after = sum(df[col].null_count() for col in string_cols)
    return df, nulls_after - nulls_before


def _run_checks(df: pl.DataFrame, validator: DataValidator, source: str) -> Optional[ValidationResult]:
    quality = get_settings().data_quality
    if not quality.enable_data_quality_checks or df.height == 0:
        return None

    result = validator.validate(df)
    if result.errors and quality.strict_data_quality:
        raise DataQualityError(source, result)
    return result


def _to_models(records: Iterable[dict], parse, source: str) -> Tuple[List[Any], int]:
    rows: List[Any] = []
    failed = 0
    for record in records:
        # Nulls in sparse columns fall back to model defaults.
        present = {k: v for k, v in record.items() if v is not None}
        try:
            rows.append(parse(present))
        except ValidationError as e:
            failed += 1
            logger.debug("Skipping invalid row", source=source, errors=e.error_count())
    return rows, failed


def _load(
    df: pl.DataFrame,
    source: str,
    tracking_columns: Sequence[str],
    validator: DataValidator,
    parse,
) -> LoadResult:
    started_at = datetime.now(timezone.utc)
    start = time.perf_counter()

    df, nulled = clean_frame(df, tracking_columns)
    validation = _run_checks(df, validator, source)
    rows, failed = _to_models(df.iter_rows(named=True), parse, source)

    result = LoadResult(
        source=source,
        status=LoadStatus.PARTIAL if failed else LoadStatus.COMPLETED,
        rows=rows,
        rows_loaded=len(rows),
        rows_failed=failed,
        values_nulled=nulled,
        validation_status=validation.status.value if validation else None,
        load_duration_seconds=time.perf_counter() - start,
        started_at=started_at,
    )

    log = logger.warning if failed else logger.info
    log(
        "Frame loaded",
        source=source,
        rows=result.rows_loaded,
        failed=failed,
        nulled=nulled,
        validation=result.validation_status,
    )
    return result


def load_marketing_rows(df: pl.DataFrame) -> LoadResult:
    """Load marketing spend rows from a frame"""
    return _load(
        df,
        "marketing",
        MARKETING_TRACKING_COLUMNS,
        create_marketing_validator(),
        MarketingRow.model_validate,
    )


def load_sale_rows(df: pl.DataFrame) -> LoadResult:
    """Load CRM sales (any mix of subscription/ots/upsell) from a frame"""
    return _load(
        df,
        "crm",
        SALE_TRACKING_COLUMNS,
        create_sales_validator(),
        SALE_ROW_ADAPTER.validate_python,
    )

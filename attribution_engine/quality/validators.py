"""
Data Validation Module

Rule-based checks run on the raw marketing and CRM frames before they are
turned into typed rows.

Features:
- Null and uniqueness checks
- Range and non-negativity checks
- Allowed-value and pattern checks
- Custom frame-level rules
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}"
MARKETING_DATE_PATTERN = r"^(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})$"


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Blocks loading in strict mode
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def errors(self) -> List[ValidationCheck]:
        return [
            c for c in self.checks
            if not c.passed and c.severity == ValidationSeverity.ERROR
        ]


CheckFunc = Callable[[pl.DataFrame], ValidationCheck]


class DataValidator:
    """
    Chainable validator for a polars DataFrame.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("date")
        validator.add_non_negative_check("cost")
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Warnings fail the suite too
        self._checks: List[CheckFunc] = []

    def reset(self) -> None:
        self._checks = []

    @staticmethod
    def _missing_column(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def _add_row_check(
        self,
        name: str,
        column: str,
        failing: Callable[[], pl.Expr],
        describe: str,
        severity: ValidationSeverity,
        details: Optional[Dict[str, Any]] = None,
        optional: bool = False,
    ) -> "DataValidator":
        """
        Register a check that fails on every row matching `failing`.

        An optional column may be absent; the check then passes.
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns and optional:
                return ValidationCheck(
                    name=name,
                    passed=True,
                    severity=severity,
                    message=f"Optional column '{column}' absent, skipped",
                )
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            failed = df.filter(failing()).height
            passed = failed == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {failed} {describe}" if not passed else "Check passed",
                details={**(details or {}), "failed_count": failed},
                failed_rows=failed,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        return self._add_row_check(
            f"not_null_{column}", column,
            lambda: pl.col(column).is_null(),
            "null values", severity,
        )

    def add_unique_check(
        self,
        columns: List[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that the combination of columns is unique"""
        name = "unique_" + "_".join(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            if missing:
                return self._missing_column(name, missing[0], severity)

            duplicates = df.height - df.select(columns).unique().height
            return ValidationCheck(
                name=name,
                passed=duplicates == 0,
                severity=severity,
                message=f"{duplicates} duplicate rows on {columns}" if duplicates else "Values are unique",
                details={"duplicate_count": duplicates},
                failed_rows=duplicates,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        optional: bool = False,
    ) -> "DataValidator":
        """Add check for values within [min_value, max_value]"""
        def failing() -> pl.Expr:
            expr = pl.lit(False)
            if min_value is not None:
                expr = expr | (pl.col(column) < min_value)
            if max_value is not None:
                expr = expr | (pl.col(column) > max_value)
            return expr

        return self._add_row_check(
            f"range_{column}", column, failing,
            f"values outside range [{min_value}, {max_value}]", severity,
            details={"min": min_value, "max": max_value},
            optional=optional,
        )

    def add_non_negative_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        optional: bool = False,
    ) -> "DataValidator":
        return self.add_range_check(column, min_value=0, severity=severity, optional=optional)

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set; nulls are ignored"""
        return self._add_row_check(
            f"enum_{column}", column,
            lambda: ~pl.col(column).is_in(allowed_values) & pl.col(column).is_not_null(),
            "invalid values", severity,
            details={"allowed_values": allowed_values},
        )

    def add_pattern_check(
        self,
        column: str,
        pattern: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add regex check on the string form of non-null values"""
        return self._add_row_check(
            f"pattern_{column}", column,
            lambda: ~pl.col(column).cast(pl.Utf8).str.contains(pattern) & pl.col(column).is_not_null(),
            "values not matching pattern", severity,
            details={"pattern": pattern},
        )

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add frame-level rule; an exception inside the rule fails the check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = bool(check_func(df))
            except (pl.exceptions.PolarsError, KeyError, TypeError, ValueError) as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = [check(df) for check in self._checks]

        for result in results:
            if not result.passed:
                logger.warning(
                    "Validation check failed",
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(
            1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR
        )
        warning_count = sum(
            1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING
        )

        if failed_checks > 0 or (warning_count > 0 and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Validation complete",
            status=status.value,
            rows=df.height,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def _subscriptions_have_customers(df: pl.DataFrame) -> bool:
    if "customer_id" not in df.columns:
        return False
    return df.filter(
        (pl.col("type") == "subscription") & pl.col("customer_id").is_null()
    ).height == 0


def create_marketing_validator() -> DataValidator:
    """Pre-configured validator for marketing spend rows"""
    return (
        DataValidator()
        .add_not_null_check("date", severity=ValidationSeverity.WARNING)
        .add_pattern_check("date", MARKETING_DATE_PATTERN, severity=ValidationSeverity.WARNING)
        .add_non_negative_check("cost", optional=True)
        .add_non_negative_check("clicks", optional=True)
        .add_non_negative_check("impressions", optional=True)
        .add_non_negative_check("conversions", optional=True)
    )


def create_sales_validator() -> DataValidator:
    """Pre-configured validator for CRM sale rows"""
    return (
        DataValidator()
        .add_not_null_check("id")
        .add_not_null_check("type")
        .add_not_null_check("date")
        .add_enum_check("type", ["subscription", "ots", "upsell"])
        .add_pattern_check("date", ISO_DATE_PATTERN)
        .add_unique_check(["type", "id"], severity=ValidationSeverity.WARNING)
        .add_custom_check(
            "subscription_customer_id",
            _subscriptions_have_customers,
            "Subscriptions without customer_id",
            severity=ValidationSeverity.WARNING,
        )
    )

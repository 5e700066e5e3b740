"""
Marketing Attribution Engine
Centralized Configuration Management

Configuration is loaded with Pydantic settings from environment variables
(and an optional .env file), validated once and cached for the process.
"""

from functools import lru_cache
from typing import Dict, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


WEIGHT_FIELDS = ("impressions", "clicks", "cost", "conversions")


def _default_source_mapping() -> Dict[str, List[str]]:
    return {
        "google ads": ["adwords", "google"],
        "facebook": ["facebook", "meta", "fb"],
    }


class AttributionSettings(BaseSettings):
    """CRM-to-marketing attribution configuration"""

    model_config = SettingsConfigDict(env_prefix="ATTRIBUTION_")

    weight_field: str = Field(
        default="impressions",
        description="Marketing metric used as the proportional distribution weight",
    )
    include_unattributed_row: bool = Field(
        default=True,
        description="Add an 'Unknown' row carrying CRM records no tier could attribute",
    )
    source_mapping: Dict[str, List[str]] = Field(
        default_factory=_default_source_mapping,
        description="Ad network name -> CRM source names",
    )

    @field_validator("weight_field")
    @classmethod
    def validate_weight_field(cls, v: str) -> str:
        """Only base marketing metrics can act as weights"""
        if v not in WEIGHT_FIELDS:
            raise ValueError(f"weight_field must be one of: {list(WEIGHT_FIELDS)}")
        return v


class ReportSettings(BaseSettings):
    """Report tree defaults"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    default_sort_by: str = Field(default="clicks", description="Metric used when no sort is requested")
    default_sort_direction: str = Field(default="descend", description="ascend or descend")

    @field_validator("default_sort_direction")
    @classmethod
    def validate_direction(cls, v: str) -> str:
        if v not in ("ascend", "descend"):
            raise ValueError("default_sort_direction must be 'ascend' or 'descend'")
        return v


class SecuritySettings(BaseSettings):
    """API access configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class DataQualitySettings(BaseSettings):
    """Data Quality Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    enable_data_quality_checks: bool = Field(
        default=True,
        alias="ENABLE_DATA_QUALITY_CHECKS",
        description="Run boundary validation when loading source frames"
    )
    strict_data_quality: bool = Field(
        default=False,
        alias="STRICT_DATA_QUALITY",
        description="Raise instead of skipping rows when an error-level check fails"
    )


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="marketing-attribution", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    attribution: AttributionSettings = Field(default_factory=AttributionSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    data_quality: DataQualitySettings = Field(default_factory=DataQualitySettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()

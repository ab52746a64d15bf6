"""
Configuration management for WB Reports.

Provides centralized configuration loading and validation using Pydantic
settings. Values come from environment variables and an optional .env file.
"""

from typing import Optional, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wb_reports.utils.exceptions import ConfigurationError
from wb_reports.utils.logger import get_logger
from wb_reports.utils.retry import RetryPolicy


logger = get_logger(__name__)


class WildberriesAPIConfig(BaseModel):
    """Upstream hosts and transport settings."""

    statistics_base_url: str = "https://statistics-api.wildberries.ru"
    analytics_base_url: str = "https://seller-analytics-api.wildberries.ru"
    content_base_url: str = "https://content-api.wildberries.ru"
    advert_base_url: str = "https://advert-api.wildberries.ru"
    timeout: int = Field(default=60, description="API request timeout in seconds")


class PipelineConfig(BaseModel):
    """Pacing and safety bounds for report pipelines."""

    job_poll_interval: float = 5.0
    job_max_polls: int = 60
    ledger_page_size: int = 100000
    ledger_max_pages: int = 50
    ledger_page_interval: float = 60.0
    ledger_cursor_param: str = "rrdid"
    catalog_page_size: int = 100
    catalog_max_pages: int = 100
    catalog_page_interval: float = 0.5
    campaign_batch_size: int = 50
    campaign_batch_pause: float = 0.25
    campaign_batch_concurrency: int = 3
    paid_storage_max_days: int = 8
    paid_storage_chunk_pause: float = 61.0
    sales_detail_buffer_days: bool = True
    catalog_include_ledger: bool = False


class GoogleSheetsConfig(BaseModel):
    """Google Sheets export configuration."""

    service_account_key_path: Optional[str] = None
    sheet_id: Optional[str] = None


class ApplicationConfig(BaseModel):
    """General application configuration."""

    log_level: str = "INFO"
    log_dir: str = "./logs"
    debug_mode: bool = False
    database_url: str = "sqlite:///./wb_reports.db"


class WBReportsConfig(BaseSettings, PipelineConfig):
    """
    Main application configuration combining all sub-configurations.

    Pipeline settings are inherited from PipelineConfig so both share one
    set of defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    wildberries_statistics_base_url: str = "https://statistics-api.wildberries.ru"
    wildberries_analytics_base_url: str = "https://seller-analytics-api.wildberries.ru"
    wildberries_content_base_url: str = "https://content-api.wildberries.ru"
    wildberries_advert_base_url: str = "https://advert-api.wildberries.ru"
    wildberries_api_timeout: int = 60

    retry_max_attempts: int = 5
    retry_base_delay: float = 2.0
    retry_max_delay: float = 60.0
    retry_jitter: float = 0.25

    google_service_account_key_path: Optional[str] = None
    google_sheet_id: Optional[str] = None

    database_url: str = "sqlite:///./wb_reports.db"
    log_level: str = "INFO"
    log_dir: str = "./logs"
    debug_mode: bool = False

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator('wildberries_api_timeout', 'job_max_polls', 'ledger_page_size',
                     'ledger_max_pages', 'catalog_page_size', 'catalog_max_pages',
                     'retry_max_attempts')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator('campaign_batch_size')
    @classmethod
    def validate_campaign_batch_size(cls, v):
        # upstream accepts at most 50 ids per details call
        if not 0 < v <= 50:
            raise ValueError("Campaign batch size must be between 1 and 50")
        return v

    @field_validator('paid_storage_max_days')
    @classmethod
    def validate_storage_window(cls, v):
        if not 0 < v <= 8:
            raise ValueError("Paid storage window must be between 1 and 8 days")
        return v

    @property
    def wildberries(self) -> WildberriesAPIConfig:
        """Get upstream API configuration."""
        return WildberriesAPIConfig(
            statistics_base_url=self.wildberries_statistics_base_url,
            analytics_base_url=self.wildberries_analytics_base_url,
            content_base_url=self.wildberries_content_base_url,
            advert_base_url=self.wildberries_advert_base_url,
            timeout=self.wildberries_api_timeout,
        )

    @property
    def retry(self) -> RetryPolicy:
        """Get the retry policy shared by all upstream calls."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            jitter=self.retry_jitter,
        )

    @property
    def pipelines(self) -> PipelineConfig:
        """Get pipeline pacing configuration."""
        return PipelineConfig(**{
            name: getattr(self, name) for name in PipelineConfig.model_fields
        })

    @property
    def google_sheets(self) -> GoogleSheetsConfig:
        """Get Google Sheets export configuration."""
        return GoogleSheetsConfig(
            service_account_key_path=self.google_service_account_key_path,
            sheet_id=self.google_sheet_id,
        )

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        return ApplicationConfig(
            log_level=self.log_level,
            log_dir=self.log_dir,
            debug_mode=self.debug_mode,
            database_url=self.database_url,
        )


_config: Optional[WBReportsConfig] = None


def get_config() -> WBReportsConfig:
    """
    Get the global configuration instance.

    Returns:
        WBReportsConfig: Validated configuration instance.

    Raises:
        ConfigurationError: If configuration validation fails.
    """
    global _config

    if _config is None:
        try:
            _config = WBReportsConfig()
            logger.debug("Configuration loaded")
        except ValueError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    return _config


def reload_config() -> WBReportsConfig:
    """Reload configuration from environment variables."""
    global _config
    _config = None
    return get_config()


def describe_configuration() -> Dict[str, Any]:
    """
    Summarize the active configuration for the CLI and health endpoint.

    Returns:
        Dict with a timestamp and the non-secret settings per section.
    """
    config = get_config()
    return {
        "timestamp": datetime.now().isoformat(),
        "wildberries": config.wildberries.model_dump(),
        "retry": {
            "max_attempts": config.retry.max_attempts,
            "base_delay": config.retry.base_delay,
            "max_delay": config.retry.max_delay,
            "jitter": config.retry.jitter,
        },
        "pipelines": config.pipelines.model_dump(),
        "application": {
            "log_level": config.app.log_level,
            "debug_mode": config.app.debug_mode,
            "database": config.app.database_url.split("://", 1)[0],
        },
    }

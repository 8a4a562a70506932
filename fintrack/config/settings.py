"""
Configuration Management for FinTrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, resolved in layers:
1. Process environment
2. `.env` file
3. Defaults compiled into this module

No credential is ever written in source. When the backend credentials are
missing or invalid the application runs in demo/offline mode; when the
Gemini key is missing the advice card shows a fixed fallback message.
Settings are read once (see `get_settings`) and never reloaded.
"""

from functools import cached_property, lru_cache
from typing import Literal, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = structlog.get_logger(__name__)

PLACEHOLDER_PREFIX = "YOUR_"


class BackendConfig(BaseModel):
    """
    Credentials for the hosted identity service and document store.

    Supplied as one JSON blob (FINTRACK_BACKEND_CONFIG), e.g.:
        {"apiKey": "...", "projectId": "...", "spreadsheetId": "...",
         "credentialsPath": "service-account.json"}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_key: Optional[str] = Field(
        default=None,
        alias="apiKey",
        description="Identity service web API key"
    )
    project_id: Optional[str] = Field(
        default=None,
        alias="projectId",
        description="Hosted project the credentials belong to; shown on the settings page"
    )
    spreadsheet_id: Optional[str] = Field(
        default=None,
        alias="spreadsheetId",
        description="ID of the spreadsheet holding the collections"
    )
    credentials_path: str = Field(
        default="service-account.json",
        alias="credentialsPath",
        description="Path to Google service account credentials JSON"
    )
    accounts_sheet: str = Field(default="accounts", alias="accountsSheet")
    transactions_sheet: str = Field(
        default="transactions",
        alias="transactionsSheet",
    )
    poll_interval_seconds: float = Field(
        default=0.0,
        ge=0.0,
        alias="pollIntervalSeconds",
        description="Background refresh interval; 0 disables polling"
    )

    def is_usable(self) -> bool:
        """The single predicate deciding between live and demo mode."""
        if not self.api_key or self.api_key.startswith(PLACEHOLDER_PREFIX):
            return False
        return bool(self.spreadsheet_id)


class BackendSettings(BaseSettings):
    """Identity and document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore"
    )

    backend_config: str = Field(
        default="{}",
        description="JSON blob with identity/store credentials"
    )

    @cached_property
    def config(self) -> BackendConfig:
        """Parsed backend config; a malformed blob counts as absent."""
        try:
            return BackendConfig.model_validate_json(self.backend_config)
        except ValidationError as e:
            logger.error("settings.backend_config_invalid", error=str(e))
            return BackendConfig()


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key; advice is unavailable without it"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )
    reply_language: str = Field(
        default="English",
        description="Language the advice is written in"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG whatever log_level says"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=100_000_000.0,
        description="Largest amount accepted in a single transaction"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction may be dated"
    )

    # Advice
    recent_transactions_for_advice: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many recent transactions are summarised for advice"
    )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access. Each group is resolved
    on first access and kept for the life of the process.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @cached_property
    def backend(self) -> BackendSettings:
        return BackendSettings()

    @cached_property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @cached_property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def offline_mode(self) -> bool:
        """True when no usable backend credentials resolved."""
        return not self.backend.config.is_usable()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Report which services are usable.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries explaining anything that is not. Useful for the settings page.
    """
    results = {}

    settings = get_settings()

    try:
        results["backend"] = settings.backend.config.is_usable()
        if not results["backend"]:
            results["backend_error"] = "Not configured (demo mode)"
    except Exception as e:
        results["backend"] = False
        results["backend_error"] = str(e)

    try:
        results["gemini"] = settings.gemini.is_configured
        if not results["gemini"]:
            results["gemini_error"] = "No API key (advice unavailable)"
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results

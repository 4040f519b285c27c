"""
Configuration Management for Lyvo

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BUDGET_LIMITS = {
    "Alimentação": 800.00,
    "Moradia": 2000.00,
    "Transporte": 300.00,
    "Lazer": 400.00,
    "Saúde": 500.00,
    "Outros": 200.00,
}


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(default="Transactions")
    fixed_bills_sheet_name: str = Field(default="FixedBills")
    forecasts_sheet_name: str = Field(default="Forecasts")
    credit_cards_sheet_name: str = Field(default="CreditCards")
    budget_limits_sheet_name: str = Field(default="BudgetLimits")
    events_sheet_name: str = Field(default="Events")
    calendar_connections_sheet_name: str = Field(default="CalendarConnections")
    users_sheet_name: str = Field(default="Users")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    timezone_name: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used to resolve relative dates in chat"
    )

    # Access gate
    trial_days: int = Field(
        default=3,
        ge=0,
        le=90,
        description="Length of the free trial for new users"
    )

    # Ledger conventions
    invoice_payment_category: str = Field(
        default="Cartão de Crédito",
        description="Category used for invoice payments and residuals"
    )
    fallback_category: str = Field(
        default="Outros",
        description="Category used when none was provided"
    )
    trend_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Number of months in the income/expense trend"
    )
    expense_categories: str = Field(
        default="Alimentação,Moradia,Transporte,Saúde,Lazer,Outros",
        description="Comma-separated list of expense categories"
    )
    income_categories: str = Field(
        default="Salário,Freela,Comissão,Outros",
        description="Comma-separated list of income categories"
    )

    @property
    def expense_categories_list(self) -> list[str]:
        return [c.strip() for c in self.expense_categories.split(",") if c.strip()]

    @property
    def income_categories_list(self) -> list[str]:
        return [c.strip() for c in self.income_categories.split(",") if c.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

from __future__ import annotations

import logging

from pydantic import EmailStr, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("dental_ledger.config")


class Settings(BaseSettings):
    app_env: str = "development"
    database_url: str = "sqlite:///./dental_ledger.db"
    admin_email: EmailStr = "admin@example.com"
    currency: str = Field(default="INR", alias="CURRENCY")
    invoice_due_days: int = Field(default=0, alias="INVOICE_DUE_DAYS")
    chart_plan_overwrites: bool = Field(default=False, alias="CHART_PLAN_OVERWRITES")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    @field_validator("invoice_due_days", mode="before")
    @classmethod
    def _coerce_empty_ints(cls, value, info):
        if value in {"", None}:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()


def _is_production(app_env: str) -> bool:
    return app_env.strip().lower() in {"prod", "production"}


def validate_settings(settings: Settings) -> None:
    production = _is_production(settings.app_env)
    failures: list[str] = []
    warnings: list[str] = []

    if settings.database_url.startswith("sqlite"):
        msg = "DATABASE_URL points at SQLite; per-patient row locks are not enforced"
        if production:
            failures.append(msg)
        else:
            warnings.append(msg)

    if str(settings.admin_email).strip().lower() == "admin@example.com":
        msg = "ADMIN_EMAIL is still admin@example.com"
        if production:
            failures.append(msg)
        else:
            warnings.append(msg)

    if settings.invoice_due_days < 0:
        failures.append("INVOICE_DUE_DAYS must not be negative")

    if len(settings.currency) != 3:
        msg = f"CURRENCY should be a 3-letter ISO code (got {settings.currency!r})"
        if production:
            failures.append(msg)
        else:
            warnings.append(msg)

    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    if failures:
        raise RuntimeError("Config validation failed: " + "; ".join(failures))


settings = Settings()

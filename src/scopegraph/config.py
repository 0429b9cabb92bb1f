import logging
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(RuntimeError):
    """Configuration-related error."""
    pass


# ─────────────────────────────────────────────────────────────
# Section configs
# ─────────────────────────────────────────────────────────────


class LoggingSettings(BaseModel):
    level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    format: str = (
        "%(asctime)-20s %(threadName)-20s %(name)-30s "
        "%(levelname)-8s: %(message)s"
    )


class ScopeSettings(BaseModel):
    """
    Settings for the process-wide default scope stack.

    Stacks created explicitly with ScopeStack(...) take their own arguments
    and ignore these settings.
    """

    max_depth: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of nested scopes per call path (None = unbounded).",
    )
    default_stack_name: str = Field(
        "default",
        min_length=1,
        description="Name of the default stack, used in log messages.",
    )


# ─────────────────────────────────────────────────────────────
# Top-level settings
# ─────────────────────────────────────────────────────────────


class AppSettings(BaseSettings):
    """
    Canonical scopegraph configuration.

    Precedence (highest → lowest):

    1. Init kwargs (tests/overrides)
    2. Environment variables
    3. .env and .env.local
    4. Defaults in this class
    """

    model_config = SettingsConfigDict(
        env_prefix="SCOPEGRAPH_",  # SCOPEGRAPH_LOGGING__LEVEL, SCOPEGRAPH_SCOPES__MAX_DEPTH, ...
        env_file=(".env", ".env.local"),  # .env.local overrides .env
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    logging: LoggingSettings = LoggingSettings()
    scopes: ScopeSettings = ScopeSettings()  # type: ignore[call-arg]


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> AppSettings:
    """
    Cached accessor for process-wide settings.

    `overrides` are init kwargs → highest precedence (handy in tests).
    """
    try:
        return AppSettings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid scopegraph configuration: {exc}") from exc


def configure_logging(settings: AppSettings | None = None) -> None:
    """Apply the logging section via logging.basicConfig (no-op if handlers exist)."""
    section = (settings or get_settings()).logging
    logging.basicConfig(level=section.level, format=section.format)

"""
Configuration Management

Centralized configuration using Pydantic Settings.

Every setting can be overridden with a ``SCOPEDSQL_`` prefixed environment
variable or a ``.env`` file:

    SCOPEDSQL_PARAMSTYLE=named
    SCOPEDSQL_CREATOR_COLUMN=createdbyid
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# DB-API paramstyles the executor knows how to rewrite "@name" placeholders into
SUPPORTED_PARAMSTYLES = ("pyformat", "named", "qmark")


class Settings(BaseSettings):
    """Library settings."""

    # Audit / key columns
    id_column: str = Field(default="id", description="Surrogate identifier column")
    creator_column: str = Field(default="creatorId", description="Creator audit column")
    business_unit_column: str = Field(default="businessUnitId", description="Business unit audit column")

    # Query defaults
    default_limit: int = Field(default=100000, description="LIMIT used when a descriptor sets none")

    # Driver / dialect
    paramstyle: str = Field(default="pyformat", description="DB-API paramstyle of the driver")
    sql_dialect: str = Field(default="mysql", description="sqlglot dialect used for validation")
    validate_sql: bool = Field(default=False, description="Parse every rendered statement before use")

    # Logging
    log_level: str = Field(default="INFO")

    # Plugins
    plugins_file: Optional[str] = Field(default=None, description="YAML file binding entities to plugins")

    model_config = SettingsConfigDict(env_prefix="SCOPEDSQL_", env_file=".env", extra="ignore")

    @field_validator("paramstyle")
    @classmethod
    def _check_paramstyle(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_PARAMSTYLES:
            raise ValueError(
                f"Unsupported paramstyle: {value}. Available: {', '.join(SUPPORTED_PARAMSTYLES)}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()

"""
scopedsql Exceptions

Driver errors (connectivity, constraint violations, malformed SQL) are not
wrapped: they propagate from the DB-API driver unchanged.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Authorization (1xxx)
    ERR_PERMISSION_DENIED = "ERR_1005"
    ERR_NO_PERMISSIONS = "ERR_1007"

    # Validation (3xxx)
    ERR_QUERY_INVALID = "ERR_3001"
    ERR_COLUMN_VALUES_EMPTY = "ERR_3009"
    ERR_TABLE_MISSING = "ERR_3010"
    ERR_SQL_INVALID = "ERR_3011"

    # Plugins (8xxx)
    ERR_PLUGIN_NOT_FOUND = "ERR_8101"
    ERR_PLUGIN_CONFIG_INVALID = "ERR_8102"

    # Configuration (9xxx)
    ERR_CONFIG_INVALID = "ERR_9101"


class ScopedSQLError(Exception):
    """Base exception for scopedsql."""

    code: ErrorCode = ErrorCode.ERR_QUERY_INVALID

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"


class AuthorizationError(ScopedSQLError):
    """Raised when the caller's grants do not authorize a read."""

    code = ErrorCode.ERR_PERMISSION_DENIED


class ValidationError(ScopedSQLError):
    """Raised for structurally invalid input (empty column values, bad SQL)."""

    code = ErrorCode.ERR_QUERY_INVALID


class PluginError(ScopedSQLError):
    """Base exception for plugin registry errors."""

    code = ErrorCode.ERR_PLUGIN_CONFIG_INVALID


class PluginNotFoundError(PluginError):
    """Raised when a plugin id has no registered implementation."""

    code = ErrorCode.ERR_PLUGIN_NOT_FOUND


class ConfigurationError(ScopedSQLError):
    """Raised when a configuration file cannot be used."""

    code = ErrorCode.ERR_CONFIG_INVALID

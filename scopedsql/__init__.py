"""
scopedsql - permission-aware SQL data access.

Builds SELECT/INSERT/UPDATE statements from structured descriptors, scopes
every read to the caller's grants, and executes on a caller-supplied DB-API
connection.

Usage:
    from scopedsql import DataAccess, ExecutionContext, PermissionGrant, AccessLevel

    access = DataAccess()
    context = ExecutionContext(
        connection=conn,
        user_id="u1",
        business_unit="bu1",
        grants=[PermissionGrant(read_level=AccessLevel.OWNER)],
    )
    rows = access.execute_query(QueryDescriptor(table_name="orders"), context)
"""

__version__ = "1.0.0"

from scopedsql.access import DataAccess
from scopedsql.builder import InsertStatement, QueryBuilder, SelectClauses, Statement
from scopedsql.config import Settings, get_settings
from scopedsql.exceptions import (
    AuthorizationError,
    ConfigurationError,
    ErrorCode,
    PluginError,
    PluginNotFoundError,
    ScopedSQLError,
    ValidationError,
)
from scopedsql.executor import Executor
from scopedsql.logging_config import configure_logging
from scopedsql.models import (
    AccessLevel,
    CreatedRecord,
    ExecutionContext,
    PermissionGrant,
    QueryDescriptor,
    RecordModel,
    ResultRow,
)
from scopedsql.permissions import PermissionResolver, ReadScope
from scopedsql.plugins import (
    EntityPlugin,
    Plugin,
    get_plugin,
    list_plugins,
    load_entity_plugins,
    register_plugin,
    run_plugins,
)

__all__ = [
    "DataAccess",
    "QueryBuilder",
    "SelectClauses",
    "Statement",
    "InsertStatement",
    "Executor",
    "PermissionResolver",
    "ReadScope",
    "Settings",
    "get_settings",
    "configure_logging",
    "AccessLevel",
    "PermissionGrant",
    "QueryDescriptor",
    "RecordModel",
    "ExecutionContext",
    "ResultRow",
    "CreatedRecord",
    "Plugin",
    "EntityPlugin",
    "register_plugin",
    "get_plugin",
    "list_plugins",
    "load_entity_plugins",
    "run_plugins",
    "ScopedSQLError",
    "AuthorizationError",
    "ValidationError",
    "PluginError",
    "PluginNotFoundError",
    "ConfigurationError",
    "ErrorCode",
]

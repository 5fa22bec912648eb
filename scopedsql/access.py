"""
Data Access Facade

Combines PermissionResolver, QueryBuilder and Executor into the record
operations application code and plugins call.

Usage:
    access = DataAccess()
    context = ExecutionContext(
        connection=conn,
        user_id="u1",
        business_unit="bu1",
        grants=[PermissionGrant(read_level=AccessLevel.OWNER)],
    )

    row = access.get_record_by_id(context, "orders", "a1b2")
    rows = access.execute_query(QueryDescriptor(table_name="orders"), context)
    created = access.create_record(context, {"total": 100}, table_name="orders")
"""

import logging
from typing import Any, List, Mapping, Optional

from scopedsql.builder import QueryBuilder, placeholder
from scopedsql.config import Settings, get_settings
from scopedsql.exceptions import ErrorCode, ValidationError
from scopedsql.executor import Executor
from scopedsql.models import CreatedRecord, ExecutionContext, QueryDescriptor, ResultRow
from scopedsql.permissions import PermissionResolver

logger = logging.getLogger(__name__)


class DataAccess:
    """Permission-aware record operations on a caller-supplied connection."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        builder: Optional[QueryBuilder] = None,
        resolver: Optional[PermissionResolver] = None,
        executor: Optional[Executor] = None,
    ):
        self.settings = settings or get_settings()
        self.builder = builder or QueryBuilder(self.settings)
        self.resolver = resolver or PermissionResolver(self.settings)
        self.executor = executor or Executor(self.settings)

    def execute_non_query(self, sql: str, connection) -> None:
        """Execute a statement with no result rows (INSERT, UPDATE, DELETE)."""
        self.executor.run_non_query(sql, connection)

    def get_record_by_id(
        self,
        context: ExecutionContext,
        table_name: str,
        record_id: Any,
    ) -> Optional[ResultRow]:
        """
        Retrieve a single record by id with read permissions applied.

        Args:
            context: Caller identity, grants and connection
            table_name: Table to read from
            record_id: Value of the id column

        Returns:
            The record, or None if it does not exist, is outside the caller's
            scope, or table_name is blank

        Raises:
            AuthorizationError: If the caller's first grant is DENIED
        """
        if not table_name or not table_name.strip():
            logger.warning("get_record_by_id called without a table name")
            return None

        id_column = self.settings.id_column
        sql = f"SELECT * FROM {table_name} WHERE {id_column} = {placeholder(id_column)}"
        sql, params = self.resolver.apply_record_permissions(context, sql)

        return self.executor.fetch_by_id(sql, record_id, context.connection, params)

    def execute_query(self, descriptor: QueryDescriptor, context: ExecutionContext) -> List[ResultRow]:
        """
        Run a SELECT described by ``descriptor`` with read permissions applied.

        The descriptor's filter and parameters are extended in place with the
        caller's read scope before the statement is rendered.

        Raises:
            AuthorizationError: If the caller's grants authorize no read
        """
        scope = self.resolver.apply_query_permissions(context, descriptor)
        statement = self.builder.build_select(descriptor)

        rows = self.executor.fetch_many(statement.sql, statement.params, context.connection)
        logger.debug(f"Query on {descriptor.table_name} returned {len(rows)} row(s) ({scope.reason})")
        return rows

    def update_record(
        self,
        table_name: str,
        record_id: Any,
        column_values: Mapping[str, Any],
        connection,
    ) -> None:
        """
        Update one record's columns by id.

        Raises:
            ValidationError: If column_values is empty
        """
        statement = self.builder.build_update(table_name, record_id, column_values)
        self.executor.run_non_query(statement.sql, connection, statement.params)
        logger.info(f"Updated one record in {table_name} table")

    def create_record(
        self,
        context: ExecutionContext,
        column_values: Mapping[str, Any],
        table_name: Optional[str] = None,
    ) -> CreatedRecord:
        """
        Insert a record owned by the caller.

        The table defaults to context.model.table_name.

        Returns:
            CreatedRecord with the surrogate id written to the id column and
            the numeric id generated by the store

        Raises:
            ValidationError: If no table is known or column_values is empty
        """
        table_name = table_name or (context.model.table_name if context.model else None)
        if not table_name:
            raise ValidationError(
                "No table name given for the new record",
                code=ErrorCode.ERR_TABLE_MISSING,
            )

        statement = self.builder.build_insert(
            table_name, column_values, context.user_id, context.business_unit
        )
        row_id = self.executor.insert_and_return_id(
            statement.sql,
            statement.params,
            context.user_id,
            context.business_unit,
            context.connection,
        )
        return CreatedRecord(id=statement.record_id, row_id=row_id)

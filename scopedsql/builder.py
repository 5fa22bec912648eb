"""
SQL Statement Builder

Renders SELECT, INSERT and UPDATE statements from structured input.

Values are always bound: statement text references them as ``@name`` and the
values travel alongside in ``Statement.params``. Table names, column lists
and the join/filter/group/having/order fragments are inserted verbatim, so
they must originate in trusted code and never in external input.

Usage:
    builder = QueryBuilder()

    stmt = builder.build_select(QueryDescriptor(table_name="orders", limit=50))
    # SELECT * FROM orders LIMIT 50

    stmt = builder.build_insert("orders", {"total": 100}, "u1", "bu1")
    # INSERT INTO orders (total, id, creatorId, businessUnitId)
    #     VALUES (@total, @id, @creatorId, @businessUnitId)
"""

import logging
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import sqlglot
from sqlglot.errors import ParseError, TokenError

from scopedsql.config import Settings, get_settings
from scopedsql.exceptions import ErrorCode, ValidationError
from scopedsql.models import QueryDescriptor

logger = logging.getLogger(__name__)

# Prefix marking a bound parameter in statement text
PARAM_PREFIX = "@"


def placeholder(name: str) -> str:
    """Return the placeholder text for a bound parameter."""
    return f"{PARAM_PREFIX}{name}"


# =============================================================================
# Statements
# =============================================================================

@dataclass(frozen=True)
class Statement:
    """Rendered SQL text plus its bound parameter values."""

    sql: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


@dataclass(frozen=True)
class InsertStatement(Statement):
    """An INSERT plus the surrogate id it writes."""

    record_id: Any = None


@dataclass(frozen=True)
class SelectClauses:
    """
    Clause slots of a SELECT.

    render() emits the clauses in fixed order and drops the empty ones.
    """

    table: str
    columns: str = "*"
    join: str = ""
    where: str = ""
    group_by: str = ""
    having: str = ""
    order_by: str = ""
    limit: int = 0

    @classmethod
    def from_descriptor(cls, descriptor: QueryDescriptor) -> "SelectClauses":
        return cls(
            table=descriptor.table_name,
            columns=descriptor.columns,
            join=descriptor.join_clause,
            where=descriptor.filter,
            group_by=descriptor.group_by,
            having=descriptor.having_clause,
            order_by=descriptor.order_by,
            limit=descriptor.limit,
        )

    def render(self) -> str:
        parts = [f"SELECT {self.columns} FROM {self.table}"]

        if _present(self.join):
            parts.append(self.join)
        if _present(self.where):
            parts.append(f"WHERE {self.where}")
        if _present(self.group_by):
            parts.append(f"GROUP BY {self.group_by}")
        if _present(self.having):
            parts.append(f"HAVING {self.having}")
        if _present(self.order_by):
            parts.append(f"ORDER BY {self.order_by}")
        if self.limit and self.limit > 0:
            parts.append(f"LIMIT {self.limit}")

        return " ".join(parts)


def _present(fragment: Optional[str]) -> bool:
    return bool(fragment and fragment.strip())


# =============================================================================
# Builder
# =============================================================================

class QueryBuilder:
    """
    Builds SELECT/INSERT/UPDATE statements.

    When Settings.validate_sql is on, every rendered statement is parsed with
    sqlglot in Settings.sql_dialect and a ValidationError is raised if it
    does not parse.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build_select(self, descriptor: QueryDescriptor) -> Statement:
        """
        Render a SELECT from a query descriptor.

        Clause order: SELECT, FROM, join, WHERE, GROUP BY, HAVING, ORDER BY,
        LIMIT. LIMIT is omitted when the descriptor's limit is <= 0.
        """
        sql = SelectClauses.from_descriptor(descriptor).render()
        self._check(sql)
        return Statement(sql=sql, params=descriptor.parameters)

    def build_insert(
        self,
        table_name: str,
        column_values: Optional[Mapping[str, Any]],
        user_id: Any,
        business_unit: Any,
    ) -> InsertStatement:
        """
        Render an INSERT for one record.

        Steps:
        1. Generate a surrogate id when the id column is absent
        2. Drop columns whose name is blank
        3. Set the creator column to ``user_id`` (always)
        4. Set the business unit column to ``business_unit`` if absent

        Args:
            table_name: Target table
            column_values: Column name -> value
            user_id: Caller user id, written to the creator column
            business_unit: Caller business unit, used when none is supplied

        Returns:
            InsertStatement whose params hold every bound value

        Raises:
            ValidationError: If column_values is empty
        """
        if not column_values:
            raise ValidationError(
                "Column values cannot be null or empty",
                code=ErrorCode.ERR_COLUMN_VALUES_EMPTY,
                details={"table": table_name},
            )

        id_column = self.settings.id_column
        values: Dict[str, Any] = dict(column_values)
        if id_column not in values:
            values[id_column] = str(uuid.uuid4())

        values = {
            column: value
            for column, value in values.items()
            if isinstance(column, str) and column.strip()
        }

        values[self.settings.creator_column] = user_id
        if self.settings.business_unit_column not in values:
            values[self.settings.business_unit_column] = business_unit

        columns = ", ".join(values)
        placeholders = ", ".join(placeholder(column) for column in values)
        sql = f"INSERT INTO {table_name} ({columns}) VALUES ({placeholders})"

        self._check(sql)
        return InsertStatement(sql=sql, params=values, record_id=values.get(id_column))

    def build_update(
        self,
        table_name: str,
        record_id: Any,
        column_values: Optional[Mapping[str, Any]],
    ) -> Statement:
        """
        Render an UPDATE of one record by id.

        Raises:
            ValidationError: If column_values is empty, or it tries to set
                the id column (its placeholder would collide with the
                record id)
        """
        if not column_values:
            raise ValidationError(
                "No column values provided for the update",
                code=ErrorCode.ERR_COLUMN_VALUES_EMPTY,
                details={"table": table_name},
            )

        id_column = self.settings.id_column
        values = {
            column: value
            for column, value in column_values.items()
            if isinstance(column, str) and column.strip()
        }
        if not values:
            raise ValidationError(
                "No valid column names provided for the update",
                code=ErrorCode.ERR_COLUMN_VALUES_EMPTY,
                details={"table": table_name},
            )
        if id_column in values:
            raise ValidationError(
                f"Column '{id_column}' identifies the record and cannot be updated",
                details={"table": table_name, "column": id_column},
            )

        set_clause = ", ".join(f"{column} = {placeholder(column)}" for column in values)
        sql = f"UPDATE {table_name} SET {set_clause} WHERE {id_column} = {placeholder(id_column)}"

        self._check(sql)
        params = dict(values)
        params[id_column] = record_id
        return Statement(sql=sql, params=params)

    def validate_sql(self, sql: str, dialect: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        """
        Validate SQL syntax.

        Args:
            sql: SQL statement to validate
            dialect: sqlglot dialect (defaults to Settings.sql_dialect)

        Returns:
            Tuple of (is_valid, error_message)
        """
        dialect = dialect or self.settings.sql_dialect

        try:
            sqlglot.parse_one(sql, read=dialect)
            return True, None
        except (ParseError, TokenError) as e:
            return False, str(e)

    def _check(self, sql: str) -> None:
        logger.debug(f"Built statement: {sql}")
        if not self.settings.validate_sql:
            return

        is_valid, error = self.validate_sql(sql)
        if not is_valid:
            raise ValidationError(
                f"Statement failed validation: {error}",
                code=ErrorCode.ERR_SQL_INVALID,
                details={"sql": sql},
            )

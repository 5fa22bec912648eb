"""
Statement Executor

Runs rendered statements on a borrowed DB-API connection and maps rows to
ResultRow.

DESIGN PRINCIPLES:
-----------------
1. The connection belongs to the caller: never opened, committed or closed here
2. Every cursor is closed on every exit path
3. Statements use "@name" placeholders; they are rewritten to the driver's
   paramstyle just before execution
4. Driver errors propagate unchanged (no wrapping, no retries)

Usage:
    executor = Executor(paramstyle="named")        # sqlite3
    rows = executor.fetch_many(
        "SELECT * FROM orders WHERE total > @min_total",
        {"min_total": 10},
        connection,
    )
"""

import logging
import re
import time
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from scopedsql.builder import PARAM_PREFIX
from scopedsql.config import SUPPORTED_PARAMSTYLES, Settings, get_settings
from scopedsql.exceptions import ConfigurationError
from scopedsql.models import ResultRow

logger = logging.getLogger(__name__)

# "@name" not preceded by a word char or "@" ("@@session" vars are left alone)
_PLACEHOLDER_RE = re.compile(rf"(?<![\w{PARAM_PREFIX}]){PARAM_PREFIX}([A-Za-z_]\w*)")


def normalize_value(value: Any) -> Any:
    """Map the zero/minimum date-time to None; other values pass through."""
    if isinstance(value, datetime):
        if value.replace(tzinfo=None) == datetime.min:
            return None
    elif isinstance(value, date):
        if value == date.min:
            return None
    return value


class Executor:
    """
    Executes statements against a DB-API 2.0 connection.

    Args:
        settings: Library settings (paramstyle and audit column names)
        paramstyle: Overrides Settings.paramstyle ("pyformat", "named", "qmark")
    """

    def __init__(self, settings: Optional[Settings] = None, paramstyle: Optional[str] = None):
        self.settings = settings or get_settings()
        self.paramstyle = (paramstyle or self.settings.paramstyle).lower()
        if self.paramstyle not in SUPPORTED_PARAMSTYLES:
            raise ConfigurationError(
                f"Unsupported paramstyle: {self.paramstyle}. "
                f"Available: {', '.join(SUPPORTED_PARAMSTYLES)}",
                details={"paramstyle": self.paramstyle},
            )

    # =========================================================================
    # Placeholder conversion
    # =========================================================================

    def convert_placeholders(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> Tuple[str, Union[Dict[str, Any], List[Any]]]:
        """
        Convert "@name" placeholders to the driver paramstyle.

        - pyformat: %(name)s  (mysql-connector)
        - named:    :name     (sqlite3)
        - qmark:    ?         (values reordered into a list)

        Returns:
            (converted_sql, params) where params is a dict, or a list for qmark
        """
        params = dict(params or {})

        if self.paramstyle == "qmark":
            ordered: List[Any] = []

            def _qmark(match):
                ordered.append(params[match.group(1)])
                return "?"

            return _PLACEHOLDER_RE.sub(_qmark, sql), ordered

        if self.paramstyle == "named":
            return _PLACEHOLDER_RE.sub(r":\1", sql), params

        return _PLACEHOLDER_RE.sub(r"%(\1)s", sql), params

    # =========================================================================
    # Execution
    # =========================================================================

    def run_non_query(self, sql: str, connection, params: Optional[Mapping[str, Any]] = None) -> None:
        """Execute a statement that returns no rows (INSERT, UPDATE, DELETE, DDL)."""
        driver_sql, driver_params = self.convert_placeholders(sql, params)
        start_time = time.perf_counter()

        cursor = connection.cursor()
        try:
            self._execute(cursor, driver_sql, driver_params)
            execution_time = (time.perf_counter() - start_time) * 1000
            logger.info(f"SQL executed successfully: {cursor.rowcount} row(s) affected ({execution_time:.1f} ms)")
        finally:
            cursor.close()

    def fetch_by_id(
        self,
        sql: str,
        record_id: Any,
        connection,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ResultRow]:
        """
        Fetch a single record.

        ``record_id`` is bound as "@<id column>". Extra ``params`` carry the
        read-scope values. Zero dates are returned as None.

        Returns:
            The first matching row, or None
        """
        bound = dict(params or {})
        bound[self.settings.id_column] = record_id
        driver_sql, driver_params = self.convert_placeholders(sql, bound)

        cursor = connection.cursor()
        try:
            self._execute(cursor, driver_sql, driver_params)
            columns = self._column_names(cursor)
            # drain the result so drivers with unbuffered cursors can close cleanly
            rows = cursor.fetchall() if cursor.description else []
        finally:
            cursor.close()

        row = rows[0] if rows else None
        if row is None:
            logger.debug("No record found")
            return None

        return ResultRow(tuple(
            (name, normalize_value(value)) for name, value in zip(columns, row)
        ))

    def fetch_many(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        connection,
        normalize_dates: bool = False,
    ) -> List[ResultRow]:
        """
        Fetch all rows of a query, in store order.

        Values are returned raw unless ``normalize_dates`` is set, in which
        case zero dates become None as on the by-id path.
        """
        driver_sql, driver_params = self.convert_placeholders(sql, params)
        start_time = time.perf_counter()

        cursor = connection.cursor()
        try:
            self._execute(cursor, driver_sql, driver_params)
            columns = self._column_names(cursor)
            rows = cursor.fetchall() if cursor.description else []
        finally:
            cursor.close()

        execution_time = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Fetched {len(rows)} row(s) in {execution_time:.1f} ms")

        if normalize_dates:
            return [
                ResultRow(tuple((name, normalize_value(value)) for name, value in zip(columns, row)))
                for row in rows
            ]
        return [ResultRow(tuple(zip(columns, row))) for row in rows]

    def insert_and_return_id(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]],
        user_id: Any,
        business_unit: Any,
        connection,
    ) -> Optional[int]:
        """
        Execute an INSERT and return the id the store generated for it.

        The creator column is always bound to ``user_id``; the business unit
        column is bound to ``business_unit`` unless ``params`` already has it.
        The generated id comes back with the insert result
        (cursor.lastrowid), so no second query is issued.

        Returns:
            The generated id, or None if the driver reported none
        """
        bound = dict(params or {})
        bound[self.settings.creator_column] = user_id
        if self.settings.business_unit_column not in bound:
            bound[self.settings.business_unit_column] = business_unit

        driver_sql, driver_params = self.convert_placeholders(sql, bound)

        cursor = connection.cursor()
        try:
            self._execute(cursor, driver_sql, driver_params)
            row_id = cursor.lastrowid
        finally:
            cursor.close()

        if row_id is None:
            logger.warning("Insert succeeded but the driver reported no generated id")
            return None

        logger.info(f"Inserted record with row id {row_id}")
        return int(row_id)

    # =========================================================================

    def _execute(self, cursor, sql: str, params) -> None:
        logger.debug(f"Executing: {sql}")
        if params:
            cursor.execute(sql, params)
        else:
            cursor.execute(sql)

    def _column_names(self, cursor) -> List[str]:
        if not cursor.description:
            return []
        return [desc[0] for desc in cursor.description]

"""
Row-Level Read Permissions for scopedsql

Turns a caller's permission grants into a filter predicate that is ANDed
onto every read.

HOW IT WORKS:
-------------
1. Caller builds an ExecutionContext (user, business unit, ordered grants)
2. The first grant's read level decides the scope:
   - DENIED         -> no rows
   - OWNER          -> rows the caller created
   - BUSINESS_UNIT  -> rows in the caller's business unit(s)
   - UNRESTRICTED   -> see below
3. The predicate is bound (never interpolated) and merged with any
   existing filter using AND

TWO ENTRY POINTS:
-----------------
Single record by id (resolve_record_access / apply_record_permissions):
    - DENIED raises AuthorizationError before any SQL is built
    - UNRESTRICTED adds nothing
    - the base statement already filters by id, so the predicate is
      always joined with AND

Generic query (resolve_query_access / apply_query_permissions):
    - DENIED adds "1=2" so the query returns no rows instead of failing
    - BUSINESS_UNIT collects every BUSINESS_UNIT grant in the sequence
      into one IN list, in grant order, duplicates kept
    - UNRESTRICTED authorizes nothing and raises AuthorizationError
    - the predicate is ANDed only when a filter already exists

Only the first grant is acted on in both paths; later grants matter only
for the BUSINESS_UNIT aggregation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from scopedsql.builder import placeholder
from scopedsql.config import Settings, get_settings
from scopedsql.exceptions import AuthorizationError, ErrorCode, ValidationError
from scopedsql.models import AccessLevel, ExecutionContext, PermissionGrant, QueryDescriptor

logger = logging.getLogger(__name__)

# Bound parameter names used by the predicates
CALLER_USER_PARAM = "callerUserId"
CALLER_BUSINESS_UNIT_PARAM = "callerBusinessUnit"
BUSINESS_UNIT_PARAM_PREFIX = "bu"

# Predicate that matches no row
DENY_ALL_PREDICATE = "1=2"


@dataclass
class ReadScope:
    """
    Result of read permission evaluation.

    Contains the predicate to inject and metadata for auditing.
    """
    level: Optional[AccessLevel] = None
    allowed: bool = False
    predicate: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None


class PermissionResolver:
    """Resolves read scopes from the grants in an ExecutionContext."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Single record by id
    # -------------------------------------------------------------------------

    def resolve_record_access(self, context: ExecutionContext) -> ReadScope:
        """
        Decide the read scope for a single-record lookup.

        Raises:
            AuthorizationError: If the first grant is DENIED or there are no grants
        """
        grant = self._first_grant(context)
        level = grant.read_level

        if level == AccessLevel.DENIED:
            logger.warning(f"Read denied for user {context.user_id}")
            raise AuthorizationError(
                "User does not have read permissions.",
                details={"user_id": context.user_id, "entity": grant.entity_name},
            )

        if level == AccessLevel.OWNER:
            return ReadScope(
                level=level,
                allowed=True,
                predicate=f"{self.settings.creator_column} = {placeholder(CALLER_USER_PARAM)}",
                params={CALLER_USER_PARAM: context.user_id},
                reason=f"Owner scope: {self.settings.creator_column} = caller",
            )

        if level == AccessLevel.BUSINESS_UNIT:
            return ReadScope(
                level=level,
                allowed=True,
                predicate=f"{self.settings.business_unit_column} = {placeholder(CALLER_BUSINESS_UNIT_PARAM)}",
                params={CALLER_BUSINESS_UNIT_PARAM: context.business_unit},
                reason=f"Business unit scope: {self.settings.business_unit_column} = caller business unit",
            )

        return ReadScope(level=level, allowed=True, reason="Unrestricted read")

    def apply_record_permissions(self, context: ExecutionContext, sql: str) -> Tuple[str, Dict[str, Any]]:
        """
        Append the record read predicate to a statement that already has a WHERE.

        Returns:
            (sql, params) where params are the predicate's bound values
        """
        scope = self.resolve_record_access(context)
        if not scope.predicate:
            return sql, {}

        logger.debug(f"Record read scope: {scope.reason}")
        return f"{sql} AND {scope.predicate}", dict(scope.params)

    # -------------------------------------------------------------------------
    # Generic query
    # -------------------------------------------------------------------------

    def resolve_query_access(self, context: ExecutionContext, table_name: str) -> ReadScope:
        """
        Decide the read scope for a generic query on ``table_name``.

        Raises:
            AuthorizationError: If no grant authorizes the read
        """
        grant = self._first_grant(context)
        level = grant.read_level

        if level == AccessLevel.DENIED:
            return ReadScope(
                level=level,
                allowed=False,
                predicate=DENY_ALL_PREDICATE,
                reason="Read denied: query returns no rows",
            )

        if level == AccessLevel.OWNER:
            return ReadScope(
                level=level,
                allowed=True,
                predicate=f"{table_name}.{self.settings.creator_column} = {placeholder(CALLER_USER_PARAM)}",
                params={CALLER_USER_PARAM: context.user_id},
                reason=f"Owner scope on {table_name}",
            )

        if level == AccessLevel.BUSINESS_UNIT:
            business_units = [
                g.business_unit_id for g in context.grants
                if g.read_level == AccessLevel.BUSINESS_UNIT
            ]
            params = {
                f"{BUSINESS_UNIT_PARAM_PREFIX}{index}": unit
                for index, unit in enumerate(business_units)
            }
            in_list = ", ".join(placeholder(name) for name in params)
            return ReadScope(
                level=level,
                allowed=True,
                predicate=f"{table_name}.{self.settings.business_unit_column} IN ({in_list})",
                params=params,
                reason=f"Business unit scope on {table_name}: {len(business_units)} unit(s)",
            )

        logger.warning(f"No read scope granted to user {context.user_id} on {table_name}")
        raise AuthorizationError(
            "User does not have the required read permissions.",
            details={"user_id": context.user_id, "table": table_name, "level": int(level)},
        )

    def apply_query_permissions(self, context: ExecutionContext, descriptor: QueryDescriptor) -> ReadScope:
        """
        Merge the read predicate into ``descriptor`` in place.

        The predicate's parameters are added to descriptor.parameters.

        Returns:
            The ReadScope that was applied

        Raises:
            ValidationError: If a caller parameter uses a name reserved for
                the read predicate
        """
        scope = self.resolve_query_access(context, descriptor.table_name)

        clashes = sorted(set(descriptor.parameters) & set(scope.params))
        if clashes:
            raise ValidationError(
                f"Query parameters collide with read scope parameters: {', '.join(clashes)}",
                code=ErrorCode.ERR_QUERY_INVALID,
                details={"table": descriptor.table_name, "parameters": clashes},
            )

        add_filter_condition(descriptor, scope.predicate)
        descriptor.parameters.update(scope.params)

        logger.debug(f"Query read scope: {scope.reason}")
        return scope

    # -------------------------------------------------------------------------

    def _first_grant(self, context: ExecutionContext) -> PermissionGrant:
        if not context.grants:
            raise AuthorizationError(
                "User has no permissions.",
                code=ErrorCode.ERR_NO_PERMISSIONS,
                details={"user_id": context.user_id},
            )
        return context.grants[0]


def add_filter_condition(descriptor: QueryDescriptor, condition: Optional[str]) -> None:
    """
    AND a condition onto the descriptor filter.

    An existing filter is parenthesized so an OR inside it cannot escape the
    condition. An empty filter is replaced by the bare condition.
    """
    if not condition:
        return

    if descriptor.filter and descriptor.filter.strip():
        descriptor.filter = f"({descriptor.filter}) AND {condition}"
    else:
        descriptor.filter = condition

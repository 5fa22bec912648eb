"""
scopedsql Data Models

Pydantic models for data handed in by callers (grants, query descriptors,
record payloads) and dataclasses for values the library produces or only
passes through (execution context, result rows).
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field

from scopedsql.config import get_settings

T = TypeVar("T")


# =============================================================================
# Permissions
# =============================================================================

class AccessLevel(IntEnum):
    """Access level carried by a permission grant."""
    DENIED = -1
    UNRESTRICTED = 0
    OWNER = 1
    BUSINESS_UNIT = 2


class PermissionGrant(BaseModel):
    """A single permission grant for one entity."""

    user_id: Optional[str] = Field(None, description="Grantee user id")
    business_unit_id: Optional[str] = Field(None, description="Business unit the grant is scoped to")
    read_level: AccessLevel = Field(default=AccessLevel.UNRESTRICTED)
    write_level: AccessLevel = Field(default=AccessLevel.UNRESTRICTED)
    delete_level: AccessLevel = Field(default=AccessLevel.UNRESTRICTED)
    entity_name: Optional[str] = Field(None, description="Entity (table) the grant applies to")


# =============================================================================
# Query / Record Payloads
# =============================================================================

def _default_limit() -> int:
    return get_settings().default_limit


class QueryDescriptor(BaseModel):
    """
    Structured description of a SELECT.

    The clause fields are inserted into the statement verbatim and must come
    from trusted code. Values go in ``parameters`` and are referenced from
    the clauses as ``@name``.
    """

    table_name: str
    columns: str = "*"
    join_clause: str = ""
    filter: str = ""
    group_by: str = ""
    having_clause: str = ""
    order_by: str = ""
    limit: int = Field(default_factory=_default_limit)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    token: Optional[str] = None


class RecordModel(BaseModel):
    """Record payload passed to create/update/delete operations and plugins."""

    token: Optional[str] = None
    table_name: Optional[str] = None
    id: Optional[str] = None
    ids: List[str] = Field(default_factory=list)

    column_values: Dict[str, Any] = Field(default_factory=dict)
    updated_column_values: Dict[str, Any] = Field(default_factory=dict)
    deleted_column_values: Dict[str, Any] = Field(default_factory=dict)
    attachments: Dict[str, List[str]] = Field(default_factory=dict)

    def _active_values(self) -> Dict[str, Any]:
        # A delete carries the removed row's values
        return self.deleted_column_values if self.deleted_column_values else self.column_values

    def get_column_value(self, column_name: str) -> Optional[str]:
        """
        Fetch a column value as a string.

        Reads from deleted_column_values when it is populated, otherwise from
        column_values.

        Returns:
            The value as a string, or None if the column is absent or null
        """
        values = self._active_values()
        if column_name not in values or values[column_name] is None:
            return None
        return str(values[column_name])

    def get_typed_value(self, column_name: str, type_: Type[T], default: Optional[T] = None) -> Optional[T]:
        """
        Fetch a column value converted to ``type_``.

        Returns ``default`` when the column is absent or conversion fails.
        """
        values = self._active_values()
        if column_name not in values:
            return default

        value = values[column_name]
        if isinstance(value, type_):
            return value
        try:
            return type_(value)
        except (TypeError, ValueError):
            return default


# =============================================================================
# Execution Context
# =============================================================================

@dataclass(frozen=True)
class ExecutionContext:
    """
    Everything one logical operation needs about its caller.

    The connection is borrowed: scopedsql never opens, commits or closes it.
    """

    connection: Any
    user_id: str
    business_unit: Optional[str] = None
    grants: Sequence[PermissionGrant] = field(default_factory=tuple)
    user_name: Optional[str] = None
    record_id: Optional[str] = None
    model: Optional[RecordModel] = None

    def __post_init__(self):
        object.__setattr__(self, "grants", tuple(self.grants))


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ResultRow:
    """
    One result row as ordered (column, value) pairs.

    Column order is the store's. Duplicate column names (from joins) are
    kept; lookup by name returns the first match.
    """

    items: Tuple[Tuple[str, Any], ...]

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, key: Union[int, str]) -> Any:
        if isinstance(key, int):
            return self.items[key][1]
        for name, value in self.items:
            if name == key:
                return value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return any(name == key for name, _ in self.items)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    @property
    def columns(self) -> List[str]:
        return [name for name, _ in self.items]

    @property
    def values(self) -> List[Any]:
        return [value for _, value in self.items]

    def as_dict(self) -> Dict[str, Any]:
        """Collapse to a dict; later duplicate columns overwrite earlier ones."""
        return dict(self.items)


@dataclass(frozen=True)
class CreatedRecord:
    """
    Identifiers of an inserted row.

    Attributes:
        id: Surrogate identifier written to the id column (generated when
            the caller did not supply one)
        row_id: Numeric identifier generated by the store for the insert,
            or None if the driver reported none
    """
    id: Any
    row_id: Optional[int]

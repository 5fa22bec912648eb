import pytest

from scopedsql.exceptions import AuthorizationError, ErrorCode, ValidationError
from scopedsql.models import AccessLevel, QueryDescriptor
from scopedsql.permissions import PermissionResolver, add_filter_condition


@pytest.fixture
def resolver(settings):
    return PermissionResolver(settings)


# =============================================================================
# Single record by id
# =============================================================================

@pytest.mark.parametrize("table", ["orders", "invoices", "contacts"])
def test_record_denied_raises(resolver, make_context, table):
    """DENIED on the by-id path always fails before SQL is built"""
    context = make_context(AccessLevel.DENIED)

    with pytest.raises(AuthorizationError) as exc_info:
        resolver.apply_record_permissions(context, f"SELECT * FROM {table} WHERE id = @id")

    assert exc_info.value.code == ErrorCode.ERR_PERMISSION_DENIED


def test_record_owner_appends_creator_predicate(resolver, make_context):
    context = make_context(AccessLevel.OWNER)

    sql, params = resolver.apply_record_permissions(context, "SELECT * FROM orders WHERE id = @id")

    assert sql == "SELECT * FROM orders WHERE id = @id AND creatorId = @callerUserId"
    assert params == {"callerUserId": "u1"}


def test_record_business_unit_appends_unit_predicate(resolver, make_context):
    context = make_context(AccessLevel.BUSINESS_UNIT, business_unit="b7")

    sql, params = resolver.apply_record_permissions(context, "SELECT * FROM orders WHERE id = @id")

    assert sql == "SELECT * FROM orders WHERE id = @id AND businessUnitId = @callerBusinessUnit"
    assert params == {"callerBusinessUnit": "b7"}


def test_record_unrestricted_leaves_statement_alone(resolver, make_context):
    context = make_context(AccessLevel.UNRESTRICTED)

    sql, params = resolver.apply_record_permissions(context, "SELECT * FROM orders WHERE id = @id")

    assert sql == "SELECT * FROM orders WHERE id = @id"
    assert params == {}


def test_record_only_first_grant_is_consulted(resolver, make_context):
    """A later DENIED grant does not override an OWNER first grant"""
    context = make_context(AccessLevel.OWNER, AccessLevel.DENIED)

    sql, _ = resolver.apply_record_permissions(context, "SELECT * FROM orders WHERE id = @id")

    assert sql.endswith("AND creatorId = @callerUserId")


def test_record_without_grants_raises(resolver, make_context):
    context = make_context()

    with pytest.raises(AuthorizationError) as exc_info:
        resolver.resolve_record_access(context)

    assert exc_info.value.code == ErrorCode.ERR_NO_PERMISSIONS


# =============================================================================
# Generic query
# =============================================================================

def test_query_owner_sets_sole_filter(resolver, make_context):
    """OWNER on an empty filter: qualified predicate, no leading AND"""
    context = make_context(AccessLevel.OWNER)
    descriptor = QueryDescriptor(table_name="orders", filter="")

    scope = resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "orders.creatorId = @callerUserId"
    assert descriptor.parameters == {"callerUserId": "u1"}
    assert scope.allowed is True
    assert scope.level == AccessLevel.OWNER


def test_query_owner_ands_onto_existing_filter(resolver, make_context):
    context = make_context(AccessLevel.OWNER)
    descriptor = QueryDescriptor(
        table_name="orders",
        filter="orders.total > @min_total",
        parameters={"min_total": 5},
    )

    resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "(orders.total > @min_total) AND orders.creatorId = @callerUserId"
    assert descriptor.parameters == {"min_total": 5, "callerUserId": "u1"}


def test_query_business_unit_collects_all_unit_grants_in_order(resolver, make_context):
    context = make_context(
        AccessLevel.BUSINESS_UNIT,
        AccessLevel.BUSINESS_UNIT,
        AccessLevel.BUSINESS_UNIT,
        business_units=["b1", "b2", "b3"],
    )
    descriptor = QueryDescriptor(table_name="orders")

    resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "orders.businessUnitId IN (@bu0, @bu1, @bu2)"
    assert descriptor.parameters == {"bu0": "b1", "bu1": "b2", "bu2": "b3"}


def test_query_business_unit_keeps_duplicates(resolver, make_context):
    context = make_context(
        AccessLevel.BUSINESS_UNIT,
        AccessLevel.BUSINESS_UNIT,
        AccessLevel.BUSINESS_UNIT,
        business_units=["b1", "b2", "b1"],
    )
    descriptor = QueryDescriptor(table_name="orders")

    resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "orders.businessUnitId IN (@bu0, @bu1, @bu2)"
    assert list(descriptor.parameters.values()) == ["b1", "b2", "b1"]


def test_query_business_unit_skips_grants_of_other_levels(resolver, make_context):
    context = make_context(
        AccessLevel.BUSINESS_UNIT,
        AccessLevel.OWNER,
        AccessLevel.BUSINESS_UNIT,
        business_units=["b1", "bx", "b3"],
    )
    descriptor = QueryDescriptor(table_name="orders")

    resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "orders.businessUnitId IN (@bu0, @bu1)"
    assert descriptor.parameters == {"bu0": "b1", "bu1": "b3"}


def test_query_first_grant_wins_over_later_business_unit(resolver, make_context):
    """OWNER first, BUSINESS_UNIT later: only the owner predicate applies"""
    context = make_context(AccessLevel.OWNER, AccessLevel.BUSINESS_UNIT)
    descriptor = QueryDescriptor(table_name="orders")

    resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "orders.creatorId = @callerUserId"
    assert "bu0" not in descriptor.parameters


def test_query_denied_appends_false_predicate(resolver, make_context):
    """DENIED on the generic path narrows to no rows instead of raising"""
    context = make_context(AccessLevel.DENIED)
    descriptor = QueryDescriptor(table_name="orders", filter="status = 'open'")

    scope = resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == "(status = 'open') AND 1=2"
    assert scope.allowed is False


def test_query_unrestricted_is_not_authorized(resolver, make_context):
    context = make_context(AccessLevel.UNRESTRICTED)
    descriptor = QueryDescriptor(table_name="orders")

    with pytest.raises(AuthorizationError):
        resolver.apply_query_permissions(context, descriptor)

    assert descriptor.filter == ""


def test_query_without_grants_raises(resolver, make_context):
    with pytest.raises(AuthorizationError):
        resolver.apply_query_permissions(make_context(), QueryDescriptor(table_name="orders"))


def test_custom_audit_columns(make_context):
    from scopedsql.config import Settings

    resolver = PermissionResolver(Settings(creator_column="createdbyid"))
    descriptor = QueryDescriptor(table_name="orders")

    resolver.apply_query_permissions(make_context(AccessLevel.OWNER), descriptor)

    assert descriptor.filter == "orders.createdbyid = @callerUserId"


# =============================================================================
# add_filter_condition
# =============================================================================

def test_add_filter_condition_ignores_whitespace_filter():
    descriptor = QueryDescriptor(table_name="t", filter="   ")

    add_filter_condition(descriptor, "a = 1")

    assert descriptor.filter == "a = 1"


def test_add_filter_condition_chains():
    descriptor = QueryDescriptor(table_name="t")

    add_filter_condition(descriptor, "a = 1")
    add_filter_condition(descriptor, "b = 2")

    assert descriptor.filter == "(a = 1) AND b = 2"


def test_add_filter_condition_keeps_or_inside_existing_filter():
    descriptor = QueryDescriptor(table_name="orders", filter="status = 'open' OR status = 'closed'")

    add_filter_condition(descriptor, "orders.creatorId = @callerUserId")

    assert descriptor.filter == "(status = 'open' OR status = 'closed') AND orders.creatorId = @callerUserId"


@pytest.mark.parametrize(
    "level, reserved",
    [(AccessLevel.OWNER, "callerUserId"), (AccessLevel.BUSINESS_UNIT, "bu0")],
)
def test_query_parameter_name_clash_raises(resolver, make_context, level, reserved):
    """A caller parameter named like a scope parameter is rejected, not rebound"""
    descriptor = QueryDescriptor(
        table_name="orders",
        filter=f"orders.status = @{reserved}",
        parameters={reserved: "open"},
    )

    with pytest.raises(ValidationError) as exc_info:
        resolver.apply_query_permissions(make_context(level), descriptor)

    assert exc_info.value.details["parameters"] == [reserved]
    assert descriptor.filter == f"orders.status = @{reserved}"
    assert descriptor.parameters == {reserved: "open"}

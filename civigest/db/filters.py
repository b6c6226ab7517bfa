from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from civigest.db.base import Base
from civigest.models import agents as _agents  # noqa: F401  (register tenant-scoped mappers)
from civigest.models import records as _records  # noqa: F401  (register tenant-scoped mappers)
from civigest.models.tenancy import TenantScopedMixin
from civigest.security.scope import QueryConstraint, Unconstrained

SCOPE_KEY = "scope"


def tenant_scoped_models() -> list[type]:
    return [m.class_ for m in Base.registry.mappers if issubclass(m.class_, TenantScopedMixin)]


def apply_scope(stmt, scope: QueryConstraint):
    """
    Add the scope's criteria for every tenant-scoped model the statement may load.

    Plain expressions are used (not lambdas) so the per-caller id lists are
    bound parameters and never end up in a cached statement.
    """

    if isinstance(scope, Unconstrained):
        return stmt
    return stmt.options(
        *(
            with_loader_criteria(model, scope.criteria(model), include_aliases=True)
            for model in tenant_scoped_models()
        )
    )


def bind_scope(session: Session, scope: QueryConstraint) -> None:
    session.info[SCOPE_KEY] = scope


@event.listens_for(Session, "do_orm_execute")
def _apply_tenant_scope(execute_state) -> None:
    """
    Transparent tenant scoping.

    Any `select(Department)` run on a session with a bound scope only sees
    rows inside it. Use `execution_options(skip_tenant_scope=True)` for the
    few internal lookups that must see everything.
    """

    if not execute_state.is_select:
        return

    scope = execute_state.session.info.get(SCOPE_KEY)
    if scope is None:
        return

    if execute_state.execution_options.get("skip_tenant_scope", False):
        return

    execute_state.statement = apply_scope(execute_state.statement, scope)

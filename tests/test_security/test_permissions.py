"""
Tests for role -> permission resolution.

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest
from sqlalchemy import select

from civigest.models.security import AccountRole, RolePermission
from civigest.security.permissions import (
    format_permission,
    load_role_assignments,
    parse_permission,
    resolve_capabilities,
    resolve_permissions,
    resolve_role_names,
)
from tests.factories import make_account


def test_format_permission_normalizes_case_and_whitespace():
    assert format_permission(" Departments ", "READ") == "departments:read"


@pytest.mark.parametrize("value", ["departments", "departments:", ":read", ""])
def test_parse_permission_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        parse_permission(value)


def test_parse_permission_returns_pair():
    assert parse_permission("patrols:update") == ("patrols", "update")


def test_union_of_role_permissions(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector", "Administrador Municipal"))

    assignments = load_role_assignments(db_session, account.id)

    assert resolve_role_names(assignments) == ["Administrador Municipal", "Lector"]
    assert resolve_permissions(assignments) == {
        "departments:read",
        "departments:create",
        "departments:update",
        "patrols:read",
        "patrols:create",
    }


def test_resolution_ignores_order_and_duplicates(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector", "Administrador Municipal"))
    assignments = load_role_assignments(db_session, account.id)

    forward = resolve_permissions(assignments)
    backward = resolve_permissions(list(reversed(assignments)))
    doubled = resolve_permissions(assignments + assignments)

    assert forward == backward == doubled
    assert resolve_role_names(assignments + assignments) == ["Administrador Municipal", "Lector"]


def test_no_roles_resolves_to_empty_set(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Usuario",))

    assignments = load_role_assignments(db_session, account.id)

    assert resolve_role_names(assignments) == ["Usuario"]
    assert resolve_permissions(assignments) == frozenset()


def test_inactive_role_permission_link_is_ignored(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector",))
    link = db_session.scalars(
        select(RolePermission).where(RolePermission.role_id == world.roles["Lector"].id)
    ).one()
    link.is_active = False
    db_session.commit()

    assert resolve_permissions(load_role_assignments(db_session, account.id)) == frozenset()


def test_inactive_permission_is_ignored(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector",))
    world.permissions["departments:read"].is_active = False
    db_session.commit()

    assert resolve_permissions(load_role_assignments(db_session, account.id)) == frozenset()


def test_inactive_role_contributes_nothing(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector", "Usuario"))
    world.roles["Lector"].is_active = False
    db_session.commit()

    assignments = load_role_assignments(db_session, account.id)

    assert resolve_role_names(assignments) == ["Usuario"]
    assert resolve_permissions(assignments) == frozenset()


def test_inactive_assignment_is_not_loaded(db_session, world):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector",))
    assignment = db_session.scalars(select(AccountRole).where(AccountRole.account_id == account.id)).one()
    assignment.is_active = False
    db_session.commit()

    assert load_role_assignments(db_session, account.id) == []


def test_capabilities_come_from_role_names():
    assert resolve_capabilities(["Lector", "Super Administrador"], "Super Administrador").unrestricted is True
    assert resolve_capabilities(["Administrador Municipal"], "Super Administrador").unrestricted is False
    assert resolve_capabilities([], "Super Administrador").unrestricted is False

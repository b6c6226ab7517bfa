"""
Tests for login, registration and re-issue.

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from civigest.models.security import AccessLevel, Account, AccountRole
from civigest.schemas.auth import RegisterIn
from civigest.security.credentials import CredentialConfig, decode_credential
from civigest.security.errors import BadRequest, Conflict, InvalidCredential
from civigest.security.passwords import dummy_password_hash, verify_password
from civigest.services import auth_service
from tests.factories import DEFAULT_PASSWORD, make_account


def _register_payload(**overrides) -> RegisterIn:
    data = {
        "email": "admin@example.com",
        "username": "admin",
        "password": DEFAULT_PASSWORD,
        "first_name": "Ana",
        "last_name": "Lopez",
        "region_id": 5,
        "sub_region_id": 51,
    }
    data.update(overrides)
    return RegisterIn(**data)


def _account_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Account))


# ---- Login ----------------------------------------------------------------------------


def test_login_issues_credential_with_resolved_permissions(db_session, world, settings):
    account = make_account(db_session, world, email="a@example.com", roles=("Lector",))

    result = auth_service.login(db_session, "a@example.com", DEFAULT_PASSWORD, settings)
    claims = decode_credential(result.credential.access_token, CredentialConfig.from_settings(settings))

    assert result.account.id == account.id
    assert result.roles == ["Lector"]
    assert claims.permissions == ("departments:read",)
    assert result.account.last_login_at is not None


@pytest.mark.parametrize(
    "email, password",
    [
        ("a@example.com", "wrong-password"),
        ("nobody@example.com", DEFAULT_PASSWORD),
    ],
)
def test_login_failures_are_indistinguishable(db_session, world, settings, email, password):
    make_account(db_session, world, email="a@example.com")

    with pytest.raises(InvalidCredential) as exc_info:
        auth_service.login(db_session, email, password, settings)
    assert exc_info.value.detail == "Invalid credentials"


def test_login_with_unknown_email_still_checks_a_password(db_session, world, settings):
    with patch("civigest.services.auth_service.verify_password", wraps=verify_password) as mock_verify:
        with pytest.raises(InvalidCredential):
            auth_service.login(db_session, "nobody@example.com", DEFAULT_PASSWORD, settings)

    mock_verify.assert_called_once_with(DEFAULT_PASSWORD, dummy_password_hash(settings.bcrypt_rounds))


def test_login_rejects_inactive_account(db_session, world, settings):
    make_account(db_session, world, email="a@example.com", is_active=False)

    with pytest.raises(InvalidCredential) as exc_info:
        auth_service.login(db_session, "a@example.com", DEFAULT_PASSWORD, settings)
    assert exc_info.value.detail == "Invalid credentials"


def test_login_rejects_inactive_region(db_session, world, settings):
    make_account(db_session, world, email="a@example.com")
    world.regions[5].is_active = False
    db_session.commit()

    with pytest.raises(InvalidCredential) as exc_info:
        auth_service.login(db_session, "a@example.com", DEFAULT_PASSWORD, settings)
    assert exc_info.value.detail == "Invalid credentials"


# ---- Register -------------------------------------------------------------------------


def test_register_assigns_default_role(db_session, world, settings):
    result = auth_service.register(db_session, _register_payload(), settings)
    claims = decode_credential(result.credential.access_token, CredentialConfig.from_settings(settings))

    assert result.roles == ["Usuario"]
    assert claims.roles == ("Usuario",)
    assert claims.permissions == ()
    assert claims.access_level is AccessLevel.SUB_REGION
    assert claims.region_id == 5
    assert claims.sub_region_id == 51

    assignment = db_session.scalars(select(AccountRole).where(AccountRole.account_id == result.account.id)).one()
    assert assignment.role_id == world.roles["Usuario"].id
    assert assignment.assigned_by == result.account.id


def test_register_stores_a_password_hash(db_session, world, settings):
    result = auth_service.register(db_session, _register_payload(), settings)

    assert result.account.password_hash != DEFAULT_PASSWORD
    assert result.account.password_hash.startswith("$2")


def test_register_rejects_sub_region_of_another_region(db_session, world, settings):
    with pytest.raises(BadRequest):
        auth_service.register(db_session, _register_payload(sub_region_id=71), settings)

    assert _account_count(db_session) == 0


def test_register_rejects_inactive_region(db_session, world, settings):
    world.regions[7].is_active = False
    db_session.commit()

    with pytest.raises(BadRequest):
        auth_service.register(db_session, _register_payload(region_id=7, sub_region_id=71), settings)

    assert _account_count(db_session) == 0


def test_register_rejects_inactive_sub_region(db_session, world, settings):
    world.sub_regions[52].is_active = False
    db_session.commit()

    with pytest.raises(BadRequest):
        auth_service.register(db_session, _register_payload(sub_region_id=52), settings)


def test_register_requires_sub_region_for_sub_region_access(db_session, world, settings):
    with pytest.raises(BadRequest):
        auth_service.register(db_session, _register_payload(sub_region_id=None), settings)


def test_register_region_access_without_sub_region(db_session, world, settings):
    payload = _register_payload(sub_region_id=None, access_level=AccessLevel.REGION)

    result = auth_service.register(db_session, payload, settings)

    assert result.account.access_level is AccessLevel.REGION
    assert result.account.sub_region_id is None


def test_register_cannot_self_assign_global_access(db_session, world, settings):
    with pytest.raises(BadRequest):
        auth_service.register(db_session, _register_payload(access_level=AccessLevel.GLOBAL), settings)

    assert _account_count(db_session) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"username": "someone-else"},
        {"email": "other@example.com"},
        {"email": "other@example.com", "username": "other", "document_number": "DOC-1"},
    ],
)
def test_register_duplicate_identity_is_a_conflict(db_session, world, settings, overrides):
    auth_service.register(db_session, _register_payload(document_number="DOC-1"), settings)

    with pytest.raises(Conflict):
        auth_service.register(db_session, _register_payload(**overrides), settings)

    assert _account_count(db_session) == 1


# ---- Re-issue -------------------------------------------------------------------------


def test_reissue_picks_up_new_roles(db_session, world, settings):
    from civigest.security.auth import validate_credential

    config = CredentialConfig.from_settings(settings)
    result = auth_service.register(db_session, _register_payload(), settings)
    caller = validate_credential(
        db_session, result.credential.access_token, config, unrestricted_role=settings.unrestricted_role
    )
    assert caller.permissions == frozenset()

    db_session.add(AccountRole(account_id=result.account.id, role_id=world.roles["Lector"].id))
    db_session.commit()

    fresh = auth_service.reissue(db_session, caller, settings)
    claims = decode_credential(fresh.credential.access_token, config)

    assert claims.roles == ("Lector", "Usuario")
    assert claims.permissions == ("departments:read",)

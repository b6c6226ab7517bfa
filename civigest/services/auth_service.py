"""
Login, registration and credential re-issue.

Every path that hands out a credential goes through `_issue_for`, which
resolves roles and permissions from storage (PermissionResolver), reads the
explicit grants (ScopeCollector) and signs the result (CredentialIssuer).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civigest.db.base import utcnow
from civigest.models.security import AccessLevel, Account, AccountRole, Role
from civigest.schemas.auth import RegisterIn
from civigest.security.auth import load_live_account
from civigest.security.context import CallerContext
from civigest.security.credentials import CredentialConfig, IssuedCredential, issue_credential
from civigest.security.errors import BadRequest, Conflict, Forbidden, InvalidCredential, UnknownOrInactiveAccount
from civigest.security.passwords import dummy_password_hash, hash_password, verify_password
from civigest.security.permissions import load_role_assignments, resolve_permissions, resolve_role_names
from civigest.security.scope import collect_scope_grants
from civigest.services.tenancy import require_active_region, require_active_sub_region
from civigest.settings import Settings

logger = logging.getLogger(__name__)

_GENERIC_LOGIN_FAILURE = "Invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    credential: IssuedCredential
    account: Account
    roles: list[str]


def _issue_for(db: Session, account: Account, settings: Settings) -> AuthResult:
    assignments = load_role_assignments(db, account.id)
    roles = resolve_role_names(assignments)
    permissions = resolve_permissions(assignments)
    grants = collect_scope_grants(db, account.id)

    credential = issue_credential(
        account,
        roles,
        permissions,
        grants.region_ids,
        grants.sub_region_ids,
        CredentialConfig.from_settings(settings),
    )
    return AuthResult(credential=credential, account=account, roles=roles)


def login(db: Session, email: str, password: str, settings: Settings) -> AuthResult:
    """
    Authenticate by email + password.

    Unknown email, wrong password, inactive account and inactive region all
    raise the same InvalidCredential so callers cannot tell them apart.
    """

    account = db.scalars(select(Account).where(Account.email == email)).first()

    # An unknown email still pays for one bcrypt check.
    stored_hash = account.password_hash if account is not None else dummy_password_hash(settings.bcrypt_rounds)
    if not verify_password(password, stored_hash) or account is None:
        logger.info("Login failed (bad email or password)")
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    if not account.is_live:
        logger.info("Login failed (inactive account) account_id=%s", account.id)
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    if not account.region.is_live:
        logger.info("Login failed (inactive region) account_id=%s region_id=%s", account.id, account.region_id)
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    account.last_login_at = utcnow()
    db.commit()

    logger.info("Login succeeded account_id=%s", account.id)
    return _issue_for(db, account, settings)


def _ensure_unique(db: Session, payload: RegisterIn) -> None:
    clauses = [Account.email == payload.email, Account.username == payload.username]
    if payload.document_number:
        clauses.append(Account.document_number == payload.document_number)

    for existing in db.scalars(select(Account).where(or_(*clauses))).all():
        if existing.email == payload.email:
            raise Conflict("Email already registered")
        if existing.username == payload.username:
            raise Conflict("Username already registered")
        raise Conflict("Document number already registered")


def register(db: Session, payload: RegisterIn, settings: Settings) -> AuthResult:
    """
    Create an account and log it in.

    Nothing is written unless every check passes; the account, its default
    role assignment and the commit happen together.
    """

    _ensure_unique(db, payload)

    if payload.access_level is AccessLevel.GLOBAL:
        raise BadRequest("GLOBAL access cannot be self-assigned")

    require_active_region(db, payload.region_id)
    if payload.sub_region_id is not None:
        require_active_sub_region(db, payload.sub_region_id, region_id=payload.region_id)
    elif payload.access_level is AccessLevel.SUB_REGION:
        raise BadRequest("SUB_REGION access requires a sub-region")

    account = Account(
        email=payload.email,
        username=payload.username,
        password_hash=hash_password(payload.password, rounds=settings.bcrypt_rounds),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone_number=payload.phone_number,
        document_number=payload.document_number,
        region_id=payload.region_id,
        sub_region_id=payload.sub_region_id,
        access_level=payload.access_level,
        is_active=True,
    )

    try:
        db.add(account)
        db.flush()

        default_role = db.scalars(select(Role).where(Role.name == settings.default_role, Role.is_active.is_(True))).first()
        if default_role is not None:
            db.add(AccountRole(account_id=account.id, role_id=default_role.id, assigned_by=account.id, is_active=True))
        else:
            logger.warning("Default role %r not found; account_id=%s registered without roles", settings.default_role, account.id)

        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Registration conflict on commit")
        raise Conflict("Email, username or document number already registered") from exc

    logger.info("Account registered account_id=%s region_id=%s", account.id, account.region_id)
    return _issue_for(db, account, settings)


def reissue(db: Session, caller: CallerContext, settings: Settings) -> AuthResult:
    """Build a fresh credential from live roles, permissions and grants."""

    if caller.is_agent:
        raise Forbidden("Agent credentials are refreshed through /agents/auth/refresh")
    try:
        account = load_live_account(db, caller.account_id, caller.email)
    except UnknownOrInactiveAccount:
        raise InvalidCredential() from None
    return _issue_for(db, account, settings)

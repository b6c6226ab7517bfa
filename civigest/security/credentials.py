"""
Issue and decode the signed credential (JWT) handed out at login/registration.

Background:
    The credential is a snapshot. At issue time it records who the caller is,
    their role names, their resolved permissions and their explicit tenant
    grants. The server keeps no copy. On each request the signature and expiry
    are checked here; `civigest.security.auth.validate_credential` then
    re-checks that the account and its region are still active.

    A permission revoked after issuance stays in the snapshot until the token
    expires (`token_ttl_seconds`) or the caller asks for a fresh one through
    `POST /auth/refresh`.

Two principals:
    Accounts and agents both get a credential of the same shape. The
    `principal` claim says which one it is, and each kind is signed with its
    own secret (`jwt_secret` / `agent_jwt_secret`), so a token can only be
    verified with the key that matches its claimed principal.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import jwt

from civigest.models.agents import Agent
from civigest.models.security import AccessLevel, Account
from civigest.settings import Settings

logger = logging.getLogger(__name__)

PRINCIPAL_ACCOUNT = "account"
PRINCIPAL_AGENT = "agent"
PRINCIPALS = (PRINCIPAL_ACCOUNT, PRINCIPAL_AGENT)


class CredentialError(Exception):
    """Raised when a token cannot be trusted. Do not log the token."""


@dataclass(frozen=True)
class CredentialConfig:
    secret: str
    algorithm: str
    issuer: str
    ttl_seconds: int
    clock_skew_seconds: int

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialConfig:
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            ttl_seconds=settings.token_ttl_seconds,
            clock_skew_seconds=settings.clock_skew_seconds,
        )

    @classmethod
    def for_agents(cls, settings: Settings) -> CredentialConfig:
        return cls(
            secret=settings.agent_jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            ttl_seconds=settings.agent_token_ttl_seconds,
            clock_skew_seconds=settings.clock_skew_seconds,
        )


@dataclass(frozen=True)
class CredentialClaims:
    """Application claims carried by the credential (expiry lives in the JWT envelope)."""

    account_id: int
    email: str
    username: str
    region_id: int
    sub_region_id: int | None
    access_level: AccessLevel
    roles: tuple[str, ...]
    permissions: tuple[str, ...]
    region_access_ids: tuple[int, ...]
    sub_region_access_ids: tuple[int, ...]
    principal: str = PRINCIPAL_ACCOUNT

    def to_payload(self) -> dict[str, Any]:
        return {
            # RFC 7519 wants `sub` to be a string.
            "sub": str(self.account_id),
            "email": self.email,
            "username": self.username,
            "region_id": self.region_id,
            "sub_region_id": self.sub_region_id,
            "access_level": self.access_level.value,
            "roles": list(self.roles),
            "permissions": list(self.permissions),
            "region_access_ids": list(self.region_access_ids),
            "sub_region_access_ids": list(self.sub_region_access_ids),
            "principal": self.principal,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> CredentialClaims:
        try:
            sub_region_id = payload.get("sub_region_id")
            principal = str(payload.get("principal", PRINCIPAL_ACCOUNT))
            if principal not in PRINCIPALS:
                raise ValueError(f"unknown principal {principal!r}")
            return cls(
                account_id=int(payload["sub"]),
                email=str(payload["email"]),
                username=str(payload["username"]),
                region_id=int(payload["region_id"]),
                sub_region_id=int(sub_region_id) if sub_region_id is not None else None,
                access_level=AccessLevel(payload["access_level"]),
                roles=tuple(str(r) for r in _as_list(payload.get("roles"))),
                permissions=tuple(str(p) for p in _as_list(payload.get("permissions"))),
                region_access_ids=tuple(int(i) for i in _as_list(payload.get("region_access_ids"))),
                sub_region_access_ids=tuple(int(i) for i in _as_list(payload.get("sub_region_access_ids"))),
                principal=principal,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CredentialError("Invalid token: malformed claims") from e


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError("expected a list claim")
    return value


@dataclass(frozen=True)
class IssuedCredential:
    access_token: str
    token_type: str
    expires_in: int


def build_claims(
    account: Account,
    roles: list[str],
    permissions: frozenset[str] | list[str],
    region_grants: tuple[int, ...] | list[int],
    sub_region_grants: tuple[int, ...] | list[int],
) -> CredentialClaims:
    return CredentialClaims(
        account_id=account.id,
        email=account.email,
        username=account.username,
        region_id=account.region_id,
        sub_region_id=account.sub_region_id,
        access_level=AccessLevel(account.access_level),
        roles=tuple(roles),
        permissions=tuple(sorted(permissions)),
        region_access_ids=tuple(region_grants),
        sub_region_access_ids=tuple(sub_region_grants),
    )


def issue_credential(
    account: Account,
    roles: list[str],
    permissions: frozenset[str] | list[str],
    region_grants: tuple[int, ...] | list[int],
    sub_region_grants: tuple[int, ...] | list[int],
    config: CredentialConfig,
) -> IssuedCredential:
    claims = build_claims(account, roles, permissions, region_grants, sub_region_grants)
    credential = sign_claims(claims, config)
    logger.debug("Credential issued account_id=%s roles=%s", account.id, list(roles))
    return credential


def build_agent_claims(agent: Agent, roles: list[str], permissions: frozenset[str] | list[str]) -> CredentialClaims:
    # Agents are pinned to their own sub-region and carry no explicit grants.
    return CredentialClaims(
        account_id=agent.id,
        email=agent.email or "",
        username=agent.badge_number,
        region_id=agent.region_id,
        sub_region_id=agent.sub_region_id,
        access_level=AccessLevel.SUB_REGION,
        roles=tuple(roles),
        permissions=tuple(sorted(permissions)),
        region_access_ids=(),
        sub_region_access_ids=(),
        principal=PRINCIPAL_AGENT,
    )


def issue_agent_credential(
    agent: Agent, roles: list[str], permissions: frozenset[str] | list[str], config: CredentialConfig
) -> IssuedCredential:
    credential = sign_claims(build_agent_claims(agent, roles, permissions), config)
    logger.debug("Agent credential issued agent_id=%s roles=%s", agent.id, list(roles))
    return credential


def sign_claims(claims: CredentialClaims, config: CredentialConfig) -> IssuedCredential:
    now = int(time.time())
    payload = claims.to_payload()
    payload.update({"iss": config.issuer, "iat": now, "exp": now + config.ttl_seconds})

    token = jwt.encode(payload, config.secret, algorithm=config.algorithm)
    return IssuedCredential(access_token=token, token_type="Bearer", expires_in=config.ttl_seconds)


def peek_principal(token: str) -> str:
    """
    Read the `principal` claim without verifying anything.

    Only used to pick the key to verify with; the claim is trusted after
    `decode_credential` succeeds with that key.
    """

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise CredentialError("Invalid token") from e
    return str(payload.get("principal", PRINCIPAL_ACCOUNT))


def decode_credential(token: str, config: CredentialConfig) -> CredentialClaims:
    """
    Verify signature, expiry and issuer, then parse the application claims.

    Raises CredentialError on any failure.
    """

    try:
        payload = jwt.decode(
            token,
            config.secret,
            algorithms=[config.algorithm],
            issuer=config.issuer,
            leeway=config.clock_skew_seconds,
            options={"require": ["exp", "iat", "sub"], "verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise CredentialError("Token expired") from e
    except jwt.InvalidIssuerError as e:
        logger.info("Token invalid issuer")
        raise CredentialError("Invalid token: issuer") from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise CredentialError("Invalid token") from e

    return CredentialClaims.from_payload(payload)

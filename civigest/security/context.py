from __future__ import annotations

from dataclasses import dataclass

from civigest.models.security import AccessLevel


@dataclass(frozen=True)
class CallerContext:
    """
    Per-request identity of an authenticated caller.

    Attached to `request.state.caller`. Roles and permissions are the snapshot
    taken when the credential was issued; grants may be refreshed from storage
    (see `Settings.refresh_scope_grants`).
    """

    account_id: int
    email: str
    username: str
    region_id: int
    sub_region_id: int | None
    access_level: AccessLevel | None
    roles: frozenset[str]
    permissions: frozenset[str]
    granted_region_ids: frozenset[int]
    granted_sub_region_ids: frozenset[int]

    # Derived capability (computed once from role names)
    unrestricted: bool = False

    # Set for badge-number agents; `account_id` then holds the agent id.
    is_agent: bool = False

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @property
    def author_account_id(self) -> int | None:
        """Account id to stamp on records this caller creates (None for agents)."""
        return None if self.is_agent else self.account_id

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.account_id,
            "email": self.email,
            "username": self.username,
            "region_id": self.region_id,
            "sub_region_id": self.sub_region_id,
            "access_level": self.access_level.value if self.access_level else None,
            "roles": sorted(self.roles),
            "permissions": sorted(self.permissions),
            "region_access_ids": sorted(self.granted_region_ids),
            "sub_region_access_ids": sorted(self.granted_sub_region_ids),
            "unrestricted": self.unrestricted,
            "agent": self.is_agent,
        }

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.db.base import Base
from civigest.db.session import SessionLocal, engine
from civigest.models import agents as _agents  # noqa: F401  (create tenant-scoped tables too)
from civigest.models import records as _records  # noqa: F401  (create tenant-scoped tables too)
from civigest.models.security import AccessLevel, Account, AccountRole, Permission, Role, RolePermission
from civigest.models.tenancy import Region, SubRegion
from civigest.security.config import SecurityConfig
from civigest.security.passwords import hash_password
from civigest.security.provisioning import declared_permissions, provision_permissions
from civigest.settings import Settings

RESOURCES = ("departments", "patrols", "agents")
ACTIONS = ("read", "create", "update", "delete")


def init_db(settings: Settings) -> None:
    """
    Create tables + seed demo data.

    The seed is small and deterministic: two regions, three sub-regions, the
    five standard roles (one of them for agents) and one unrestricted
    administrator.
    """

    Base.metadata.create_all(bind=engine)

    if not settings.seed_demo_data:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db, settings)


def sync_permissions(settings: Settings, security_config: SecurityConfig, routes) -> None:
    """Create permissions the app declares but storage lacks (see `civigest/security/provisioning.py`)."""

    if not settings.provision_permissions:
        return

    with SessionLocal() as db:
        provision_permissions(db, declared_permissions(security_config, routes), settings.permission_admin_roles)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Region.id).limit(1)).first() is not None


def _seed(db: Session, settings: Settings) -> None:
    # Tenants
    north = Region(name="Region Norte", code="RN")
    south = Region(name="Region Sur", code="RS")
    db.add_all([north, south])
    db.flush()

    centro = SubRegion(region_id=north.id, name="Municipio Centro", code="RN-CEN")
    valle = SubRegion(region_id=north.id, name="Municipio Valle", code="RN-VAL")
    costa = SubRegion(region_id=south.id, name="Municipio Costa", code="RS-COS")
    db.add_all([centro, valle, costa])
    db.flush()

    # Permissions
    permissions: dict[tuple[str, str], Permission] = {}
    for resource in RESOURCES:
        for action in ACTIONS:
            permissions[(resource, action)] = Permission(
                resource=resource, action=action, description=f"{resource}:{action}"
            )
    db.add_all(permissions.values())
    db.flush()

    # Roles
    super_admin = Role(name=settings.unrestricted_role, description="Unrestricted administrator")
    region_admin = Role(name="Administrador Estatal", description="Region administrator")
    local_admin = Role(name="Administrador Municipal", description="Sub-region administrator")
    default_role = Role(name=settings.default_role, description="Default role for self-registered accounts")
    field_agent = Role(name="Agente", description="Field agent (badge-number login)")
    db.add_all([super_admin, region_admin, local_admin, default_role, field_agent])
    db.flush()

    for perm in permissions.values():
        db.add(RolePermission(role_id=super_admin.id, permission_id=perm.id))
        db.add(RolePermission(role_id=region_admin.id, permission_id=perm.id))
        if perm.action != "delete":
            db.add(RolePermission(role_id=local_admin.id, permission_id=perm.id))
        if perm.action == "read" and perm.resource != "agents":
            db.add(RolePermission(role_id=field_agent.id, permission_id=perm.id))

    # Accounts
    root = Account(
        email="root@example.com",
        username="root",
        password_hash=hash_password("Admin123!", rounds=settings.bcrypt_rounds),
        first_name="Root",
        last_name="Admin",
        region_id=north.id,
        sub_region_id=centro.id,
        access_level=AccessLevel.GLOBAL,
    )
    db.add(root)
    db.flush()
    db.add(AccountRole(account_id=root.id, role_id=super_admin.id, assigned_by=root.id))

    db.commit()

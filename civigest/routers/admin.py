from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.models.security import Account, Permission
from civigest.models.tenancy import Region
from civigest.schemas.security import AccountOut, ActiveFlagIn, PermissionIn, PermissionOut, RegionOut
from civigest.security.context import CallerContext
from civigest.security.decorators import require_unrestricted
from civigest.security.dependencies import get_caller
from civigest.services import admin as service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/accounts", response_model=list[AccountOut])
@require_unrestricted()
def list_accounts(db: Session = Depends(get_db)) -> list[Account]:
    return service.list_accounts(db)


@router.patch("/accounts/{account_id}/active", response_model=AccountOut)
@require_unrestricted()
def set_account_active(account_id: int, payload: ActiveFlagIn, db: Session = Depends(get_db)) -> Account:
    return service.set_account_active(db, account_id, payload.is_active)


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def delete_account(account_id: int, db: Session = Depends(get_db)) -> None:
    service.soft_delete_account(db, account_id)


@router.put("/accounts/{account_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def assign_role(
    account_id: int, role_id: int, db: Session = Depends(get_db), caller: CallerContext = Depends(get_caller)
) -> None:
    service.assign_role(db, account_id, role_id, assigned_by=caller.account_id)


@router.delete("/accounts/{account_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def revoke_role(account_id: int, role_id: int, db: Session = Depends(get_db)) -> None:
    service.revoke_role(db, account_id, role_id)


@router.put("/accounts/{account_id}/region-access/{region_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def grant_region_access(
    account_id: int, region_id: int, db: Session = Depends(get_db), caller: CallerContext = Depends(get_caller)
) -> None:
    service.grant_region_access(db, account_id, region_id, granted_by=caller.account_id)


@router.delete("/accounts/{account_id}/region-access/{region_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def revoke_region_access(account_id: int, region_id: int, db: Session = Depends(get_db)) -> None:
    service.revoke_region_access(db, account_id, region_id)


@router.put("/accounts/{account_id}/sub-region-access/{sub_region_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def grant_sub_region_access(
    account_id: int, sub_region_id: int, db: Session = Depends(get_db), caller: CallerContext = Depends(get_caller)
) -> None:
    service.grant_sub_region_access(db, account_id, sub_region_id, granted_by=caller.account_id)


@router.delete("/accounts/{account_id}/sub-region-access/{sub_region_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def revoke_sub_region_access(account_id: int, sub_region_id: int, db: Session = Depends(get_db)) -> None:
    service.revoke_sub_region_access(db, account_id, sub_region_id)


@router.patch("/regions/{region_id}/active", response_model=RegionOut)
@require_unrestricted()
def set_region_active(region_id: int, payload: ActiveFlagIn, db: Session = Depends(get_db)) -> Region:
    return service.set_region_active(db, region_id, payload.is_active)


@router.get("/permissions", response_model=list[PermissionOut])
@require_unrestricted()
def list_permissions(db: Session = Depends(get_db)) -> list[Permission]:
    return service.list_permissions(db)


@router.post("/permissions", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
@require_unrestricted()
def create_permission(payload: PermissionIn, db: Session = Depends(get_db)) -> Permission:
    return service.create_permission(db, payload.resource, payload.action, payload.description)


@router.delete("/permissions/{permission_id}", response_model=PermissionOut)
@require_unrestricted()
def delete_permission(permission_id: int, db: Session = Depends(get_db)) -> Permission:
    return service.delete_permission(db, permission_id)


@router.patch("/permissions/{permission_id}/active", response_model=PermissionOut)
@require_unrestricted()
def set_permission_active(permission_id: int, payload: ActiveFlagIn, db: Session = Depends(get_db)) -> Permission:
    return service.set_permission_active(db, permission_id, payload.is_active)


@router.put("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def assign_permission(
    role_id: int, permission_id: int, db: Session = Depends(get_db), caller: CallerContext = Depends(get_caller)
) -> None:
    service.assign_permission_to_role(db, role_id, permission_id, granted_by=caller.account_id)


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def remove_permission(role_id: int, permission_id: int, db: Session = Depends(get_db)) -> None:
    service.remove_permission_from_role(db, role_id, permission_id)


@router.put("/agents/{agent_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def assign_agent_role(
    agent_id: int, role_id: int, db: Session = Depends(get_db), caller: CallerContext = Depends(get_caller)
) -> None:
    service.assign_agent_role(db, agent_id, role_id, assigned_by=caller.account_id)


@router.delete("/agents/{agent_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_unrestricted()
def revoke_agent_role(agent_id: int, role_id: int, db: Session = Depends(get_db)) -> None:
    service.revoke_agent_role(db, agent_id, role_id)

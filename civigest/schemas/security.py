from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from civigest.models.security import AccessLevel


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class RoleAssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role: RoleOut
    is_active: bool


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_active: bool
    region_id: int
    sub_region_id: int | None
    access_level: AccessLevel
    role_assignments: list[RoleAssignmentOut]


class RegionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    is_active: bool


class PermissionIn(BaseModel):
    resource: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    description: str | None = None


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resource: str
    action: str
    description: str | None
    is_active: bool


class ActiveFlagIn(BaseModel):
    is_active: bool

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from civigest.models.security import AccessLevel


class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=1, max_length=128)


class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=100)
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, max_length=30)
    document_number: str | None = Field(default=None, max_length=30)

    region_id: int
    sub_region_id: int | None = None
    access_level: AccessLevel = AccessLevel.SUB_REGION


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    region_id: int
    sub_region_id: int | None
    access_level: AccessLevel
    roles: list[str]


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: ProfileSummary


class CallerOut(BaseModel):
    id: int
    email: str
    username: str
    region_id: int
    sub_region_id: int | None
    access_level: AccessLevel | None
    roles: list[str]
    permissions: list[str]
    region_access_ids: list[int]
    sub_region_access_ids: list[int]
    unrestricted: bool
    agent: bool = False


class ValidateOut(BaseModel):
    valid: bool
    user: dict[str, Any]

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from civigest.schemas.records import reject_null


class AgentLoginIn(BaseModel):
    badge_number: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


class AgentChangePasswordIn(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class AgentIn(BaseModel):
    badge_number: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=100)
    position: str | None = Field(default=None, max_length=100)
    # Defaults to the badge number; the agent is asked to change it either way.
    password: str | None = Field(default=None, min_length=8, max_length=128)
    sub_region_id: int | None = None


class AgentUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=100)
    position: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None

    @field_validator("first_name", "last_name", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    badge_number: str
    first_name: str
    last_name: str
    email: str | None
    position: str | None
    is_active: bool
    must_change_password: bool
    region_id: int
    sub_region_id: int | None
    last_login_at: datetime | None
    created_at: datetime


class AgentProfileOut(AgentOut):
    roles: list[str]
    permissions: list[str]


class AgentAuthResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    must_change_password: bool
    agent: AgentProfileOut

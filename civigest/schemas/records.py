from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def reject_null(value):
    # Omit a field to leave it unchanged; null is not a value for these columns.
    if value is None:
        raise ValueError("may be omitted but not null")
    return value


class DepartmentIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    sub_region_id: int | None = None


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None

    @field_validator("name", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    is_active: bool
    region_id: int
    sub_region_id: int | None
    created_by: int | None
    created_at: datetime


class PatrolIn(BaseModel):
    plate: str = Field(min_length=1, max_length=20)
    unit_number: str = Field(min_length=1, max_length=20)
    brand: str | None = None
    model: str | None = None
    sub_region_id: int | None = None


class PatrolUpdate(BaseModel):
    plate: str | None = Field(default=None, min_length=1, max_length=20)
    unit_number: str | None = Field(default=None, min_length=1, max_length=20)
    brand: str | None = None
    model: str | None = None
    is_active: bool | None = None

    @field_validator("plate", "unit_number", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class PatrolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plate: str
    unit_number: str
    brand: str | None
    model: str | None
    is_active: bool
    region_id: int
    sub_region_id: int | None
    created_at: datetime

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civigest.db.base import Base, utcnow


class Region(Base):
    __tablename__ = "regions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sub_regions: Mapped[list["SubRegion"]] = relationship(back_populates="region")

    @property
    def is_live(self) -> bool:
        return self.is_active and self.deleted_at is None


class SubRegion(Base):
    __tablename__ = "sub_regions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    region_id: Mapped[int] = mapped_column(ForeignKey("regions.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    region: Mapped[Region] = relationship(back_populates="sub_regions")

    @property
    def is_live(self) -> bool:
        # A sub-region is only usable while its parent region is.
        return self.is_active and self.deleted_at is None and self.region.is_live


class TenantScopedMixin:
    """
    Columns shared by every record that belongs to a tenant.

    Models using this mixin are filtered automatically by the session hook in
    `civigest/db/filters.py`.
    """

    region_id: Mapped[int] = mapped_column(ForeignKey("regions.id"), nullable=False, index=True)
    sub_region_id: Mapped[int | None] = mapped_column(ForeignKey("sub_regions.id"), nullable=True, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

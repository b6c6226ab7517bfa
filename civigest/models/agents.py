from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civigest.db.base import Base, utcnow
from civigest.models.security import Role
from civigest.models.tenancy import SubRegion, TenantScopedMixin


class Agent(TenantScopedMixin, Base):
    """
    Field officer. Logs in with a badge number instead of an email, under a
    separate signing secret, and only ever sees its own sub-region.
    """

    __tablename__ = "agents"
    __table_args__ = (UniqueConstraint("badge_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    badge_number: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sub_region: Mapped[SubRegion | None] = relationship()
    role_assignments: Mapped[list["AgentRole"]] = relationship(back_populates="agent")

    @property
    def is_live(self) -> bool:
        return self.is_active and self.deleted_at is None


class AgentRole(Base):
    __tablename__ = "agent_roles"
    __table_args__ = (UniqueConstraint("agent_id", "role_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("agents.id"), nullable=False, index=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    assigned_by: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    agent: Mapped[Agent] = relationship(back_populates="role_assignments")
    role: Mapped[Role] = relationship()

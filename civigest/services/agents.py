from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from civigest.models.agents import Agent
from civigest.schemas.agents import AgentIn, AgentUpdate
from civigest.security.context import CallerContext
from civigest.security.errors import Conflict
from civigest.security.passwords import hash_password
from civigest.security.scope import QueryConstraint
from civigest.services.scoped import get_scoped, resolve_placement, scoped_select, soft_delete
from civigest.settings import Settings

logger = logging.getLogger(__name__)


def _badge_taken(db: Session, badge_number: str) -> bool:
    # Badge numbers are login names, so they are unique across every tenant.
    stmt = select(Agent.id).where(Agent.badge_number == badge_number).execution_options(skip_tenant_scope=True)
    return db.execute(stmt).first() is not None


def list_agents(db: Session, scope: QueryConstraint, search: str | None = None) -> list[Agent]:
    stmt = scoped_select(Agent, scope)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(Agent.badge_number.ilike(pattern), Agent.first_name.ilike(pattern), Agent.last_name.ilike(pattern))
        )
    return list(db.scalars(stmt.order_by(Agent.id)).all())


def get_agent(db: Session, agent_id: int, scope: QueryConstraint) -> Agent:
    return get_scoped(db, Agent, agent_id, scope)


def create_agent(
    db: Session, payload: AgentIn, caller: CallerContext, scope: QueryConstraint, settings: Settings
) -> Agent:
    region_id, sub_region_id = resolve_placement(db, caller, scope, payload.sub_region_id)

    if _badge_taken(db, payload.badge_number):
        raise Conflict(f"Badge number {payload.badge_number!r} is already registered")

    agent = Agent(
        badge_number=payload.badge_number,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        position=payload.position,
        password_hash=hash_password(payload.password or payload.badge_number, rounds=settings.bcrypt_rounds),
        must_change_password=True,
        region_id=region_id,
        sub_region_id=sub_region_id,
        created_by=caller.author_account_id,
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)
    logger.info("Agent created id=%s sub_region_id=%s by=%s", agent.id, sub_region_id, caller.account_id)
    return agent


def update_agent(db: Session, agent_id: int, payload: AgentUpdate, scope: QueryConstraint) -> Agent:
    agent = get_agent(db, agent_id, scope)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(agent, field, value)
    db.commit()
    db.refresh(agent)
    return agent


def delete_agent(db: Session, agent_id: int, scope: QueryConstraint) -> None:
    agent = get_agent(db, agent_id, scope)
    agent.is_active = False
    soft_delete(db, agent)
    logger.info("Agent soft-deleted id=%s", agent_id)

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.models.agents import Agent
from civigest.schemas.agents import AgentIn, AgentOut, AgentUpdate
from civigest.security.context import CallerContext
from civigest.security.decorators import require_permissions
from civigest.security.dependencies import get_app_settings, get_caller, get_scope
from civigest.security.scope import QueryConstraint
from civigest.services import agents as service
from civigest.settings import Settings

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("", response_model=list[AgentOut])
@require_permissions("agents:read")
def list_agents(
    search: str | None = None,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> list[Agent]:
    return service.list_agents(db, scope, search=search)


@router.post("", response_model=AgentOut, status_code=status.HTTP_201_CREATED)
@require_permissions("agents:create")
def create_agent(
    payload: AgentIn,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
    scope: QueryConstraint = Depends(get_scope),
    settings: Settings = Depends(get_app_settings),
) -> Agent:
    return service.create_agent(db, payload, caller, scope, settings)


@router.get("/{id}", response_model=AgentOut)
@require_permissions("agents:read")
def get_agent(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> Agent:
    return service.get_agent(db, id, scope)


@router.patch("/{id}", response_model=AgentOut)
@require_permissions("agents:update")
def update_agent(
    id: int,
    payload: AgentUpdate,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> Agent:
    return service.update_agent(db, id, payload, scope)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
@require_permissions("agents:delete")
def delete_agent(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> None:
    service.delete_agent(db, id, scope)

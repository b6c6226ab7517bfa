from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.models.agents import Agent
from civigest.schemas.agents import AgentAuthResponse, AgentChangePasswordIn, AgentLoginIn, AgentOut, AgentProfileOut
from civigest.security.context import CallerContext
from civigest.security.decorators import public
from civigest.security.dependencies import get_app_settings, get_caller
from civigest.security.guard import require_agent
from civigest.services import agent_auth
from civigest.services.agent_auth import AgentAuthResult
from civigest.settings import Settings

router = APIRouter(prefix="/agents/auth", tags=["agents"])


def _profile(agent: Agent, roles: list[str], permissions: list[str]) -> AgentProfileOut:
    return AgentProfileOut(**AgentOut.model_validate(agent).model_dump(), roles=roles, permissions=permissions)


def _response(result: AgentAuthResult) -> AgentAuthResponse:
    return AgentAuthResponse(
        access_token=result.credential.access_token,
        token_type=result.credential.token_type,
        expires_in=result.credential.expires_in,
        must_change_password=result.agent.must_change_password,
        agent=_profile(result.agent, result.roles, result.permissions),
    )


@router.post("/login", response_model=AgentAuthResponse)
@public()
def login(
    payload: AgentLoginIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AgentAuthResponse:
    return _response(agent_auth.login_agent(db, payload.badge_number, payload.password, settings))


@router.get("/profile", response_model=AgentProfileOut)
def profile(caller: CallerContext = Depends(get_caller), db: Session = Depends(get_db)) -> AgentProfileOut:
    require_agent(caller)
    agent = agent_auth.agent_profile(db, caller)
    return _profile(agent, sorted(caller.roles), sorted(caller.permissions))


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: AgentChangePasswordIn,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> None:
    require_agent(caller)
    agent_auth.change_agent_password(db, caller, payload.current_password, payload.new_password, settings)


@router.post("/refresh", response_model=AgentAuthResponse)
def refresh(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AgentAuthResponse:
    require_agent(caller)
    return _response(agent_auth.reissue_agent(db, caller, settings))

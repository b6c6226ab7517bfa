from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.schemas.auth import AuthResponse, CallerOut, LoginIn, ProfileSummary, RegisterIn, ValidateOut
from civigest.security.context import CallerContext
from civigest.security.decorators import public
from civigest.security.dependencies import get_app_settings, get_caller
from civigest.services import auth_service
from civigest.services.auth_service import AuthResult
from civigest.settings import Settings

router = APIRouter(prefix="/auth", tags=["auth"])


def _response(result: AuthResult) -> AuthResponse:
    account = result.account
    return AuthResponse(
        access_token=result.credential.access_token,
        token_type=result.credential.token_type,
        expires_in=result.credential.expires_in,
        user=ProfileSummary(
            id=account.id,
            email=account.email,
            username=account.username,
            first_name=account.first_name,
            last_name=account.last_name,
            region_id=account.region_id,
            sub_region_id=account.sub_region_id,
            access_level=account.access_level,
            roles=result.roles,
        ),
    )


@router.post("/login", response_model=AuthResponse)
@public()
def login(
    payload: LoginIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    return _response(auth_service.login(db, payload.email, payload.password, settings))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@public()
def register(
    payload: RegisterIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    return _response(auth_service.register(db, payload, settings))


@router.get("/profile", response_model=CallerOut)
def profile(caller: CallerContext = Depends(get_caller)) -> CallerOut:
    return CallerOut(**caller.to_dict())


@router.get("/validate", response_model=ValidateOut)
def validate(caller: CallerContext = Depends(get_caller)) -> ValidateOut:
    return ValidateOut(valid=True, user={"id": caller.account_id, "email": caller.email, "username": caller.username})


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    # Picks up role/permission changes made since the caller's token was issued.
    return _response(auth_service.reissue(db, caller, settings))

"""
Authentication router.
Provides endpoints for obtaining JWT tokens and registering users.
"""

from datetime import timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.database import get_db
from backend.app.core.security import create_access_token, ROLE_SCOPES
from backend.app.services import auth_service

router = APIRouter()
settings = get_settings()


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8)
    display_name: Optional[str] = Field(None, max_length=255)


def _issue_token(user) -> dict:
    scopes = ROLE_SCOPES.get(user.role, [])
    access_token = create_access_token(
        data={
            "sub": user.id,
            "name": user.display_name or user.username,
            "role": user.role,
            "scopes": scopes,
        },
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": user.role,
        "scopes": scopes,
    }


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Standard OAuth2 /token endpoint to exchange credentials for a JWT.
    """
    user = await auth_service.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(user)


@router.post("/signup", status_code=201)
async def signup(
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Register an editor account and return a token for it."""
    user = await auth_service.register_user(
        db,
        payload.username,
        payload.password,
        display_name=payload.display_name,
    )
    return _issue_token(user)

"""
Security and Authentication.

Bearer JWT validation producing the request Principal. The record service
only reads the principal (id + display name); it never handles credentials
beyond the built-in token issuer in api/auth.py.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jose import JWTError, jwt
from pydantic import BaseModel

from backend.app.core.config import get_settings
from backend.app.core.logging import principal_id_ctx

settings = get_settings()

RECORDS_READ = "records:read"
RECORDS_WRITE = "records:write"
AUDIT_READ = "audit:read"

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="api/v1/auth/token",
    scopes={
        RECORDS_READ: "Read product lines and products",
        RECORDS_WRITE: "Create, update and delete product lines and products",
        AUDIT_READ: "Read the audit trail",
    },
)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Generate a signed JWT token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


# Role definitions
class Role:
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

ROLE_SCOPES = {
    Role.ADMIN: [RECORDS_READ, RECORDS_WRITE, AUDIT_READ],
    Role.EDITOR: [RECORDS_READ, RECORDS_WRITE],
    Role.VIEWER: [RECORDS_READ],
}


class Principal(BaseModel):
    """Authenticated actor performing an operation."""
    id: str
    display_name: str
    role: str = Role.VIEWER
    scopes: List[str] = []


async def get_current_principal(
    security_scopes: SecurityScopes,
    token: str = Depends(oauth2_scheme)
) -> Principal:
    """
    Validate JWT token and check required scopes based on Role-Based Access Control.
    """
    if security_scopes.scopes:
        authenticate_value = f'Bearer scope="{security_scopes.scope_str}"'
    else:
        authenticate_value = "Bearer"

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": authenticate_value},
    )

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError:
        raise credentials_exception

    subject: Optional[str] = payload.get("sub")
    if subject is None:
        raise credentials_exception

    role: str = payload.get("role", Role.VIEWER)
    # Assign scopes based on role if not present in token
    token_scopes = payload.get("scopes", ROLE_SCOPES.get(role, []))

    for scope in security_scopes.scopes:
        if scope not in token_scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not enough permissions. Required scope: {scope}",
                headers={"WWW-Authenticate": authenticate_value},
            )

    principal_id_ctx.set(subject)
    return Principal(
        id=subject,
        display_name=payload.get("name") or subject,
        role=role,
        scopes=token_scopes,
    )


import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
import bcrypt
from backend.app.core.errors import Conflict, ValidationFailed
from backend.app.core.security import Principal, Role, ROLE_SCOPES
from backend.app.models.user_orm import UserORM
from backend.app.services.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)

def hash_password(plain: str) -> str:
    """Hash a password using direct bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a hash using direct bcrypt."""
    try:
        return bcrypt.checkpw(plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


def to_principal(user: UserORM) -> Principal:
    return Principal(
        id=user.id,
        display_name=user.display_name or user.username,
        role=user.role,
        scopes=ROLE_SCOPES.get(user.role, []),
    )


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[UserORM]:
    result = await db.execute(select(UserORM).where(UserORM.username == username))
    return result.scalar_one_or_none()

async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[UserORM]:
    user = await get_user_by_username(db, username)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user

async def register_user(
    db: AsyncSession,
    username: str,
    password: str,
    display_name: Optional[str] = None,
    role: str = Role.EDITOR,
    audit_log: Optional[AuditLog] = None,
) -> UserORM:
    """
    Create a user and its audit entry in the caller's transaction.

    The caller commits; a duplicate username raises Conflict.
    """
    if role not in ROLE_SCOPES:
        raise ValidationFailed(f"Unknown role {role!r}.")

    user = UserORM(
        username=username,
        display_name=display_name,
        hashed_password=hash_password(password),
        role=role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        raise Conflict(f"Username {username!r} is already taken.") from e

    await (audit_log or AuditLog()).append(
        db,
        AuditAction.CREATE,
        UserORM.__tablename__,
        user.id,
        to_principal(user),
        {"username": user.username, "display_name": user.display_name, "role": user.role},
    )
    logger.info(f"Registered user {user.username}")
    return user

async def seed_admin_user(db: AsyncSession, username: str, password: str) -> Optional[UserORM]:
    """Create the bootstrap admin on first startup."""
    existing = await db.execute(select(UserORM).limit(1))
    if existing.scalar_one_or_none():
        return None
    user = await register_user(db, username, password, display_name="Administrator", role=Role.ADMIN)
    await db.commit()
    logger.info("Seeded bootstrap admin user")
    return user

"""Account registration and credential checks."""

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.auth import hash_password, verify_password
from talko.core.exceptions import ValidationError
from talko.db.models.user import User

logger = structlog.get_logger(__name__)


async def register_user(session: AsyncSession, username: str, email: str, password: str) -> User:
    """Create an account; duplicate email or username is a 400."""
    existing = await session.execute(
        select(User).where(or_(User.email == email, User.username == username))
    )
    if existing.scalar_one_or_none() is not None:
        raise ValidationError("User already exists")

    user = User(username=username, email=email, password_hash=hash_password(password))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("User already exists") from exc

    logger.info("user_registered", user_id=user.id)
    return user


async def authenticate_user(
    session: AsyncSession,
    password: str,
    email: str | None = None,
    username: str | None = None,
) -> User:
    """Look up by email (preferred) or username and check the password."""
    if email:
        query = select(User).where(User.email == email)
    elif username:
        query = select(User).where(User.username == username)
    else:
        raise ValidationError("Email or username is required")

    user = (await session.execute(query)).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed", email=email, username=username)
        raise ValidationError("Invalid credentials")
    return user

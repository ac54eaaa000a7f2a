"""JWT bearer authentication and password hashing."""

from datetime import UTC, datetime, timedelta

import bcrypt
import jwt as pyjwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.config import get_settings
from talko.core.exceptions import AuthenticationError
from talko.db.base import get_db_session
from talko.db.models.user import User

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str, now: datetime | None = None) -> str:
    """Sign a ``{userId, exp}`` token valid for JWT_EXPIRES_HOURS."""
    settings = get_settings()
    now = now or datetime.now(UTC)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expires_hours),
    }
    return pyjwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Verify a token and return its user id.

    Raises ``AuthenticationError`` on any validation failure.
    """
    settings = get_settings()
    try:
        payload = pyjwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"]},
        )
    except pyjwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except pyjwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid token: {exc}")

    user_id = payload.get("userId")
    if not user_id:
        raise AuthenticationError("Token missing userId claim")
    return user_id


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User | None:
    """Resolve the bearer token to a User, or None.

    A missing, malformed or expired token degrades to anonymous.
    """
    if credentials is None:
        return None

    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationError as exc:
        logger.info("token_rejected", reason=exc.message)
        return None

    user = await session.get(User, user_id)
    if user is not None:
        # Exception handlers read this for log context
        request.state.user_id = user.id
    return user


async def require_auth(user: User | None = Depends(get_optional_user)) -> User:
    """FastAPI dependency that rejects anonymous callers with 401.

    Usage::

        @router.get("/history")
        async def history(user: User = Depends(require_auth)):
            ...
    """
    if user is None:
        raise AuthenticationError("Please log in to access this resource")
    return user

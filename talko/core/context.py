"""Per-request caller context.

The cookie session (Starlette SessionMiddleware) holds
``{session_id, anonymous_id, usage}``; this module reads and seeds it and
folds it together with the authenticated user into one frozen value.
"""

import uuid
from dataclasses import dataclass

from fastapi import Depends, Request

from talko.core.auth import get_optional_user
from talko.db.models.user import User

SESSION_ID_KEY = "session_id"
ANONYMOUS_ID_KEY = "anonymous_id"
USAGE_KEY = "usage"


@dataclass(frozen=True)
class RequestContext:
    """Who is calling. ``identity`` keys the usage ledger for anonymous callers."""

    user: User | None
    session_id: str
    anonymous_id: str | None
    client_ip: str | None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user is not None else None

    @property
    def identity(self) -> str:
        # Session anonymous id first, then client address
        return self.anonymous_id or self.client_ip or self.session_id


def _new_anonymous_id() -> str:
    return uuid.uuid4().hex[:13]


def ensure_session(request: Request) -> dict:
    """Seed session_id and anonymous_id on first contact."""
    session = request.session
    if SESSION_ID_KEY not in session:
        session[SESSION_ID_KEY] = str(uuid.uuid4())
    if ANONYMOUS_ID_KEY not in session:
        session[ANONYMOUS_ID_KEY] = _new_anonymous_id()
    return session


def mirror_usage(request: Request, feature: str, usage: int) -> None:
    """Copy the ledger count into the session for client display."""
    usage_map = dict(request.session.get(USAGE_KEY) or {})
    usage_map[feature] = usage
    request.session[USAGE_KEY] = usage_map


def clear_session(request: Request) -> None:
    request.session.clear()


async def get_request_context(
    request: Request,
    user: User | None = Depends(get_optional_user),
) -> RequestContext:
    session = ensure_session(request)
    return RequestContext(
        user=user,
        session_id=session[SESSION_ID_KEY],
        anonymous_id=session.get(ANONYMOUS_ID_KEY),
        client_ip=request.client.host if request.client else None,
    )

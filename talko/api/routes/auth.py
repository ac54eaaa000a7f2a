"""Account routes: register, login, current user, logout."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from talko.api.schemas.requests import LoginRequest, RegisterRequest
from talko.core.auth import create_access_token, require_auth
from talko.core.context import clear_session
from talko.db.base import get_db_session
from talko.db.models.user import User
from talko.services.auth_service import authenticate_user, register_user

router = APIRouter()


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, session: AsyncSession = Depends(get_db_session)):
    user = await register_user(session, body.username, body.email, body.password)
    return {"success": True, "token": create_access_token(user.id), "user": user.to_public()}


@router.post("/login")
async def login(body: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    user = await authenticate_user(session, body.password, email=body.email, username=body.username)
    return {"success": True, "token": create_access_token(user.id), "user": user.to_public()}


@router.get("/me")
async def me(user: User = Depends(require_auth)):
    return {"success": True, "user": user.to_public()}


@router.post("/logout")
async def logout(request: Request):
    """Drop the cookie session. Tokens are stateless; the client discards its copy."""
    clear_session(request)
    return {"success": True, "message": "Logged out successfully"}

"""Authentication router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import CurrentUser, RequiredAuth
from ..core.exceptions import AuthenticationError
from ..core.responses import success_response
from ..schemas.user import ChangePasswordRequest, LoginRequest, RegisterRequest, UserOut
from ..services.auth_service import AuthService
from ..services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

DB_DEPENDENCY = Depends(get_db)


def _with_token_cookie(response: JSONResponse, token: str) -> JSONResponse:
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.jwt_expires_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return response


@router.post("/register", status_code=201)
async def register(request: RegisterRequest, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Register a renter account and sign it in."""
    user, token = await AuthService(db).register(request)
    response = success_response(
        {"user": UserOut.model_validate(user), "accessToken": token},
        "Registration successful",
        status_code=201,
    )
    return _with_token_cookie(response, token)


@router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    user, token = await AuthService(db).login(request)
    response = success_response({"user": UserOut.model_validate(user), "accessToken": token}, "Login successful")
    return _with_token_cookie(response, token)


@router.get("/me")
async def me(user: CurrentUser = RequiredAuth, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Profile of the authenticated user."""
    account = await UserService(db).get_user_by_id(user.id)
    if account is None:
        raise AuthenticationError("Account no longer exists", code="INVALID_TOKEN")
    return success_response({"user": UserOut.model_validate(account)})


@router.post("/logout")
async def logout(_: CurrentUser = RequiredAuth) -> JSONResponse:
    response = success_response(message="Logged out")
    response.delete_cookie(settings.cookie_name)
    return response


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Change the password of the authenticated user. Issued tokens stay valid until they expire."""
    await AuthService(db).change_password(user.id, request)
    return success_response(message="Password changed successfully")

"""
Auth Routes
===========

POST /api/auth/register   -> 201 {user, token}
POST /api/auth/login      -> {user, token, refreshToken}
GET  /api/auth/me         -> current profile (cache-aside on ``user:{id}``)
PUT  /api/auth/profile    -> update name/phone/avatar
PUT  /api/auth/password   -> change password, revoke refresh tokens
POST /api/auth/refresh    -> new access token for a stored refresh token
POST /api/auth/logout     -> drop refresh token and session cache

Register and login are limited to RATE_LIMIT_AUTH per client.
"""

from fastapi import APIRouter, Request, status

from cloudpc.application.api.dependencies import AuthServiceDep, CurrentUserDep
from cloudpc.application.api.middleware.rate_limiter import auth_limit
from cloudpc.application.api.models import (
    LoginRequest,
    LogoutRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
@auth_limit
async def register(request: Request, body: RegisterRequest, auth: AuthServiceDep):
    user, token = await auth.register(body.name, body.email, body.password, phone=body.phone)
    return {
        "success": True,
        "message": "Registration successful",
        "data": {"user": user.to_public(), "token": token},
    }


@router.post("/login")
@auth_limit
async def login(request: Request, body: LoginRequest, auth: AuthServiceDep):
    user, token, refresh_token = await auth.login(body.email, body.password)
    return {
        "success": True,
        "message": "Login successful",
        "data": {"user": user.to_public(), "token": token, "refreshToken": refresh_token},
    }


@router.get("/me")
async def me(user: CurrentUserDep, auth: AuthServiceDep):
    profile, from_cache = await auth.get_profile(user)
    return {"success": True, "data": {"user": profile}, "fromCache": from_cache}


@router.put("/profile")
async def update_profile(body: ProfileUpdateRequest, user: CurrentUserDep, auth: AuthServiceDep):
    updated = await auth.update_profile(user, name=body.name, phone=body.phone, avatar=body.avatar)
    return {"success": True, "message": "Profile updated", "data": {"user": updated.to_public()}}


@router.put("/password")
async def change_password(body: PasswordChangeRequest, user: CurrentUserDep, auth: AuthServiceDep):
    await auth.change_password(user, body.currentPassword, body.newPassword)
    return {"success": True, "message": "Password changed, please log in again"}


@router.post("/refresh")
async def refresh(body: RefreshRequest, user: CurrentUserDep, auth: AuthServiceDep):
    token = await auth.refresh(user, body.refreshToken)
    return {"success": True, "data": {"token": token}}


@router.post("/logout")
async def logout(user: CurrentUserDep, auth: AuthServiceDep, body: LogoutRequest | None = None):
    await auth.logout(user, body.refreshToken if body else None)
    return {"success": True, "message": "Logged out"}

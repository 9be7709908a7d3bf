"""
Auth controller — register, login, logout, profile & permission checks.

Register and login are PUBLIC.  Logout accepts an optional bearer token
(no token → nothing to close, still 200).  Profile and permission
checks go through the auth gate.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import messages
from app.core.config import Settings
from app.core.database import get_db
from app.core.security import TokenIssuer
from app.rbac.dependencies import (
    AuthContext,
    bearer_token,
    check_permission,
    get_app_settings,
    get_auth_context,
    get_token_issuer,
)
from app.schemas import (
    ApiResponse,
    AuthPayload,
    LoginRequest,
    PermissionCheckOut,
    ProfilePayload,
    RegisterRequest,
    UserOut,
)
from app.services import auth_service
from app.services.auth_service import DeviceInfo

router = APIRouter(prefix="/auth", tags=["Auth"])


def _device_from_request(request: Request, settings: Settings) -> DeviceInfo:
    return DeviceInfo.from_request_meta(
        request.headers.get("user-agent"),
        request.client.host if request.client else None,
        id_length=settings.DEVICE_ID_LENGTH,
    )


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Create a basic account and open its first session."""
    result = await auth_service.register(
        body.username,
        body.email,
        body.password,
        body.phone,
        device=_device_from_request(request, settings),
        issuer=issuer,
        db=db,
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
    )
    return ApiResponse(
        message=messages.REGISTERED,
        data=AuthPayload(user=UserOut.model_validate(result.user), token=result.token),
    )


@router.post("/login", response_model=ApiResponse[AuthPayload])
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Authenticate with email + password → bearer token bound to this device."""
    result = await auth_service.login(
        body.email,
        body.password,
        device=_device_from_request(request, settings),
        issuer=issuer,
        db=db,
    )
    return ApiResponse(
        message=messages.LOGGED_IN,
        data=AuthPayload(user=UserOut.model_validate(result.user), token=result.token),
    )


@router.post("/logout", response_model=ApiResponse)
async def logout(
    token: str | None = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
):
    """Close the session bound to the presented token (server-side logout)."""
    await auth_service.logout(token, db)
    return ApiResponse(message=messages.LOGGED_OUT)


@router.get("/profile", response_model=ApiResponse[ProfilePayload])
async def profile(ctx: AuthContext = Depends(get_auth_context)):
    return ApiResponse(data=ProfilePayload(user=UserOut.model_validate(ctx.user)))


@router.get("/permissions/{page}", response_model=ApiResponse[PermissionCheckOut])
async def permission_check(
    page: str,
    function: str | None = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Tell the frontend whether the caller may open ``page`` (and run ``function``)."""
    allowed = check_permission(ctx.user, page, function)
    return ApiResponse(data=PermissionCheckOut(page=page, function=function, allowed=allowed))

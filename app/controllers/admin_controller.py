"""
Admin controller — user management & session overrides.

Every route depends on ``admin_required``: the caller must pass the
auth gate AND hold the ``admin`` role.  Controllers are THIN — they
delegate to services and return schemas.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import messages
from app.core.database import get_db
from app.rbac.dependencies import AuthContext, admin_required
from app.schemas import (
    ApiResponse,
    LogoutAllOut,
    SessionOut,
    UpdatePermissionsRequest,
    UpdateStatusRequest,
    UserOut,
    UserStatusOut,
)
from app.services import session_service, user_service

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Users ────────────────────────────────────────────────────────────
@router.get("/users", response_model=ApiResponse[list[UserOut]])
async def list_users(
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.list_users(db)
    return ApiResponse(data=[UserOut.model_validate(u) for u in users], total=len(users))


@router.get("/users/search", response_model=ApiResponse[list[UserOut]])
async def search_users(
    query: str | None = Query(None),
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.search_users(query, db)
    return ApiResponse(data=[UserOut.model_validate(u) for u in users], total=len(users))


@router.get("/users/{user_id}", response_model=ApiResponse[UserOut])
async def get_user(
    user_id: uuid.UUID,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_id(user_id, db)
    return ApiResponse(data=UserOut.model_validate(user))


@router.put("/users/{user_id}/permissions", response_model=ApiResponse[UserOut])
async def update_permissions(
    user_id: uuid.UUID,
    body: UpdatePermissionsRequest,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """Edit role and/or page grants; open sessions are left untouched."""
    permissions = (
        {page: grant.model_dump() for page, grant in body.permissions.items()}
        if body.permissions is not None
        else None
    )
    user = await user_service.update_permissions(
        user_id, db, permissions=permissions, role=body.role,
    )
    return ApiResponse(message=messages.PERMISSIONS_UPDATED, data=UserOut.model_validate(user))


@router.patch("/users/{user_id}/status", response_model=ApiResponse[UserStatusOut])
async def set_status(
    user_id: uuid.UUID,
    body: UpdateStatusRequest,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """Activate / deactivate; deactivation force-closes every open session."""
    user = await user_service.set_user_status(user_id, body.is_active, db)
    return ApiResponse(
        message=messages.USER_ACTIVATED if user.is_active else messages.USER_DEACTIVATED,
        data=UserStatusOut.model_validate(user),
    )


@router.delete("/users/{user_id}", response_model=ApiResponse)
async def delete_user(
    user_id: uuid.UUID,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(user_id, db)
    return ApiResponse(message=messages.USER_DELETED)


# ── Sessions ─────────────────────────────────────────────────────────
@router.get("/users/{user_id}/sessions", response_model=ApiResponse[list[SessionOut]])
async def list_user_sessions(
    user_id: uuid.UUID,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user_by_id(user_id, db)
    sessions = await session_service.list_sessions(user_id, db)
    return ApiResponse(data=[SessionOut.model_validate(s) for s in sessions], total=len(sessions))


@router.post("/users/{user_id}/logout-all", response_model=ApiResponse[LogoutAllOut])
async def logout_all(
    user_id: uuid.UUID,
    admin: AuthContext = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """Kick the user off every device; the account stays enabled."""
    closed = await user_service.force_logout_all(user_id, db)
    return ApiResponse(message=messages.LOGGED_OUT_ALL, data=LogoutAllOut(closed_sessions=closed))

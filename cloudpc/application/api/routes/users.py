"""
User Routes

Admin-only management plus two self-or-admin reads. ``/stats/overview`` is
declared before ``/{user_id}``.
"""

from fastapi import APIRouter, Query

from cloudpc.application.api.dependencies import AdminUserDep, CurrentUserDep, UserServiceDep
from cloudpc.application.api.models import UserRoleUpdateRequest, UserStatusUpdateRequest
from cloudpc.core.config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, UserRole, UserStatus

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
@router.get("/", include_in_schema=False)
async def list_users(
    admin: AdminUserDep,
    service: UserServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: str = Query("-createdAt"),
    status: UserStatus | None = Query(None),
    role: UserRole | None = Query(None),
    search: str | None = Query(None, max_length=100),
):
    data = await service.list_users(
        page=page,
        limit=limit,
        sort=sort,
        status=status.value if status else None,
        role=role.value if role else None,
        search=search,
    )
    return {"success": True, "data": data}


@router.get("/stats/overview")
async def stats_overview(admin: AdminUserDep, service: UserServiceDep):
    data, from_cache = await service.stats_overview()
    return {"success": True, "data": data, "fromCache": from_cache}


@router.get("/{user_id}")
async def get_user(user_id: str, user: CurrentUserDep, service: UserServiceDep):
    data, from_cache = await service.get_user(user, user_id)
    return {"success": True, "data": {"user": data}, "fromCache": from_cache}


@router.get("/{user_id}/cloudpc-stats")
async def cloudpc_stats(user_id: str, user: CurrentUserDep, service: UserServiceDep):
    data, from_cache = await service.cloudpc_stats(user, user_id)
    return {"success": True, "data": data, "fromCache": from_cache}


@router.put("/{user_id}/status")
async def update_status(user_id: str, body: UserStatusUpdateRequest, admin: AdminUserDep, service: UserServiceDep):
    data = await service.update_status(admin, user_id, body.status)
    return {"success": True, "message": "User status updated", "data": {"user": data}}


@router.put("/{user_id}/role")
async def update_role(user_id: str, body: UserRoleUpdateRequest, admin: AdminUserDep, service: UserServiceDep):
    data = await service.update_role(admin, user_id, body.role)
    return {"success": True, "message": "User role updated", "data": {"user": data}}


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: AdminUserDep, service: UserServiceDep):
    await service.delete_user(admin, user_id)
    return {"success": True, "message": "User deleted"}

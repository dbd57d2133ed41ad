"""
Cloud PC Routes

All routes are scoped to the authenticated owner. ``/configs`` is declared
before ``/{cloudpc_id}`` so it is not captured as an id.
"""

from fastapi import APIRouter, Query, status

from cloudpc.application.api.dependencies import CloudPCServiceDep, CurrentUserDep
from cloudpc.application.api.models import CloudPCCreateRequest, CloudPCUpdateRequest
from cloudpc.core.config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, CloudPCStatus, LifecycleAction

router = APIRouter(prefix="/cloudpc", tags=["Cloud PC"])


@router.get("")
@router.get("/", include_in_schema=False)
async def list_cloudpcs(
    user: CurrentUserDep,
    service: CloudPCServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: str = Query("-createdAt"),
    status_filter: CloudPCStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
):
    result, from_cache = await service.list(
        user.id,
        page=page,
        limit=limit,
        sort=sort,
        status=status_filter.value if status_filter else None,
        search=search,
    )
    return {"success": True, "data": result, "fromCache": from_cache}


@router.get("/configs")
async def available_configs(user: CurrentUserDep, service: CloudPCServiceDep):
    return {"success": True, "data": {"configs": service.available_configs()}}


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def create_cloudpc(body: CloudPCCreateRequest, user: CurrentUserDep, service: CloudPCServiceDep):
    cloudpc = await service.create(user.id, body.to_service_dict())
    return {"success": True, "message": "Cloud PC created", "data": {"cloudPC": cloudpc}}


@router.get("/{cloudpc_id}")
async def get_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    cloudpc, from_cache = await service.get(user.id, cloudpc_id)
    return {"success": True, "data": {"cloudPC": cloudpc}, "fromCache": from_cache}


@router.put("/{cloudpc_id}")
async def update_cloudpc(
    cloudpc_id: str, body: CloudPCUpdateRequest, user: CurrentUserDep, service: CloudPCServiceDep
):
    cloudpc = await service.update(user.id, cloudpc_id, body.to_service_dict())
    return {"success": True, "message": "Cloud PC updated", "data": {"cloudPC": cloudpc}}


@router.delete("/{cloudpc_id}")
async def delete_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    await service.delete(user.id, cloudpc_id)
    return {"success": True, "message": "Cloud PC deleted"}


async def _transition(service, user_id: str, cloudpc_id: str, action: LifecycleAction) -> dict:
    result = await service.transition(user_id, cloudpc_id, action)
    return {"success": True, "message": result["message"], "data": {"cloudPC": result["cloudPC"]}}


@router.post("/{cloudpc_id}/start")
async def start_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    return await _transition(service, user.id, cloudpc_id, LifecycleAction.START)


@router.post("/{cloudpc_id}/stop")
async def stop_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    return await _transition(service, user.id, cloudpc_id, LifecycleAction.STOP)


@router.post("/{cloudpc_id}/restart")
async def restart_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    return await _transition(service, user.id, cloudpc_id, LifecycleAction.RESTART)


@router.get("/{cloudpc_id}/monitor")
async def monitor_cloudpc(cloudpc_id: str, user: CurrentUserDep, service: CloudPCServiceDep):
    data, from_cache = await service.monitor(user.id, cloudpc_id)
    return {"success": True, "data": data, "fromCache": from_cache}

"""
Terminal WebSocket Route

``/ws/cloudpc?token=<jwt>&cloudPCId=<id>[&sessionId=<id>]``

Handshake:
    1. Accept, then validate the query: a missing token or cloud PC id, a
       token that does not verify, or a cloud PC the user does not own
       closes the socket with 1008 (policy violation).
    2. Register with the ConnectionRegistry, which sends
       ``connection_established`` and ``terminal_welcome``.

Then every text or binary frame is handed to ``registry.route_message`` until the
client disconnects, at which point the connection is deregistered.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from cloudpc.core.config.constants import WS_POLICY_VIOLATION, Stage
from cloudpc.core.exceptions import APIError, HandshakeRejectedError
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.realtime import messages

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


class TerminalSocket:
    """
    Adapts a FastAPI WebSocket to the registry's ClientSocket protocol.

    Starlette has no protocol-level ping, so ``ping`` sends a ``{"type": "ping"}``
    envelope and the client's ``pong`` reply marks the connection alive.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._lock = asyncio.Lock()

    async def send_json(self, data: dict[str, Any]) -> None:
        async with self._lock:
            await self.websocket.send_json(data)

    async def ping(self) -> None:
        await self.send_json(messages.ping())

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close(code=code, reason=reason)


async def _handshake(websocket: WebSocket):
    """
    Validate the query parameters.

    Returns:
        (user, cloud PC id, requested session id or None)

    Raises:
        HandshakeRejectedError: missing parameter, bad token or foreign cloud PC
    """
    state = websocket.app.state
    token = websocket.query_params.get("token")
    cloudpc_id = websocket.query_params.get("cloudPCId")
    if not token or not cloudpc_id:
        raise HandshakeRejectedError("Missing authentication token or cloud PC id")

    try:
        user = await state.auth_service.authenticate(token)
    except APIError as e:
        raise HandshakeRejectedError(e.message, details={"error_type": type(e).__name__}) from e

    if await state.cloudpcs.get_owned(cloudpc_id, user.id) is None:
        raise HandshakeRejectedError("Cloud PC not found", details={"cloudpc_id": cloudpc_id})

    return user, cloudpc_id, websocket.query_params.get("sessionId")


@router.websocket("/ws/cloudpc")
async def cloudpc_terminal(websocket: WebSocket):
    await websocket.accept()

    try:
        user, cloudpc_id, session_id = await _handshake(websocket)
    except HandshakeRejectedError as e:
        logger.warning("Terminal handshake rejected", stage=Stage.WEBSOCKET.value, reason=e.message, **e.details)
        await websocket.close(code=WS_POLICY_VIOLATION, reason=e.message)
        return

    registry = websocket.app.state.registry
    socket = TerminalSocket(websocket)
    await registry.register(
        socket,
        user.id,
        cloudpc_id,
        session_id=session_id,
        user_agent=websocket.headers.get("user-agent"),
    )

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            # Text and binary frames are both JSON to the registry
            raw = message.get("text")
            await registry.route_message(socket, raw if raw is not None else message.get("bytes") or b"")
    except WebSocketDisconnect as e:
        log_stage(logger, Stage.WEBSOCKET, "Terminal client disconnected", code=e.code, cloudpc_id=cloudpc_id)
    finally:
        await registry.deregister(socket)

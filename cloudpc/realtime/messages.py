"""
Terminal WebSocket envelopes.

Inbound frames are ``{"type": str, "payload": {...}}``. Outbound frames carry
``type`` plus either ``data`` or ``message``, always with an ISO timestamp.
"""

from datetime import datetime, timezone
from typing import Any

import orjson

from cloudpc.core.config.constants import WSMessageType
from cloudpc.core.exceptions import MalformedMessageError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_message(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """
    Decode an inbound frame into ``(type, payload)``.

    Raises:
        MalformedMessageError: not JSON, not an object, or no string ``type``
    """
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedMessageError("Invalid JSON frame", details={"error": str(e)})

    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        raise MalformedMessageError("Frame must be an object with a string 'type'")

    payload = message.get("payload")
    return message["type"], payload if isinstance(payload, dict) else {}


def _data(message_type: WSMessageType, **data: Any) -> dict[str, Any]:
    return {"type": message_type.value, "data": {**data, "timestamp": _now()}}


def connection_established(session_id: str, cloudpc_id: str) -> dict[str, Any]:
    return {
        "type": WSMessageType.CONNECTION_ESTABLISHED.value,
        "message": "Cloud PC connection established",
        "data": {"sessionId": session_id, "cloudPCId": cloudpc_id, "timestamp": _now()},
    }


def terminal_welcome(session_id: str, cloudpc_id: str) -> dict[str, Any]:
    return {
        "type": WSMessageType.TERMINAL_WELCOME.value,
        "message": "Cloud PC web terminal connected",
        "data": {
            "sessionId": session_id,
            "cloudPCId": cloudpc_id,
            "welcomeMessage": "Welcome to the cloud PC web terminal! Type 'help' to list commands.",
        },
    }


def terminal_output(session_id: str, command: str, output: Any) -> dict[str, Any]:
    return _data(WSMessageType.TERMINAL_OUTPUT, sessionId=session_id, command=command, output=output)


def terminal_resized(session_id: str, cols: Any, rows: Any) -> dict[str, Any]:
    return _data(WSMessageType.TERMINAL_RESIZED, sessionId=session_id, cols=cols, rows=rows)


def clipboard_synced(session_id: str | None, action: Any) -> dict[str, Any]:
    return _data(WSMessageType.CLIPBOARD_SYNCED, sessionId=session_id, action=action)


def event_ack(message_type: WSMessageType) -> dict[str, Any]:
    """``mouse_event_ack`` / ``keyboard_event_ack``."""
    return _data(message_type)


def status_changed(cloudpc_id: str, status: str, **extra: Any) -> dict[str, Any]:
    return _data(WSMessageType.STATUS_CHANGED, cloudPCId=cloudpc_id, status=status, **extra)


def pong() -> dict[str, Any]:
    return {"type": WSMessageType.PONG.value, "timestamp": _now()}


def ping() -> dict[str, Any]:
    return {"type": WSMessageType.PING.value, "timestamp": _now()}


def terminal_error(message: str) -> dict[str, Any]:
    return {"type": WSMessageType.TERMINAL_ERROR.value, "message": message, "timestamp": _now()}


def error(message: str) -> dict[str, Any]:
    return {"type": WSMessageType.ERROR.value, "message": message, "timestamp": _now()}

"""
Connection Registry

In-memory index of live terminal WebSocket connections.

Architecture:
    ConnectionRegistry
        ├── _connections: socket -> ConnectionRecord
        ├── _resources:   cloud PC id -> set of sockets (fan-out index)
        ├── _sessions:    session id -> TerminalSession
        └── background tasks: liveness sweep, session sweep

Concurrency:
    Everything runs on one event loop. The maps are only mutated between
    awaits, so no lock guards them; each socket's sends are serialised by the
    record's own ``asyncio.Lock``.

Liveness:
    Every sweep clears each connection's ``is_alive`` flag and pings it. A
    connection whose flag is still clear at the next sweep is terminated and
    deregistered. ``mark_alive`` is called when a pong arrives.
"""

import asyncio
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from cloudpc.core.config.constants import Stage, WSMessageType
from cloudpc.core.config.settings import Settings, get_settings
from cloudpc.core.exceptions import MalformedMessageError
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.infrastructure.monitoring.metrics_collector import MetricsCollector
from cloudpc.realtime import messages
from cloudpc.realtime.terminal import TerminalSession, execute_command

logger = get_logger(__name__)

# RFC 6455 "going away", used when a connection fails the liveness check
WS_GOING_AWAY = 1001

_BASE36 = string.digits + string.ascii_lowercase


class ClientSocket(Protocol):
    """The parts of a WebSocket the registry needs."""

    async def send_json(self, data: dict[str, Any]) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def ping(self) -> None: ...


def generate_session_id() -> str:
    """``session_{epoch ms}_{9 base36 chars}``"""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


@dataclass(eq=False)
class ConnectionRecord:
    socket: ClientSocket
    user_id: str
    cloudpc_id: str
    session_id: str
    user_agent: str | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_alive: bool = True
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class ConnectionRegistry:
    """
    Tracks terminal connections and routes their messages.

    Usage:
        registry = ConnectionRegistry(settings, metrics)
        await registry.start()

        await registry.register(socket, user_id, cloudpc_id)
        await registry.route_message(socket, raw_frame)
        await registry.broadcast_to_resource(cloudpc_id, message)
        await registry.deregister(socket)

        await registry.stop()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        metrics: MetricsCollector | None = None,
    ):
        settings = settings or get_settings()
        ws = settings.websocket
        self.heartbeat_interval = ws.WS_HEARTBEAT_INTERVAL
        self.session_retention = ws.WS_SESSION_RETENTION
        self.session_sweep_interval = ws.WS_SESSION_SWEEP_INTERVAL
        self.history_limit = ws.WS_HISTORY_LIMIT

        self._metrics = metrics
        self._connections: dict[ClientSocket, ConnectionRecord] = {}
        self._resources: dict[str, set[ClientSocket]] = {}
        self._sessions: dict[str, TerminalSession] = {}
        self._tasks: list[asyncio.Task] = []

        self._handlers = {
            WSMessageType.TERMINAL_INPUT.value: self.handle_terminal_input,
            WSMessageType.TERMINAL_RESIZE.value: self._handle_terminal_resize,
            WSMessageType.CLIPBOARD_SYNC.value: self._handle_clipboard_sync,
            WSMessageType.MOUSE_EVENT.value: self._handle_mouse_event,
            WSMessageType.KEYBOARD_EVENT.value: self._handle_keyboard_event,
            WSMessageType.PING.value: self._handle_ping,
            WSMessageType.PONG.value: self._handle_pong,
        }

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, socket: ClientSocket) -> ConnectionRecord | None:
        return self._connections.get(socket)

    def get_session(self, session_id: str) -> TerminalSession | None:
        return self._sessions.get(session_id)

    def observers(self, cloudpc_id: str) -> set[ClientSocket]:
        return set(self._resources.get(cloudpc_id, ()))

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, socket: ClientSocket) -> bool:
        return socket in self._connections

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, socket: ClientSocket, message: dict[str, Any]) -> bool:
        """
        Send one envelope under the connection's send lock.

        Failures are logged and reported as False; they never raise.
        """
        record = self._connections.get(socket)
        try:
            if record:
                async with record.send_lock:
                    await socket.send_json(message)
            else:
                await socket.send_json(message)
        except Exception as e:
            logger.warning(
                "WebSocket send failed",
                stage=Stage.WEBSOCKET.value,
                message_type=message.get("type"),
                session_id=record.session_id if record else None,
                error=str(e),
            )
            return False

        if self._metrics:
            self._metrics.record_ws_message(message.get("type", "unknown"), "outbound")
        return True

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(
        self,
        socket: ClientSocket,
        user_id: str,
        cloudpc_id: str,
        session_id: str | None = None,
        user_agent: str | None = None,
    ) -> ConnectionRecord:
        """
        Index an authenticated connection and open its terminal session.

        A requested ``session_id`` is only honoured when it is free or names
        an inactive session of the same user; otherwise a new id is issued.
        Sends ``connection_established`` then ``terminal_welcome``.
        """
        session_id = self._claim_session_id(session_id, user_id)
        record = ConnectionRecord(
            socket=socket,
            user_id=user_id,
            cloudpc_id=cloudpc_id,
            session_id=session_id,
            user_agent=user_agent,
        )
        self._connections[socket] = record
        self._resources.setdefault(cloudpc_id, set()).add(socket)
        self._sessions[session_id] = TerminalSession(
            session_id=session_id,
            cloudpc_id=cloudpc_id,
            user_id=user_id,
            history_limit=self.history_limit,
        )
        self._report_connections()

        log_stage(
            logger,
            Stage.WEBSOCKET,
            "Terminal connection established",
            user_id=user_id,
            cloudpc_id=cloudpc_id,
            session_id=session_id,
            user_agent=user_agent,
        )

        await self.send(socket, messages.connection_established(session_id, cloudpc_id))
        await self.send(socket, messages.terminal_welcome(session_id, cloudpc_id))
        return record

    async def deregister(self, socket: ClientSocket) -> bool:
        """
        Drop a connection from both indexes.

        The terminal session is marked inactive and left for the session sweep.

        Returns:
            False if the socket was not registered
        """
        record = self._connections.pop(socket, None)
        if record is None:
            return False

        observers = self._resources.get(record.cloudpc_id)
        if observers is not None:
            observers.discard(socket)
            if not observers:
                del self._resources[record.cloudpc_id]

        session = self._sessions.get(record.session_id)
        if session and session.user_id == record.user_id and not self._session_held(record.session_id):
            session.is_active = False

        self._report_connections()
        log_stage(
            logger,
            Stage.WEBSOCKET,
            "Terminal connection closed",
            session_id=record.session_id,
            cloudpc_id=record.cloudpc_id,
            duration=round((datetime.now(timezone.utc) - record.connected_at).total_seconds(), 3),
        )
        return True

    def _session_held(self, session_id: str) -> bool:
        return any(r.session_id == session_id for r in self._connections.values())

    def _claim_session_id(self, requested: str | None, user_id: str) -> str:
        if not requested:
            return generate_session_id()

        existing = self._sessions.get(requested)
        if existing is None:
            return requested
        if existing.user_id == user_id and not self._session_held(requested):
            return requested

        logger.warning(
            "Requested terminal session is taken, issuing a new one",
            stage=Stage.WEBSOCKET.value,
            user_id=user_id,
            requested_session_id=requested,
        )
        return generate_session_id()

    def _report_connections(self) -> None:
        if self._metrics:
            self._metrics.set_ws_connections(len(self._connections))

    # =========================================================================
    # Inbound routing
    # =========================================================================

    async def route_message(self, socket: ClientSocket, raw: str | bytes) -> None:
        """
        Dispatch one inbound frame.

        Malformed frames and handler failures are answered with a single
        ``error`` envelope; the connection stays registered. Unknown types
        are logged and dropped.
        """
        record = self._connections.get(socket)
        try:
            message_type, payload = messages.parse_message(raw)
        except MalformedMessageError as e:
            logger.warning(
                "Malformed WebSocket frame",
                stage=Stage.WEBSOCKET.value,
                session_id=record.session_id if record else None,
                error=e.message,
            )
            await self.send(socket, messages.error("Malformed message"))
            return

        if self._metrics:
            self._metrics.record_ws_message(message_type, "inbound")

        handler = self._handlers.get(message_type)
        if handler is None:
            logger.warning("Unknown WebSocket message type", stage=Stage.WEBSOCKET.value, type=message_type)
            return

        try:
            await handler(socket, payload)
        except Exception as e:
            logger.error(
                "WebSocket handler failed",
                stage=Stage.WEBSOCKET.value,
                type=message_type,
                session_id=record.session_id if record else None,
                error=str(e),
                exc_info=True,
            )
            if self._metrics:
                self._metrics.record_error(type(e).__name__, "websocket")
            await self.send(socket, messages.error("Message handling failed"))

    def _owned_session(self, socket: ClientSocket, session_id: Any) -> TerminalSession | None:
        record = self._connections.get(socket)
        session = self._sessions.get(session_id) if isinstance(session_id, str) else None
        if session is None or record is None or session.user_id != record.user_id:
            return None
        return session

    async def handle_terminal_input(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        """
        Run ``payload["command"]`` in the simulator and reply ``terminal_output``.

        An unknown session, or one owned by another user, gets a
        ``terminal_error`` and nothing is recorded.
        """
        session_id = payload.get("sessionId")
        session = self._owned_session(socket, session_id)
        if session is None:
            await self.send(socket, messages.terminal_error("Terminal session not found"))
            return

        command = payload.get("command")
        command = command if isinstance(command, str) else ""
        output = execute_command(command, session)
        session.record(command, output)

        log_stage(
            logger,
            Stage.TERMINAL,
            "Terminal command executed",
            level="debug",
            session_id=session_id,
            cloudpc_id=session.cloudpc_id,
            command=command,
        )
        await self.send(socket, messages.terminal_output(session_id, command, output))

    async def _handle_terminal_resize(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        session_id = payload.get("sessionId")
        session = self._owned_session(socket, session_id)
        if session is None:
            return
        cols, rows = payload.get("cols"), payload.get("rows")
        session.resize_info = {"cols": cols, "rows": rows}
        session.touch()
        await self.send(socket, messages.terminal_resized(session_id, cols, rows))

    async def _handle_clipboard_sync(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        await self.send(socket, messages.clipboard_synced(payload.get("sessionId"), payload.get("action")))

    async def _handle_mouse_event(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        await self.send(socket, messages.event_ack(WSMessageType.MOUSE_EVENT_ACK))

    async def _handle_keyboard_event(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        await self.send(socket, messages.event_ack(WSMessageType.KEYBOARD_EVENT_ACK))

    async def _handle_ping(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        await self.send(socket, messages.pong())

    async def _handle_pong(self, socket: ClientSocket, payload: dict[str, Any]) -> None:
        self.mark_alive(socket)

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def broadcast_to_resource(self, cloudpc_id: str, message: dict[str, Any]) -> int:
        """
        Send ``message`` to every connection observing ``cloudpc_id``.

        Returns:
            Number of successful deliveries
        """
        sockets = list(self._resources.get(cloudpc_id, ()))
        if not sockets:
            return 0
        results = await asyncio.gather(*(self.send(s, message) for s in sockets))
        return sum(1 for ok in results if ok)

    # =========================================================================
    # Liveness and session sweeps
    # =========================================================================

    def mark_alive(self, socket: ClientSocket) -> None:
        record = self._connections.get(socket)
        if record:
            record.is_alive = True

    async def liveness_sweep(self) -> int:
        """
        One liveness pass over every connection.

        Returns:
            Number of connections terminated
        """
        terminated = 0
        for socket, record in list(self._connections.items()):
            if not record.is_alive:
                await self._terminate(socket, record)
                terminated += 1
                continue

            record.is_alive = False
            try:
                await socket.ping()
            except Exception as e:
                logger.warning(
                    "Liveness ping failed",
                    stage=Stage.LIVENESS.value,
                    session_id=record.session_id,
                    error=str(e),
                )
                await self._terminate(socket, record)
                terminated += 1

        if terminated:
            log_stage(logger, Stage.LIVENESS, "Liveness sweep terminated connections", terminated=terminated)
        return terminated

    async def _terminate(self, socket: ClientSocket, record: ConnectionRecord) -> None:
        await self.deregister(socket)
        try:
            await socket.close(code=WS_GOING_AWAY, reason="Liveness check failed")
        except Exception as e:
            logger.debug("Close after failed liveness check raised", session_id=record.session_id, error=str(e))

    def session_sweep(self, now: float | None = None) -> int:
        """
        Drop inactive sessions idle for longer than the retention window.

        Returns:
            Number of sessions pruned
        """
        now = time.monotonic() if now is None else now
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if not session.is_active and now - session.last_activity > self.session_retention
        ]
        for session_id in expired:
            del self._sessions[session_id]

        if expired:
            log_stage(logger, Stage.WEBSOCKET, "Pruned inactive terminal sessions", pruned=len(expired))
        return len(expired)

    def get_connection_stats(self) -> dict[str, int]:
        return {
            "totalConnections": len(self._connections),
            "cloudPCConnections": len(self._resources),
            "terminalSessions": len(self._sessions),
            "activeSessions": sum(1 for s in self._sessions.values() if s.is_active),
        }

    # =========================================================================
    # Background tasks
    # =========================================================================

    async def _liveness_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.liveness_sweep()
            except Exception as e:
                logger.error("Liveness sweep failed", stage=Stage.LIVENESS.value, error=str(e), exc_info=True)

    async def _session_loop(self) -> None:
        while True:
            await asyncio.sleep(self.session_sweep_interval)
            self.session_sweep()

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._liveness_loop(), name="ws-liveness-sweep"),
            asyncio.create_task(self._session_loop(), name="ws-session-sweep"),
        ]
        logger.info(
            "Connection registry started",
            heartbeat_interval=self.heartbeat_interval,
            session_sweep_interval=self.session_sweep_interval,
        )

    async def stop(self) -> None:
        """Cancel the sweeps and close every open connection."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        for socket in list(self._connections):
            await self.deregister(socket)
            try:
                await socket.close(code=WS_GOING_AWAY, reason="Server shutting down")
            except Exception as e:
                logger.debug("Close during shutdown raised", error=str(e))
        logger.info("Connection registry stopped", stage=Stage.SHUTDOWN.value)

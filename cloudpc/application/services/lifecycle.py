"""
Lifecycle Scheduler

Simulated power-state transitions for cloud PCs.

STATE MACHINE:
--------------
    action   allowed from                 interim      delay    final
    start    anything but running/error   starting     3s       running (+ connection info)
    stop     anything but stopped/starting stopping    2s       stopped (connection info cleared)
    restart  running                      restarting   5s       running

The interim status is written immediately; the final status is written by
an asyncio task after the delay. Each cloud PC has at most one pending task:
a new request replaces the old one, and ``cancel`` (called on delete)
guarantees a cancelled transition never writes.

Completion re-reads the record inside the write transaction, so a record
deleted after the delay is skipped rather than resurrected.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from cloudpc.core.config.constants import CloudPCStatus, LifecycleAction, LogLevel, Stage
from cloudpc.core.config.settings import Settings
from cloudpc.core.exceptions import InvalidTransitionError, ResourceNotFoundError
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.infrastructure.cache.cache_service import CacheService
from cloudpc.infrastructure.monitoring.metrics_collector import MetricsCollector
from cloudpc.infrastructure.persistence.models import CloudPC
from cloudpc.infrastructure.persistence.repositories import CloudPCRepository
from cloudpc.realtime import messages
from cloudpc.realtime.connection_registry import ConnectionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    interim: CloudPCStatus
    final: CloudPCStatus
    message: str


TRANSITIONS = {
    LifecycleAction.START: Transition(CloudPCStatus.STARTING, CloudPCStatus.RUNNING, "Cloud PC is starting, please wait..."),
    LifecycleAction.STOP: Transition(CloudPCStatus.STOPPING, CloudPCStatus.STOPPED, "Cloud PC is stopping, please wait..."),
    LifecycleAction.RESTART: Transition(CloudPCStatus.RESTARTING, CloudPCStatus.RUNNING, "Cloud PC is restarting, please wait..."),
}


def check_transition(action: LifecycleAction, status: str) -> None:
    """
    Raises:
        InvalidTransitionError: ``action`` is not allowed from ``status``
    """
    details = {"status": status, "action": action.value}
    if action is LifecycleAction.START:
        if status == CloudPCStatus.RUNNING.value:
            raise InvalidTransitionError("Cloud PC is already running", details=details)
        if status == CloudPCStatus.ERROR.value:
            raise InvalidTransitionError("Cloud PC is in an error state and cannot be started", details=details)
    elif action is LifecycleAction.STOP:
        if status == CloudPCStatus.STOPPED.value:
            raise InvalidTransitionError("Cloud PC is already stopped", details=details)
        if status == CloudPCStatus.STARTING.value:
            raise InvalidTransitionError("Cloud PC is starting and cannot be stopped", details=details)
    elif action is LifecycleAction.RESTART:
        if status != CloudPCStatus.RUNNING.value:
            raise InvalidTransitionError("Only running cloud PCs can be restarted", details=details)


class LifecycleScheduler:
    """
    Runs lifecycle transitions as cancellable asyncio tasks.

    Usage:
        scheduler = LifecycleScheduler(repo, cache, settings, registry=registry)
        updated = await scheduler.request(cloudpc, LifecycleAction.START)
        scheduler.cancel(cloudpc.id)
        await scheduler.shutdown()
    """

    def __init__(
        self,
        cloudpcs: CloudPCRepository,
        cache: CacheService,
        settings: Settings,
        registry: ConnectionRegistry | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.cloudpcs = cloudpcs
        self.cache = cache
        self.registry = registry
        self.metrics = metrics
        lifecycle = settings.lifecycle
        self.base_url = lifecycle.CLOUDPC_BASE_URL.rstrip("/")
        self.delays = {
            LifecycleAction.START: lifecycle.LIFECYCLE_START_DELAY,
            LifecycleAction.STOP: lifecycle.LIFECYCLE_STOP_DELAY,
            LifecycleAction.RESTART: lifecycle.LIFECYCLE_RESTART_DELAY,
        }
        # Cancellable: still sleeping. Running: everything not yet finished.
        self._pending: dict[str, asyncio.Task] = {}
        self._running: set[asyncio.Task] = set()

    def is_pending(self, cloudpc_id: str) -> bool:
        return cloudpc_id in self._pending

    def connection_info(self, cloudpc_id: str) -> dict[str, Any]:
        return {
            "endpoint": f"{self.base_url}/connect/{cloudpc_id}",
            "protocol": "RDP",
            "port": 3389,
            "username": "cloudpc",
        }

    async def request(self, cloudpc: CloudPC, action: LifecycleAction) -> CloudPC:
        """
        Validate ``action``, write the interim status and schedule completion.

        Raises:
            InvalidTransitionError: not allowed from the current status
            ResourceNotFoundError: the record vanished before the write
        """
        check_transition(action, cloudpc.status)
        transition = TRANSITIONS[action]

        self.cancel(cloudpc.id)
        updated = await self.cloudpcs.update_fields(
            cloudpc.id,
            log=(LogLevel.INFO, f"{action.value} requested"),
            status=transition.interim.value,
        )
        if updated is None:
            raise ResourceNotFoundError("Cloud PC not found")

        log_stage(
            logger,
            Stage.LIFECYCLE,
            "Lifecycle transition scheduled",
            cloudpc_id=cloudpc.id,
            action=action.value,
            status=transition.interim.value,
            delay=self.delays[action],
        )
        await self._after_write(updated)

        task = asyncio.create_task(self._complete(cloudpc.id, action), name=f"lifecycle-{action.value}-{cloudpc.id}")
        self._pending[cloudpc.id] = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return updated

    async def _complete(self, cloudpc_id: str, action: LifecycleAction) -> None:
        transition = TRANSITIONS[action]
        try:
            await asyncio.sleep(self.delays[action])
        except asyncio.CancelledError:
            log_stage(logger, Stage.LIFECYCLE, "Lifecycle transition cancelled", cloudpc_id=cloudpc_id, action=action.value)
            raise

        # Past the sleep the transition can no longer be cancelled by a request
        if self._pending.get(cloudpc_id) is asyncio.current_task():
            del self._pending[cloudpc_id]

        fields: dict[str, Any] = {"status": transition.final.value}
        if action is LifecycleAction.START:
            fields["connection_info"] = self.connection_info(cloudpc_id)
        elif action is LifecycleAction.STOP:
            fields["connection_info"] = None

        try:
            updated = await self.cloudpcs.update_fields(
                cloudpc_id,
                log=(LogLevel.INFO, f"{action.value} completed"),
                **fields,
            )
        except Exception as e:
            logger.error(
                "Lifecycle transition failed",
                stage=Stage.LIFECYCLE.value,
                cloudpc_id=cloudpc_id,
                action=action.value,
                error=str(e),
                exc_info=True,
            )
            if self.metrics:
                self.metrics.record_error(type(e).__name__, "lifecycle")
            return

        if updated is None:
            logger.info("Cloud PC gone before transition completed", cloudpc_id=cloudpc_id, action=action.value)
            return

        log_stage(
            logger,
            Stage.LIFECYCLE,
            "Lifecycle transition completed",
            cloudpc_id=cloudpc_id,
            action=action.value,
            status=updated.status,
        )
        await self._after_write(updated)

    async def _after_write(self, cloudpc: CloudPC) -> None:
        """Refresh caches, notify observers and update the status gauge."""
        await self.cache.invalidate_cloudpc_cache(cloudpc.id)
        await self.cache.invalidate_stats()
        await self.cache.cache_cloudpc_detail(cloudpc.id, cloudpc.to_dict())

        if self.registry is not None:
            await self.registry.broadcast_to_resource(
                cloudpc.id,
                messages.status_changed(cloudpc.id, cloudpc.status, connectionInfo=cloudpc.connection_info),
            )
        if self.metrics:
            self.metrics.set_cloudpc_status_counts(await self.cloudpcs.status_counts())

    def cancel(self, cloudpc_id: str) -> bool:
        """
        Cancel a transition that is still waiting.

        Returns:
            True if a pending transition was cancelled
        """
        task = self._pending.pop(cloudpc_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every outstanding transition and wait for them to unwind."""
        tasks = list(self._running)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        logger.info("Lifecycle scheduler stopped", stage=Stage.SHUTDOWN.value, cancelled=len(tasks))

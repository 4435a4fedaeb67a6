"""Backup orchestration: connect, export, write, close.

The service only knows the :class:`SSHClient` capability. One call to
:meth:`BackupService.execute` owns its session from start to finish, so
separate instances can run side by side without any locking.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Optional, TextIO, TypeVar

from mikrotik_backup.errors import BackupError, Stage
from mikrotik_backup.models.connection import ConnectionParameters
from mikrotik_backup.services.transport import SSHClient
from mikrotik_backup.utils.logging import get_logger

log = get_logger(__name__)

EXPORT_COMMAND = "/export"

T = TypeVar("T")


class BackupState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXPORTING = "exporting"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class BackupService:
    """Runs a single configuration backup against one device."""

    def __init__(self, client: SSHClient) -> None:
        self._client = client
        self.state = BackupState.IDLE

    # ── public ────────────────────────────────────────────────────────

    async def execute(
        self,
        params: ConnectionParameters,
        output: TextIO,
        *,
        timeout: float | None = None,
    ) -> None:
        """Export the device configuration into *output*.

        *output* is written to but never closed. *timeout* is one deadline
        shared by the connect and export steps; hitting it fails the
        current step with :class:`TimeoutError`.

        Raises :class:`BackupError` tagged with the failing stage. Task
        cancellation propagates unwrapped once the session is closed.
        """
        deadline: Optional[float] = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout

        self._enter(BackupState.CONNECTING)
        log.info(
            "backup.connecting",
            host=params.host,
            port=params.port,
            username=params.username,
            auth=params.auth_method,
        )
        try:
            await self._bounded(self._client.open(params), deadline)
        except Exception as exc:
            self._enter(BackupState.FAILED)
            raise BackupError(Stage.CONNECT, exc) from exc
        except BaseException:
            self._enter(BackupState.FAILED)
            raise

        self._enter(BackupState.CONNECTED)
        try:
            self._enter(BackupState.EXPORTING)
            try:
                text = await self._bounded(
                    self._client.run_command(EXPORT_COMMAND), deadline,
                )
            except Exception as exc:
                raise BackupError(Stage.EXPORT, exc) from exc
            log.info("backup.exported", chars=len(text))

            self._enter(BackupState.WRITING)
            try:
                output.write(text)
                # Buffered sinks only report disk errors when flushed.
                flush = getattr(output, "flush", None)
                if flush is not None:
                    flush()
            except Exception as exc:
                raise BackupError(Stage.WRITE, exc) from exc
        except BaseException:
            self._enter(BackupState.FAILED)
            raise
        finally:
            await self._close()

        self._enter(BackupState.DONE)

    # ── helpers ───────────────────────────────────────────────────────

    def _enter(self, state: BackupState) -> None:
        log.debug("backup.state", previous=self.state.value, state=state.value)
        self.state = state

    @staticmethod
    async def _bounded(aw: Awaitable[T], deadline: Optional[float]) -> T:
        if deadline is None:
            return await aw
        remaining = deadline - asyncio.get_running_loop().time()
        return await asyncio.wait_for(aw, timeout=max(remaining, 0.0))

    async def _close(self) -> None:
        # The outcome of the backup wins over the outcome of cleanup.
        try:
            await self._client.close()
        except Exception as exc:
            log.warning("backup.close_failed", error=str(exc))
        else:
            log.debug("backup.closed")

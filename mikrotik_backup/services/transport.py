"""The transport capability the backup service depends on."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mikrotik_backup.models.connection import ConnectionParameters


@runtime_checkable
class SSHClient(Protocol):
    """Open one session, run commands on it, close it.

    All three operations are coroutines so that task cancellation and
    ``asyncio.wait_for`` deadlines reach whatever I/O they block on.
    """

    async def open(self, params: ConnectionParameters) -> None: ...

    async def run_command(self, command: str) -> str: ...

    async def close(self) -> None: ...

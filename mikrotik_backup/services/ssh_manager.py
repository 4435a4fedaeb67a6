"""SSH session to a RouterOS device.

Uses scrapli GenericDriver (paramiko transport) run inside a single-thread
executor so the asyncio event loop is never blocked, and so cancelling the
awaiting task returns control immediately even if the socket is stuck.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from scrapli.driver import GenericDriver
from scrapli.exceptions import ScrapliException
from scrapli.response import Response

from mikrotik_backup.config import Settings
from mikrotik_backup.errors import CloseError, ConnectError, ExecutionError
from mikrotik_backup.models.commands import ConsoleReply
from mikrotik_backup.models.connection import ConnectionParameters
from mikrotik_backup.utils.logging import get_logger
from mikrotik_backup.utils.routeros_parser import (
    ROUTEROS_PROMPT_PATTERN,
    login_name,
)

log = get_logger(__name__)


class RouterOSSession:
    """One SSH session to one RouterOS device; satisfies ``SSHClient``."""

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or Settings()
        self._driver: Optional[GenericDriver] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ssh")
        self._released = False

    # ── connection lifecycle ──────────────────────────────────────────

    def _build_driver(self, params: ConnectionParameters) -> GenericDriver:
        auth_kwargs: dict = dict(
            host=params.host,
            port=params.port,
            auth_username=login_name(params.username, self._cfg.login_suffix),
            auth_password=params.password,
            auth_strict_key=False,
            transport="paramiko",
            timeout_socket=self._cfg.timeout_socket,
            timeout_transport=self._cfg.timeout_socket,
            timeout_ops=self._cfg.timeout_ops,
            comms_prompt_pattern=ROUTEROS_PROMPT_PATTERN,
        )
        if params.key_file:
            auth_kwargs["auth_private_key"] = params.key_file
        return GenericDriver(**auth_kwargs)

    def _open_sync(self, params: ConnectionParameters) -> GenericDriver:
        driver = self._build_driver(params)
        driver.open()
        return driver

    async def open(self, params: ConnectionParameters) -> None:
        if self._released:
            raise ConnectError("session is closed")
        if self._driver is not None:
            raise ConnectError("session is already open")

        log.info(
            "ssh.connecting",
            host=params.host,
            port=params.port,
            auth=params.auth_method,
        )
        pending = self._executor.submit(self._open_sync, params)
        try:
            self._driver = await asyncio.wrap_future(pending)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; close whatever it
            # manages to open.
            pending.add_done_callback(_close_abandoned)
            self._release()
            raise
        except (ScrapliException, OSError) as exc:
            self._release()
            raise ConnectError(f"{params.host}:{params.port}: {exc}") from exc
        log.info("ssh.connected", host=params.host)

    async def close(self) -> None:
        driver, self._driver = self._driver, None
        if driver is None:
            self._release()
            return
        try:
            await self._run(_close_driver, driver)
        except (ScrapliException, OSError) as exc:
            raise CloseError(str(exc)) from exc
        finally:
            self._release()
        log.info("ssh.closed")

    # ── helpers ───────────────────────────────────────────────────────

    def _release(self) -> None:
        # Queued work (such as closing an abandoned driver) still runs.
        self._released = True
        self._executor.shutdown(wait=False)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    # ── public: commands ──────────────────────────────────────────────

    async def run_command(self, command: str) -> str:
        """Run *command* and return its complete output."""
        if self._driver is None:
            raise ExecutionError("session is not open")
        try:
            reply: ConsoleReply = await self._run(
                _send_command_wrapper, self._driver, command, self._cfg.timeout_ops,
            )
        except (ScrapliException, OSError) as exc:
            raise ExecutionError(f"{command}: {exc}") from exc

        if reply.problem:
            raise ExecutionError(f"{command}: {reply.problem}")

        log.info("ssh.command", command=command, elapsed=reply.elapsed_time)
        return reply.output


# ── module-level sync wrappers (executor-friendly) ────────────────────────

def _close_driver(driver: GenericDriver) -> None:
    driver.close()


def _close_abandoned(pending: Future) -> None:
    if pending.cancelled() or pending.exception() is not None:
        return
    try:
        pending.result().close()
    except Exception as exc:
        log.warning("ssh.abandoned_close_failed", error=str(exc))
    else:
        log.info("ssh.abandoned_closed")


def _send_command_wrapper(
    driver: GenericDriver,
    command: str,
    timeout_ops: float,
) -> ConsoleReply:
    resp: Response = driver.send_command(command, timeout_ops=timeout_ops)
    return ConsoleReply.from_output(
        command,
        resp.result,
        transport_failed=resp.failed,
        elapsed_time=resp.elapsed_time or 0.0,
    )

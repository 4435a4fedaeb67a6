"""Tests for the scrapli-backed RouterOS session (fake driver, no network)."""

from __future__ import annotations

import asyncio
import threading

import pytest
from scrapli.exceptions import ScrapliAuthenticationFailed, ScrapliTimeout

import mikrotik_backup.services.ssh_manager as ssh_mod
from mikrotik_backup.config import Settings
from mikrotik_backup.errors import CloseError, ConnectError, ExecutionError
from mikrotik_backup.models.connection import ConnectionParameters
from mikrotik_backup.services.ssh_manager import RouterOSSession
from mikrotik_backup.services.transport import SSHClient
from tests.mock_ssh import BAD_COMMAND, EXPORT_FULL


class FakeResponse:
    def __init__(self, result: str, failed: bool = False) -> None:
        self.result = result
        self.failed = failed
        self.elapsed_time = 0.01


class FakeDriver:
    """Stands in for scrapli's GenericDriver."""

    created: list["FakeDriver"] = []
    responses: dict[str, tuple[str, bool]] = {}
    open_error: BaseException | None = None
    send_error: BaseException | None = None
    close_error: BaseException | None = None
    open_gate: threading.Event | None = None

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.alive = False
        self.closed = False
        self.commands: list[tuple[str, float | None]] = []
        type(self).created.append(self)

    def open(self) -> None:
        if self.open_gate is not None:
            self.open_gate.wait(timeout=5)
        if self.open_error is not None:
            raise self.open_error
        self.alive = True

    def send_command(self, command: str, timeout_ops: float | None = None) -> FakeResponse:
        self.commands.append((command, timeout_ops))
        if self.send_error is not None:
            raise self.send_error
        result, failed = self.responses.get(command, ("", False))
        return FakeResponse(result, failed)

    def close(self) -> None:
        self.closed = True
        self.alive = False
        if self.close_error is not None:
            raise self.close_error

    def isalive(self) -> bool:
        return self.alive


@pytest.fixture
def driver_cls(monkeypatch):
    cls = type(
        "Driver",
        (FakeDriver,),
        {"created": [], "responses": {"/export": (EXPORT_FULL, False)}},
    )
    monkeypatch.setattr(ssh_mod, "GenericDriver", cls)
    return cls


@pytest.fixture
def session():
    return RouterOSSession(Settings(timeout_socket=5, timeout_ops=45))


def test_session_satisfies_protocol(session):
    assert isinstance(session, SSHClient)


# ── open ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_open_password_auth(driver_cls, session, params):
    await session.open(params)

    driver = driver_cls.created[0]
    assert driver.kwargs["host"] == "192.168.88.1"
    assert driver.kwargs["port"] == 22
    assert driver.kwargs["auth_username"] == "admin+cet512w"
    assert driver.kwargs["auth_password"] == "password"
    assert driver.kwargs["auth_strict_key"] is False
    assert driver.kwargs["transport"] == "paramiko"
    assert driver.kwargs["timeout_socket"] == 5
    assert driver.kwargs["timeout_ops"] == 45
    assert "auth_private_key" not in driver.kwargs
    assert driver.alive


@pytest.mark.asyncio
async def test_open_key_auth(driver_cls, session):
    params = ConnectionParameters(host="router.lan", port=2222, key_file="/keys/id_ed25519")
    await session.open(params)

    driver = driver_cls.created[0]
    assert driver.kwargs["auth_private_key"] == "/keys/id_ed25519"
    assert driver.kwargs["port"] == 2222


@pytest.mark.asyncio
async def test_open_without_login_suffix(driver_cls, params):
    session = RouterOSSession(Settings(login_suffix=""))
    await session.open(params)
    assert driver_cls.created[0].kwargs["auth_username"] == "admin"


@pytest.mark.asyncio
async def test_open_auth_failure(driver_cls, session, params):
    driver_cls.open_error = ScrapliAuthenticationFailed("permission denied")

    with pytest.raises(ConnectError) as excinfo:
        await session.open(params)

    assert "192.168.88.1:22" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ScrapliAuthenticationFailed)
    with pytest.raises(ConnectError, match="session is closed"):
        await session.open(params)


@pytest.mark.asyncio
async def test_open_unreachable(driver_cls, session, params):
    driver_cls.open_error = ConnectionRefusedError(111, "Connection refused")

    with pytest.raises(ConnectError):
        await session.open(params)


@pytest.mark.asyncio
async def test_open_twice_rejected(driver_cls, session, params):
    await session.open(params)
    with pytest.raises(ConnectError):
        await session.open(params)
    assert len(driver_cls.created) == 1


@pytest.mark.asyncio
async def test_cancelled_open_closes_late_session(driver_cls, session, params):
    gate = threading.Event()
    driver_cls.open_gate = gate

    task = asyncio.create_task(session.open(params))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    gate.set()
    for _ in range(100):
        if driver_cls.created and driver_cls.created[0].closed:
            break
        await asyncio.sleep(0.02)

    assert driver_cls.created[0].closed
    with pytest.raises(ExecutionError):
        await session.run_command("/export")


# ── run_command ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_command_returns_output(driver_cls, session, params):
    await session.open(params)
    output = await session.run_command("/export")

    assert output == EXPORT_FULL
    assert driver_cls.created[0].commands == [("/export", 45)]


@pytest.mark.asyncio
async def test_run_command_before_open(driver_cls, session):
    with pytest.raises(ExecutionError):
        await session.run_command("/export")


@pytest.mark.asyncio
async def test_run_command_failed_response(driver_cls, session, params):
    driver_cls.responses = {"/export": ("", True)}
    await session.open(params)

    with pytest.raises(ExecutionError, match="command failed"):
        await session.run_command("/export")


@pytest.mark.asyncio
async def test_run_command_routeros_error(driver_cls, session, params):
    driver_cls.responses = {"/exportt": (BAD_COMMAND, False)}
    await session.open(params)

    with pytest.raises(ExecutionError, match="bad command name"):
        await session.run_command("/exportt")


@pytest.mark.asyncio
async def test_run_command_timeout(driver_cls, session, params):
    driver_cls.send_error = ScrapliTimeout("timed out sending input to device")
    await session.open(params)

    with pytest.raises(ExecutionError) as excinfo:
        await session.run_command("/export")

    assert isinstance(excinfo.value.__cause__, ScrapliTimeout)


# ── close ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_close_releases_driver(driver_cls, session, params):
    await session.open(params)
    await session.close()

    assert driver_cls.created[0].closed
    with pytest.raises(ExecutionError):
        await session.run_command("/export")


@pytest.mark.asyncio
async def test_closed_session_cannot_reopen(driver_cls, session, params):
    await session.open(params)
    await session.close()

    with pytest.raises(ConnectError, match="session is closed"):
        await session.open(params)
    assert len(driver_cls.created) == 1


@pytest.mark.asyncio
async def test_close_without_open_is_noop(driver_cls, session):
    await session.close()
    assert driver_cls.created == []


@pytest.mark.asyncio
async def test_close_failure(driver_cls, session, params):
    driver_cls.close_error = OSError("broken pipe")
    await session.open(params)

    with pytest.raises(CloseError, match="broken pipe"):
        await session.close()
    assert driver_cls.created[0].closed
    with pytest.raises(ConnectError, match="session is closed"):
        await session.open(params)


@pytest.mark.asyncio
async def test_export_with_wrapped_value_is_not_an_error(driver_cls, session, params):
    export = '/system script\nadd name=s source="\\\n    no such item in list"\n'
    driver_cls.responses = {"/export": (export, False)}
    await session.open(params)

    assert await session.run_command("/export") == export

"""Error types raised by the transport and the backup orchestrator."""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Pipeline step a backup failed in."""

    CONNECT = "connect"
    EXPORT = "export"
    WRITE = "write"


_STAGE_MESSAGES: dict[Stage, str] = {
    Stage.CONNECT: "failed to connect",
    Stage.EXPORT: "failed to export configuration",
    Stage.WRITE: "failed to write output",
}


class TransportError(Exception):
    """Base class for failures reported by an SSH transport."""


class ConnectError(TransportError):
    """Authentication or session establishment failed."""


class ExecutionError(TransportError):
    """The session is open but the remote command failed."""


class CloseError(TransportError):
    """Releasing the session failed. Never fatal for a backup."""


class BackupError(Exception):
    """A backup step failed.

    ``stage`` tells which step, ``cause`` is the original exception (also
    available as ``__cause__`` since it is always raised with ``from``).
    """

    def __init__(self, stage: Stage, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{_STAGE_MESSAGES[stage]}: {_describe(cause)}")


def _describe(exc: BaseException) -> str:
    text = str(exc)
    if text:
        return text
    return type(exc).__name__

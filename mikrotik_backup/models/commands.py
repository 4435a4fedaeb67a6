"""Outcome of one RouterOS console command."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from mikrotik_backup.utils.routeros_parser import detect_routeros_error


class ConsoleReply(BaseModel):
    """What the device printed for *command*, checked for console errors."""

    command: str
    output: str
    transport_failed: bool = False
    console_error: Optional[str] = None
    elapsed_time: float = 0.0

    @classmethod
    def from_output(
        cls,
        command: str,
        output: str,
        *,
        transport_failed: bool = False,
        elapsed_time: float = 0.0,
    ) -> "ConsoleReply":
        return cls(
            command=command,
            output=output,
            transport_failed=transport_failed,
            console_error=detect_routeros_error(output),
            elapsed_time=elapsed_time,
        )

    @property
    def problem(self) -> Optional[str]:
        """Why the command should be treated as failed, if it should."""
        if self.transport_failed:
            return "command failed"
        return self.console_error

"""Connection parameters for a single device."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ConnectionParameters(BaseModel):
    """How to reach and authenticate to one RouterOS device.

    Exactly one of ``password`` / ``key_file`` is expected to be usable, but
    that is the caller's concern: the transport decides what an empty field
    means.
    """

    model_config = {"frozen": True}

    host: str = Field(min_length=1)
    port: int = Field(default=22, gt=0, le=65535)
    username: str = Field(default="admin", min_length=1)
    password: str = Field(default="", repr=False)
    key_file: str = ""

    @property
    def auth_method(self) -> str:
        if self.key_file:
            return "key"
        if self.password:
            return "password"
        return "none"

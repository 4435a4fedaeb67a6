"""Settings loaded from ``MIKROTIK_*`` environment variables."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from mikrotik_backup.models.connection import ConnectionParameters


class Settings(BaseSettings):
    """Everything the CLI needs; flags are passed in as init values."""

    # Device connection
    host: str = ""
    port: int = 22
    username: str = "admin"
    password: str = Field(default="", repr=False)
    key_file: str = ""
    # MIKROTIK_KEY, the short spelling of MIKROTIK_KEY_FILE
    key: str = ""

    # Output
    output: str = "backup.rsc"

    # Timeouts (seconds). ``timeout`` bounds connect + export together.
    timeout: float = 120.0
    timeout_socket: float = 15.0
    timeout_ops: float = 60.0

    # Appended to the login name; disables RouterOS colours and terminal
    # auto-detection so /export comes back as plain text.
    login_suffix: str = "+cet512w"

    # Logging
    log_level: str = "WARNING"
    log_json: bool = False

    model_config = {
        "env_prefix": "MIKROTIK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def _resolve_key_alias(self) -> "Settings":
        if not self.key_file and self.key:
            self.key_file = self.key
        return self

    def connection_params(self) -> ConnectionParameters:
        return ConnectionParameters(
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            key_file=self.key_file,
        )

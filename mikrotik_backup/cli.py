"""Command-line entry point for mikrotik-backup."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from mikrotik_backup.config import Settings
from mikrotik_backup.errors import BackupError
from mikrotik_backup.models.connection import ConnectionParameters
from mikrotik_backup.services.backup import BackupService
from mikrotik_backup.services.ssh_manager import RouterOSSession
from mikrotik_backup.services.transport import SSHClient
from mikrotik_backup.utils.logging import get_logger, setup_logging
from mikrotik_backup.version import get_build_info

log = get_logger(__name__)

PROG = "mikrotik-backup"

# argparse dest -> Settings field; only flags actually given override env.
_BACKUP_FLAGS = (
    "host",
    "port",
    "username",
    "password",
    "key_file",
    "output",
    "timeout",
    "log_level",
    "log_json",
)


class UsageError(Exception):
    """The command line cannot be acted on."""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "Back up MikroTik RouterOS configurations.\n\n"
            "Connects to a device over SSH and exports its configuration to a\n"
            "local file for version control and disaster recovery."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    backup_parser = subparsers.add_parser(
        "backup",
        help="Backup MikroTik configuration",
        description=(
            "Connect to a MikroTik device and back up its configuration.\n"
            "Supports both password and SSH key authentication. Every option\n"
            "can also be set through its MIKROTIK_* environment variable."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    backup_parser.add_argument(
        "-H", "--host",
        help="Device hostname or IP address [env: MIKROTIK_HOST]",
    )
    backup_parser.add_argument(
        "-p", "--port",
        type=int,
        help="SSH port (default: 22) [env: MIKROTIK_PORT]",
    )
    backup_parser.add_argument(
        "-u", "--username",
        help="SSH username (default: admin) [env: MIKROTIK_USERNAME]",
    )
    backup_parser.add_argument(
        "-P", "--password",
        help="SSH password, prefer --key [env: MIKROTIK_PASSWORD]",
    )
    backup_parser.add_argument(
        "-k", "--key",
        dest="key_file",
        metavar="FILE",
        help="Path to SSH private key file [env: MIKROTIK_KEY_FILE]",
    )
    backup_parser.add_argument(
        "-o", "--output",
        metavar="FILE",
        help="Output file for the backup (default: backup.rsc) [env: MIKROTIK_OUTPUT]",
    )
    backup_parser.add_argument(
        "-t", "--timeout",
        type=float,
        metavar="SECONDS",
        help="Deadline for connect and export (default: 120) [env: MIKROTIK_TIMEOUT]",
    )
    backup_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log verbosity on stderr (default: WARNING) [env: MIKROTIK_LOG_LEVEL]",
    )
    backup_parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Emit logs as JSON lines [env: MIKROTIK_LOG_JSON]",
    )

    subparsers.add_parser(
        "version",
        aliases=["v"],
        help="Print version information",
    )
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        name: getattr(args, name)
        for name in _BACKUP_FLAGS
        if getattr(args, name, None) is not None
    }
    return Settings(**overrides)


def check_credentials(cfg: Settings) -> None:
    """Reject settings that cannot possibly authenticate."""
    if not cfg.host:
        raise UsageError("--host is required (or set MIKROTIK_HOST)")
    if not cfg.password and not cfg.key_file:
        raise UsageError("either --password or --key must be provided")


def build_client(cfg: Settings) -> SSHClient:
    return RouterOSSession(cfg)


async def _execute(
    service: BackupService,
    params: ConnectionParameters,
    output,
    timeout: float,
) -> None:
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    try:
        await service.execute(params, output, timeout=timeout)
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGTERM)


def run_backup(cfg: Settings) -> Path:
    """Back up one device into ``cfg.output``.

    The export goes to a temporary sibling first and replaces the target
    only once the backup succeeded.
    """
    params = cfg.connection_params()
    target = Path(cfg.output)
    partial = target.with_name(target.name + ".tmp")

    print(f"Backing up configuration from {params.host}:{params.port}")
    service = BackupService(build_client(cfg))
    try:
        fh = open(partial, "w", encoding="utf-8", newline="")
        try:
            asyncio.run(_execute(service, params, fh, cfg.timeout))
        except BaseException:
            # The partial file is discarded; a failing close must not hide
            # the backup error.
            with contextlib.suppress(OSError):
                fh.close()
            raise
        fh.close()
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    os.replace(partial, target)
    log.info("backup.saved", file=str(target))
    return target


def print_version() -> None:
    info = get_build_info()
    print(f"{PROG} version {info.version}")
    print(f"  commit: {info.commit}")
    print(f"  built:  {info.date}")
    print(f"  python: {info.python_version}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version or args.command in ("version", "v"):
        print_version()
        return 0
    if args.command is None:
        parser.print_help(sys.stderr)
        return 1

    try:
        cfg = load_settings(args)
        setup_logging(cfg.log_level, cfg.log_json)
        check_credentials(cfg)
        target = run_backup(cfg)
    except ValidationError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1
    except (BackupError, UsageError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("Error: backup cancelled", file=sys.stderr)
        return 1

    print(f"Backup written to {target}")
    return 0

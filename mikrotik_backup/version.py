"""Build provenance read from the installed distribution's metadata."""

from __future__ import annotations

import json
import platform
from importlib import metadata

from pydantic import BaseModel

DIST_NAME = "mikrotik-backup"
SHORT_COMMIT_LENGTH = 7


class BuildInfo(BaseModel):
    version: str = "dev"
    commit: str = "none"
    date: str = "unknown"
    python_version: str = "unknown"

    model_config = {"frozen": True}


def get_build_info() -> BuildInfo:
    """Describe the running build.

    ``version`` comes from the distribution metadata; ``commit`` from the
    PEP 610 ``direct_url.json`` that pip records for VCS installs. Anything
    missing keeps its default.
    """
    fields: dict[str, str] = {"python_version": platform.python_version()}
    try:
        dist = metadata.distribution(DIST_NAME)
    except metadata.PackageNotFoundError:
        return BuildInfo(**fields)

    if dist.version:
        fields["version"] = dist.version

    raw = dist.read_text("direct_url.json")
    if raw:
        try:
            direct_url = json.loads(raw)
        except ValueError:
            direct_url = {}
        commit = direct_url.get("vcs_info", {}).get("commit_id", "")
        if commit:
            fields["commit"] = commit[:SHORT_COMMIT_LENGTH]

    return BuildInfo(**fields)

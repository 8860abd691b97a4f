"""Service manager and container orchestrator commands."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from cloudproxy_ha.provision.commands import CommandResult, run_command

logger = logging.getLogger(__name__)

KEEPALIVED_UNIT: str = "keepalived"
SYNCTHING_UNIT: str = "syncthing@root"
HA_UNITS: List[str] = [KEEPALIVED_UNIT, SYNCTHING_UNIT]


def enable_service(unit: str) -> CommandResult:
    return run_command(["systemctl", "enable", unit])


def restart_service(unit: str) -> CommandResult:
    return run_command(["systemctl", "restart", unit])


def enable_ha_services() -> List[CommandResult]:
    """Enable keepalived and syncthing so they survive reboots."""
    return [enable_service(unit) for unit in HA_UNITS]


def restart_ha_services() -> List[CommandResult]:
    return [restart_service(unit) for unit in HA_UNITS]


def compose_command() -> List[str]:
    """Prefer the ``docker compose`` plugin, fall back to ``docker-compose``.

    The plugin is detected with ``docker compose version``; a host with the
    engine but only the v1 binary gets ``docker-compose``.
    """
    legacy = shutil.which("docker-compose") is not None
    if shutil.which("docker") is None:
        return ["docker-compose"] if legacy else ["docker", "compose"]
    plugin = run_command(["docker", "compose", "version"], check=False)
    if plugin.success or not legacy:
        return ["docker", "compose"]
    logger.info("docker compose plugin unavailable; using docker-compose")
    return ["docker-compose"]


def compose_up(workdir: Optional[Path] = None) -> CommandResult:
    """``docker compose up -d`` in *workdir*.

    Returns once containers are created; database readiness is left to the
    services' restart policy.
    """
    cwd = str(workdir) if workdir is not None else None
    return run_command([*compose_command(), "up", "-d"], cwd=cwd)

"""APT package installation."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from cloudproxy_ha.provision.commands import CommandResult, run_command

logger = logging.getLogger(__name__)

SYSTEM_PACKAGES: List[str] = [
    "keepalived",
    "syncthing",
    "curl",
    "jq",
    "apt-transport-https",
    "ca-certificates",
    "gnupg",
]

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def install_system_packages(
    packages: Optional[Sequence[str]] = None,
) -> List[CommandResult]:
    """``apt-get update`` then ``apt-get install -y`` *packages*.

    Raises :class:`CommandError` on the first failure.
    """
    pkgs = list(packages) if packages is not None else SYSTEM_PACKAGES
    logger.info("Installing system packages: %s", " ".join(pkgs))
    return [
        run_command(["apt-get", "update"], extra_env=_APT_ENV),
        run_command(["apt-get", "install", "-y", *pkgs], extra_env=_APT_ENV),
    ]

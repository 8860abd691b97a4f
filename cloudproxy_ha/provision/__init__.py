"""Host provisioning: packages, hcloud CLI, systemd units, compose."""

from cloudproxy_ha.provision.commands import (
    CommandError,
    CommandResult,
    run_command,
)
from cloudproxy_ha.provision.hcloud import HcloudInstallError, install_hcloud_cli
from cloudproxy_ha.provision.packages import SYSTEM_PACKAGES, install_system_packages
from cloudproxy_ha.provision.services import (
    HA_UNITS,
    compose_up,
    enable_ha_services,
    restart_ha_services,
)

__all__ = [
    "CommandError",
    "CommandResult",
    "HA_UNITS",
    "HcloudInstallError",
    "SYSTEM_PACKAGES",
    "compose_up",
    "enable_ha_services",
    "install_hcloud_cli",
    "install_system_packages",
    "restart_ha_services",
    "run_command",
]

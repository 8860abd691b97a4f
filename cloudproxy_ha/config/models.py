"""Pydantic models for cloud-proxy HA configuration.

Defines the data structures for:
- The variable catalogue (required prompts and optional overrides)
- The immutable :class:`HAConfig` record handed to every renderer
- The optional values YAML file
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Role(str, Enum):
    """Keepalived VRRP instance state."""

    MASTER = "MASTER"
    BACKUP = "BACKUP"


class VariableSpec(BaseModel):
    """One named configuration input.

    Required variables are prompted for when unset; optional ones fall back
    to :attr:`default` and are never prompted.  ``default=None`` on an
    optional variable means the default is computed at resolve time.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    prompt: str
    required: bool = True
    secret: bool = False
    default: Optional[str] = None

    @property
    def field_name(self) -> str:
        """Attribute name on :class:`HAConfig`."""
        return self.name.lower()


# ---------------------------------------------------------------------------
# Variable catalogue.  Order matters: prompts are issued in this order and
# the compose ``.env`` file lists keys in this order.
# ---------------------------------------------------------------------------

REQUIRED_VARIABLES: List[VariableSpec] = [
    VariableSpec(name="HOST_IP", prompt="this host's IP (e.g. 10.0.0.2)"),
    VariableSpec(name="PEER_IPS", prompt="comma-separated peer IPs (e.g. 10.0.0.3,10.0.0.4)"),
    VariableSpec(name="FLOATING_IP", prompt="floating IP (e.g. 10.0.0.100)"),
    VariableSpec(name="ROLE", prompt="Keepalived role: MASTER or BACKUP"),
    VariableSpec(name="PRIORITY", prompt="VRRP priority (150=MASTER,100=BACKUP)"),
    VariableSpec(name="SYNCTHING_DEVICE_ID", prompt="this host's Syncthing Device ID"),
    VariableSpec(
        name="SYNCTHING_PEER_DEVICE_IDS",
        prompt="peer Syncthing Device IDs, comma-separated",
    ),
    VariableSpec(name="DB_ROOT_PASS", prompt="MariaDB root password", secret=True),
    VariableSpec(name="DB_PORT", prompt="MariaDB port to listen locally (e.g. 3306)"),
    VariableSpec(name="DB_USER", prompt="MariaDB user name"),
    VariableSpec(name="DB_USER_PASS", prompt="MariaDB user password", secret=True),
    VariableSpec(name="DB_NAME", prompt="MariaDB database name"),
    VariableSpec(name="CLUSTER_NAME", prompt="Galera cluster name"),
    VariableSpec(
        name="XTRABACKUP_PASSWORD", prompt="XtraBackup password for SST", secret=True,
    ),
    VariableSpec(
        name="LETSENCRYPT_DIR",
        prompt="host path to Let's Encrypt data (e.g. /etc/letsencrypt)",
    ),
    VariableSpec(name="PUID", prompt="user ID for NPM container (e.g. 1000)"),
    VariableSpec(name="PGID", prompt="group ID for NPM container (e.g. 1000)"),
]

OPTIONAL_VARIABLES: List[VariableSpec] = [
    VariableSpec(
        name="VRRP_INTERFACE",
        prompt="network interface carrying the floating IP",
        required=False,
        default="eth0",
    ),
    VariableSpec(
        name="VRRP_ROUTER_ID",
        prompt="VRRP virtual router id shared by both nodes",
        required=False,
        default="51",
    ),
    VariableSpec(
        name="VRRP_AUTH_PASS",
        prompt="VRRP PASS authentication secret",
        required=False,
        secret=True,
        default="securepass",
    ),
    VariableSpec(
        name="NODE_NAME",
        prompt="Galera node / Syncthing device name (default: hostname)",
        required=False,
    ),
    VariableSpec(
        name="DATA_DIR",
        prompt="host path to Nginx Proxy Manager data",
        required=False,
        default="/opt/npm-data",
    ),
    VariableSpec(
        name="SYNCTHING_RESCAN_INTERVAL",
        prompt="Syncthing folder rescan interval in seconds",
        required=False,
        default="1",
    ),
]

ALL_VARIABLES: List[VariableSpec] = REQUIRED_VARIABLES + OPTIONAL_VARIABLES

REQUIRED_KEYS: List[str] = [v.name for v in REQUIRED_VARIABLES]

SECRET_KEYS: frozenset = frozenset(v.name for v in ALL_VARIABLES if v.secret)


def split_peer_list(raw: str) -> List[str]:
    """Split a comma-separated peer string, preserving order and duplicates.

    ``""`` yields an empty list.  Empty entries inside malformed input
    (``"A,,B"``) are passed through literally.
    """
    if raw == "":
        return []
    return raw.split(",")


# ---------------------------------------------------------------------------
# Resolved configuration record
# ---------------------------------------------------------------------------


class HAConfig(BaseModel):
    """Immutable record of every resolved input for one node.

    Assembled once by the resolver and passed to each renderer.  ROLE and
    PRIORITY are checked here so malformed values never reach
    ``keepalived.conf``; every other field is accepted as typed.
    """

    model_config = ConfigDict(frozen=True)

    host_ip: str
    peer_ips: str
    floating_ip: str
    role: Role
    priority: int = Field(ge=1, le=254)
    syncthing_device_id: str
    syncthing_peer_device_ids: str
    db_root_pass: str
    db_port: str
    db_user: str
    db_user_pass: str
    db_name: str
    cluster_name: str
    xtrabackup_password: str
    letsencrypt_dir: str
    puid: str
    pgid: str

    vrrp_interface: str = "eth0"
    vrrp_router_id: int = Field(default=51, ge=1, le=255)
    vrrp_auth_pass: str = "securepass"
    node_name: str = ""
    data_dir: str = "/opt/npm-data"
    syncthing_rescan_interval: int = Field(default=1, ge=0)

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("priority", "vrrp_router_id", "syncthing_rescan_interval", mode="before")
    @classmethod
    def _strip_numeric(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @classmethod
    def from_values(cls, values: Dict[str, str]) -> "HAConfig":
        """Build from a ``{"HOST_IP": ..., ...}`` mapping of resolved values.

        Keys outside the catalogue are ignored.
        """
        known = {v.name: v.field_name for v in ALL_VARIABLES}
        data = {known[k]: val for k, val in values.items() if k in known}
        return cls.model_validate(data)

    @property
    def peer_ip_list(self) -> List[str]:
        return split_peer_list(self.peer_ips)

    @property
    def peer_device_id_list(self) -> List[str]:
        return split_peer_list(self.syncthing_peer_device_ids)

    @property
    def cluster_address(self) -> str:
        """Galera bootstrap address: this host followed by every peer."""
        return "gcomm://" + ",".join([self.host_ip, *self.peer_ip_list])

    def to_values(self) -> Dict[str, str]:
        """Serialize back to the catalogue's ``KEY -> str`` form."""
        dumped = self.model_dump(mode="json")
        return {v.name: str(dumped[v.field_name]) for v in ALL_VARIABLES}


# ---------------------------------------------------------------------------
# Values file (``--config``)
# ---------------------------------------------------------------------------


class ValuesSection(BaseModel):
    """``cloudproxy_ha.values`` mapping of variable name to value."""

    values: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_values(cls, data: Any) -> Any:
        """Stringify YAML scalars; ``null`` becomes ``""``."""
        if data is None:
            return {"values": {}}
        if isinstance(data, dict):
            raw = data.get("values") or {}
            coerced: Dict[str, str] = {}
            for key, val in raw.items():
                if val is None:
                    coerced[str(key)] = ""
                elif isinstance(val, bool):
                    coerced[str(key)] = "true" if val else "false"
                else:
                    coerced[str(key)] = str(val)
            return {"values": coerced}
        return data


class ValuesFile(BaseModel):
    """Root model wrapping the ``cloudproxy_ha:`` key."""

    cloudproxy_ha: ValuesSection = Field(default_factory=ValuesSection)

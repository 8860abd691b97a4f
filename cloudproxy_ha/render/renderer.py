"""Artifact renderer - replaces the heredocs in ``setup-ha.sh``.

Each artifact has one render function taking an :class:`HAConfig` and
returning text.  Text formats (SQL, Galera, Keepalived, Syncthing) use
``${KEY}`` token substitution so the layout reads exactly like the file
on disk; the compose manifest is built as a dict and dumped with PyYAML.

Rendering is pure: identical config in, byte-identical text out.
:func:`write_artifacts` is the only function touching the filesystem.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
from xml.sax.saxutils import escape

import yaml

from cloudproxy_ha.config.models import REQUIRED_VARIABLES, HAConfig

logger = logging.getLogger(__name__)

# ── constants ────────────────────────────────────────────────────────

_TOKEN_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

#: Artifacts written relative to the working directory.
WORKDIR_TARGETS: Dict[str, Path] = {
    "init_sql": Path("db-init/init.sql"),
    "env_file": Path(".env"),
    "compose": Path("docker-compose.yml"),
    "readme": Path("README.md"),
}

#: Artifacts written at absolute system paths (re-rooted under ``root``).
SYSTEM_TARGETS: Dict[str, Path] = {
    "galera": Path("/etc/mysql/conf.d/galera.cnf"),
    "keepalived": Path("/etc/keepalived/keepalived.conf"),
    "syncthing": Path("/root/.config/syncthing/config.xml"),
}

#: Write order.
ARTIFACT_ORDER: List[str] = [
    "init_sql", "env_file", "compose", "galera", "keepalived", "syncthing",
    "readme",
]

GALERA_PROVIDER: str = "/usr/lib/galera/libgalera_smm.so"
MARIADB_IMAGE: str = "mariadb:10.5"
NPM_IMAGE: str = "jc21/nginx-proxy-manager:latest"
SYNCTHING_CONFIG_VERSION: str = "32"

INIT_SQL_TEMPLATE = """\
CREATE DATABASE IF NOT EXISTS ${DB_NAME};
CREATE USER IF NOT EXISTS ${DB_USER}@'%' IDENTIFIED BY ${DB_USER_PASS};
GRANT ALL PRIVILEGES ON ${DB_NAME}.* TO ${DB_USER}@'%';
FLUSH PRIVILEGES;
"""

GALERA_TEMPLATE = """\
[mysqld]
wsrep_on=ON
wsrep_provider=${GALERA_PROVIDER}
wsrep_cluster_address="${CLUSTER_ADDRESS}"
wsrep_cluster_name="${CLUSTER_NAME}"
wsrep_node_address="${HOST_IP}"
wsrep_node_name="${NODE_NAME}"
wsrep_sst_method=xtrabackup-v2
"""

KEEPALIVED_TEMPLATE = """\
vrrp_instance VI_1 {
  interface ${VRRP_INTERFACE}
  state ${ROLE}
  virtual_router_id ${VRRP_ROUTER_ID}
  priority ${PRIORITY}
  advert_int 1
  authentication {
    auth_type PASS
    auth_pass ${VRRP_AUTH_PASS}
  }
  virtual_ipaddress {
    ${FLOATING_IP}
  }
}
"""

SYNCTHING_HEADER_TEMPLATE = """\
<configuration version="${VERSION}">
  <device id="${DEVICE_ID}" name="${DEVICE_NAME}" compression="metadata" introducer="false" />
"""

FOLDER_OPEN_TEMPLATE = (
    '  <folder id="${FOLDER_ID}" label="${LABEL}" path="${PATH}" type="sendreceive">\n'
)

FOLDER_DEVICE_TEMPLATE = '    <device id="${DEVICE_ID}" />\n'

FOLDER_CLOSE_TEMPLATE = """\
    <ignoreDelete>false</ignoreDelete>
    <fsWatcherEnabled>true</fsWatcherEnabled>
    <rescanIntervalS>${RESCAN}</rescanIntervalS>
  </folder>
"""

SYNCTHING_FOOTER = "</configuration>\n"

README_TEMPLATE = """\
# Cloud-Proxy HA node ${HOST_IP}

Generated by `cloudproxy-ha setup`.  This directory holds the Docker
Compose stack for one node of a two-node Nginx Proxy Manager cluster:

- **MariaDB Galera** cluster `${CLUSTER_NAME}` (${CLUSTER_ADDRESS})
- **Keepalived** ${ROLE} (priority ${PRIORITY}) for floating IP ${FLOATING_IP}
- **Syncthing** bidirectional sync of `${DATA_DIR}` and `${LETSENCRYPT_DIR}`

## Dependencies

keepalived, syncthing, curl, jq, apt-transport-https, ca-certificates,
gnupg, Docker with the compose plugin (or `docker-compose`).

## Quickstart

```bash
docker compose up -d
systemctl restart keepalived
systemctl restart syncthing@root
```

## Monitoring

```bash
docker compose ps
journalctl -u keepalived -f
journalctl -u syncthing@root -f
docker exec -it npm-db mysql -uroot -p -e "SHOW STATUS LIKE 'wsrep_cluster_size';"
```
"""


@dataclass(frozen=True)
class RenderedArtifact:
    """One rendered output file, before it is placed on disk."""

    name: str
    target: Path
    content: str


# ── token substitution ───────────────────────────────────────────────


def template_tokens(template_text: str) -> List[str]:
    """Return the sorted, unique ``${KEY}`` token names in *template_text*."""
    return sorted(set(_TOKEN_RE.findall(template_text)))


def render_template(
    template_text: str,
    substitutions: Mapping[str, str],
    *,
    strict: bool = False,
) -> str:
    """Replace every ``${KEY}`` token in *template_text* in a single pass.

    Substituted values are never re-scanned, so a value that itself looks
    like ``${OTHER}`` is emitted literally.

    Parameters
    ----------
    template_text:
        Raw template content.
    substitutions:
        Mapping of key to value (keys without the ``${}`` wrapper).
    strict:
        When true, a token with no entry in *substitutions* raises.
        Otherwise unknown tokens are left untouched.

    Raises
    ------
    ValueError
        In strict mode, if the template references an unknown key.
    """
    if strict:
        missing = [t for t in template_tokens(template_text) if t not in substitutions]
        if missing:
            raise ValueError(
                f"Missing substitution key(s): {', '.join(missing)}"
            )

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in substitutions:
            return substitutions[key]
        return match.group(0)

    return _TOKEN_RE.sub(_replace, template_text)


# ── quoting helpers ──────────────────────────────────────────────────


def sql_identifier(name: str) -> str:
    """Backtick-quote a MariaDB identifier."""
    return "`" + name.replace("`", "``") + "`"


def sql_literal(value: str) -> str:
    """Single-quote a MariaDB string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def xml_attr(value: str) -> str:
    return escape(value, {'"': "&quot;"})


# ── per-artifact renderers ───────────────────────────────────────────


def render_init_sql(cfg: HAConfig) -> str:
    """Database + user + grant script for ``docker-entrypoint-initdb.d``.

    Every statement is guarded (``IF NOT EXISTS``) or naturally repeatable
    so the entrypoint can replay it against an initialised data dir.
    """
    return render_template(
        INIT_SQL_TEMPLATE,
        {
            "DB_NAME": sql_identifier(cfg.db_name),
            "DB_USER": sql_literal(cfg.db_user),
            "DB_USER_PASS": sql_literal(cfg.db_user_pass),
        },
        strict=True,
    )


def compose_document(cfg: HAConfig) -> Dict[str, Any]:
    """Docker Compose manifest as a plain dict (key order is preserved)."""
    return {
        "version": "3.8",
        "services": {
            "mariadb": {
                "env_file": ".env",
                "image": MARIADB_IMAGE,
                "container_name": "npm-db",
                "restart": "unless-stopped",
                "environment": {
                    "MYSQL_ROOT_PASSWORD": cfg.db_root_pass,
                    "CLUSTER_NAME": cfg.cluster_name,
                    "XTRABACKUP_PASSWORD": cfg.xtrabackup_password,
                },
                "ports": [f"127.0.0.1:{cfg.db_port}:3306"],
                "volumes": [
                    "galera-data:/var/lib/mysql",
                    "./db-init:/docker-entrypoint-initdb.d",
                ],
                "networks": ["galera-net"],
            },
            "nginx-proxy-manager": {
                "env_file": ".env",
                "image": NPM_IMAGE,
                "container_name": "npm-app",
                "restart": "unless-stopped",
                "depends_on": ["mariadb"],
                "environment": {
                    "PUID": cfg.puid,
                    "PGID": cfg.pgid,
                    "DB_MYSQL_HOST": "mariadb",
                    "DB_MYSQL_USER": cfg.db_user,
                    "DB_MYSQL_PASSWORD": cfg.db_user_pass,
                    "DB_MYSQL_NAME": cfg.db_name,
                },
                "volumes": [
                    f"{cfg.data_dir}:/data",
                    f"{cfg.letsencrypt_dir}:/etc/letsencrypt",
                ],
                "ports": ["80:80", "443:443", "81:81"],
                "networks": ["galera-net"],
            },
        },
        "networks": {"galera-net": {"driver": "bridge"}},
        "volumes": {"galera-data": {}},
    }


def render_compose(cfg: HAConfig) -> str:
    return yaml.safe_dump(
        compose_document(cfg),
        default_flow_style=False,
        sort_keys=False,
    )


def render_env_file(cfg: HAConfig) -> str:
    """``KEY=VALUE`` lines for compose's ``env_file``, in prompt order."""
    values = cfg.to_values()
    return "".join(f"{spec.name}={values[spec.name]}\n" for spec in REQUIRED_VARIABLES)


def render_galera(cfg: HAConfig) -> str:
    return render_template(
        GALERA_TEMPLATE,
        {
            "GALERA_PROVIDER": GALERA_PROVIDER,
            "CLUSTER_ADDRESS": cfg.cluster_address,
            "CLUSTER_NAME": cfg.cluster_name,
            "HOST_IP": cfg.host_ip,
            "NODE_NAME": cfg.node_name,
        },
        strict=True,
    )


def render_keepalived(cfg: HAConfig) -> str:
    return render_template(
        KEEPALIVED_TEMPLATE,
        {
            "VRRP_INTERFACE": cfg.vrrp_interface,
            "ROLE": cfg.role.value,
            "VRRP_ROUTER_ID": str(cfg.vrrp_router_id),
            "PRIORITY": str(cfg.priority),
            "VRRP_AUTH_PASS": cfg.vrrp_auth_pass,
            "FLOATING_IP": cfg.floating_ip,
        },
        strict=True,
    )


def render_device_list_block(
    folder_id: str,
    label: str,
    path: str,
    device_ids: Iterable[str],
    *,
    rescan_interval: int = 1,
) -> str:
    """Render one ``<folder>`` with a ``<device>`` entry per peer.

    Devices are emitted in the given order with no de-duplication.
    """
    parts = [
        render_template(
            FOLDER_OPEN_TEMPLATE,
            {
                "FOLDER_ID": xml_attr(folder_id),
                "LABEL": xml_attr(label),
                "PATH": xml_attr(path),
            },
            strict=True,
        )
    ]
    for device_id in device_ids:
        parts.append(
            render_template(
                FOLDER_DEVICE_TEMPLATE, {"DEVICE_ID": xml_attr(device_id)}, strict=True,
            )
        )
    parts.append(
        render_template(
            FOLDER_CLOSE_TEMPLATE, {"RESCAN": str(rescan_interval)}, strict=True,
        )
    )
    return "".join(parts)


def render_syncthing(cfg: HAConfig) -> str:
    peers = cfg.peer_device_id_list
    header = render_template(
        SYNCTHING_HEADER_TEMPLATE,
        {
            "VERSION": SYNCTHING_CONFIG_VERSION,
            "DEVICE_ID": xml_attr(cfg.syncthing_device_id),
            "DEVICE_NAME": xml_attr(cfg.node_name),
        },
        strict=True,
    )
    folders = [
        ("npm-data", "npm-data", cfg.data_dir),
        ("letsencrypt", "letsencrypt", cfg.letsencrypt_dir),
    ]
    body = "".join(
        render_device_list_block(
            folder_id, label, path, peers,
            rescan_interval=cfg.syncthing_rescan_interval,
        )
        for folder_id, label, path in folders
    )
    return header + body + SYNCTHING_FOOTER


def render_readme(cfg: HAConfig) -> str:
    """Operator notes placed next to the compose stack."""
    return render_template(
        README_TEMPLATE,
        {
            "HOST_IP": cfg.host_ip,
            "CLUSTER_NAME": cfg.cluster_name,
            "CLUSTER_ADDRESS": cfg.cluster_address,
            "ROLE": cfg.role.value,
            "PRIORITY": str(cfg.priority),
            "FLOATING_IP": cfg.floating_ip,
            "DATA_DIR": cfg.data_dir,
            "LETSENCRYPT_DIR": cfg.letsencrypt_dir,
        },
        strict=True,
    )


_RENDERERS = {
    "init_sql": render_init_sql,
    "env_file": render_env_file,
    "compose": render_compose,
    "galera": render_galera,
    "keepalived": render_keepalived,
    "syncthing": render_syncthing,
    "readme": render_readme,
}


# ── public API ───────────────────────────────────────────────────────


def render_all(cfg: HAConfig) -> List[RenderedArtifact]:
    """Render every artifact in :data:`ARTIFACT_ORDER`."""
    targets = {**WORKDIR_TARGETS, **SYSTEM_TARGETS}
    return [
        RenderedArtifact(name=name, target=targets[name], content=_RENDERERS[name](cfg))
        for name in ARTIFACT_ORDER
    ]


def _placed(target: Path, *, workdir: Path, root: Path) -> Path:
    if target.is_absolute():
        return root / target.relative_to("/")
    return workdir / target


def write_artifacts(
    cfg: HAConfig,
    *,
    workdir: Optional[Path] = None,
    root: Optional[Path] = None,
) -> Dict[str, Path]:
    """Render and write every artifact, returning ``{name: written_path}``.

    Parameters
    ----------
    cfg:
        Resolved configuration.
    workdir:
        Directory for ``db-init/``, ``.env`` and ``docker-compose.yml``
        (default: current directory).
    root:
        Prefix for system paths such as ``/etc/keepalived`` (default ``/``).

    The data directory is created as well.  Files are overwritten in
    place; a crash mid-write can leave a truncated file behind.

    Raises
    ------
    OSError
        If a directory or file cannot be written.
    """
    workdir = workdir if workdir is not None else Path.cwd()
    root = root if root is not None else Path("/")

    _placed(Path(cfg.data_dir), workdir=workdir, root=root).mkdir(
        parents=True, exist_ok=True,
    )

    written: Dict[str, Path] = {}
    for artifact in render_all(cfg):
        dest = _placed(artifact.target, workdir=workdir, root=root)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(artifact.content, encoding="utf-8")
        logger.info("Wrote %s -> %s", artifact.name, dest)
        written[artifact.name] = dest
    return written

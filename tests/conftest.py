"""Shared fixtures: catalogue env isolation and a complete value set."""

from __future__ import annotations

import os
from typing import Dict

import pytest

from cloudproxy_ha.config.models import ALL_VARIABLES


@pytest.fixture(autouse=True)
def _isolated_env():
    """Strip catalogue variables and restore os.environ after each test.

    The resolver can export values into the process environment, so a
    plain monkeypatch would leak keys between tests.
    """
    saved = dict(os.environ)
    for var in ALL_VARIABLES:
        os.environ.pop(var.name, None)
    os.environ.pop("CLOUDPROXY_NON_INTERACTIVE", None)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def full_values() -> Dict[str, str]:
    return {
        "HOST_IP": "10.0.0.2",
        "PEER_IPS": "10.0.0.3,10.0.0.4",
        "FLOATING_IP": "10.0.0.100",
        "ROLE": "MASTER",
        "PRIORITY": "150",
        "SYNCTHING_DEVICE_ID": "SELF-DEVICE",
        "SYNCTHING_PEER_DEVICE_IDS": "A,B,C",
        "DB_ROOT_PASS": "rootpw",
        "DB_PORT": "3306",
        "DB_USER": "svc",
        "DB_USER_PASS": "pw",
        "DB_NAME": "npm",
        "CLUSTER_NAME": "npm-galera",
        "XTRABACKUP_PASSWORD": "xbpw",
        "LETSENCRYPT_DIR": "/etc/letsencrypt",
        "PUID": "1000",
        "PGID": "1000",
        "VRRP_INTERFACE": "eth0",
        "VRRP_ROUTER_ID": "51",
        "VRRP_AUTH_PASS": "securepass",
        "NODE_NAME": "proxy-1",
        "DATA_DIR": "/opt/npm-data",
        "SYNCTHING_RESCAN_INTERVAL": "1",
    }

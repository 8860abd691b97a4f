"""Cloud-Proxy HA - Python provisioning for a two-node proxy cluster.

Replaces the Bash ``setup-ha.sh`` scripts with a structured package that
renders MariaDB Galera, Keepalived, Syncthing and Docker Compose
configuration for one node and brings the stack up.
"""

try:
    from importlib.metadata import version

    __version__ = version("cloudproxy-ha")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]

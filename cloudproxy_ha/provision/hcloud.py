"""Hetzner Cloud CLI installer.

Resolves the latest release tag from the GitHub API, downloads the
``linux-amd64`` tarball and installs the ``hcloud`` binary.  The floating
IP is a Hetzner resource, so the CLI is needed on both nodes.
"""

from __future__ import annotations

import io
import logging
import tarfile
from pathlib import Path
from typing import Optional

import requests

from cloudproxy_ha.provision.commands import CommandResult, run_command

logger = logging.getLogger(__name__)

RELEASES_API: str = "https://api.github.com/repos/hetznercloud/cli/releases/latest"
DOWNLOAD_URL: str = (
    "https://github.com/hetznercloud/cli/releases/download/{tag}/hcloud-{arch}.tar.gz"
)
DEFAULT_ARCH: str = "linux-amd64"
INSTALL_PATH: Path = Path("/usr/local/bin/hcloud")
REQUEST_TIMEOUT: int = 60


class HcloudInstallError(RuntimeError):
    """The release lookup, download or archive extraction failed."""


def latest_release_tag(*, timeout: int = REQUEST_TIMEOUT) -> str:
    """Return the ``tag_name`` of the latest hcloud CLI release."""
    try:
        response = requests.get(RELEASES_API, timeout=timeout)
        response.raise_for_status()
        tag = response.json().get("tag_name", "")
    except (requests.RequestException, ValueError) as exc:
        raise HcloudInstallError(f"Release lookup failed: {exc}") from exc
    if not tag:
        raise HcloudInstallError("Release lookup returned no tag_name")
    return tag


def download_url(tag: str, arch: str = DEFAULT_ARCH) -> str:
    return DOWNLOAD_URL.format(tag=tag, arch=arch)


def extract_binary(archive: bytes, member: str = "hcloud") -> bytes:
    """Return the bytes of *member* from a gzipped tarball."""
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            fh = tar.extractfile(member)
            if fh is None:
                raise HcloudInstallError(f"{member} in archive is not a regular file")
            return fh.read()
    except KeyError as exc:
        raise HcloudInstallError(f"{member} not found in archive") from exc
    except tarfile.TarError as exc:
        raise HcloudInstallError(f"Bad archive: {exc}") from exc


def install_hcloud_cli(
    *,
    tag: Optional[str] = None,
    arch: str = DEFAULT_ARCH,
    install_path: Path = INSTALL_PATH,
    timeout: int = REQUEST_TIMEOUT,
) -> CommandResult:
    """Download and install the hcloud CLI, then run ``hcloud version``.

    Raises
    ------
    HcloudInstallError
        On HTTP or archive failures.
    CommandError
        If ``hcloud version`` fails after install.
    """
    tag = tag or latest_release_tag(timeout=timeout)
    url = download_url(tag, arch)
    logger.info("Downloading hcloud %s from %s", tag, url)

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise HcloudInstallError(f"Download failed: {exc}") from exc

    binary = extract_binary(response.content)
    install_path.parent.mkdir(parents=True, exist_ok=True)
    install_path.write_bytes(binary)
    install_path.chmod(0o755)
    logger.info("Installed hcloud to %s", install_path)

    return run_command([str(install_path), "version"])

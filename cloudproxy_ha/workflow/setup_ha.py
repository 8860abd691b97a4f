"""Orchestrator for one node's HA setup.

Execution is strictly sequential and fail-fast::

    1. Resolve variables (env -> values file -> prompt)
    2. Build the immutable HAConfig (ROLE / PRIORITY checked here)
    3. Install packages + hcloud CLI, enable units    (skipped: --skip-install)
    4. Render and write every artifact
    5. docker compose up -d, restart units           (skipped: --no-start)

The first failure stops the run.  Files already written stay on disk;
nothing is rolled back.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from cloudproxy_ha import ui
from cloudproxy_ha.config.models import HAConfig
from cloudproxy_ha.config.resolver import (
    MissingVariablesError,
    PromptFn,
    build_config,
    load_values_file,
    masked_values,
    resolve_variables,
    write_values_template,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_INPUT_FAILURE = 1
EXIT_COMMAND_FAILURE = 2
EXIT_WRITE_FAILURE = 3

#: Next-run values file written beside the compose manifest.
NEXT_RUN_VALUES: str = "ha-values.next.yaml"


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------


def resolve_config(
    *,
    config_path: Optional[str] = None,
    non_interactive: bool = False,
    prompt: Optional[PromptFn] = None,
) -> Tuple[Dict[str, str], HAConfig]:
    """Resolve inputs and build the config record.

    Values are exported to the process environment so spawned commands
    see them.

    Raises
    ------
    MissingVariablesError
        Required inputs missing and prompting impossible.
    pydantic.ValidationError
        Malformed ROLE, PRIORITY or numeric optional values.
    """
    values_file = load_values_file(config_path)
    values = resolve_variables(
        values_file=values_file,
        prompt=prompt,
        interactive=False if non_interactive else None,
        export=True,
    )
    return values, build_config(values)


def _report_input_error(exc: Exception) -> int:
    if isinstance(exc, MissingVariablesError):
        ui.error_panel(
            "Missing input",
            "Set these variables or run on a terminal:\n  " + "\n  ".join(exc.missing),
        )
    else:
        ui.error_panel("Invalid input", str(exc))
    logger.error("Input resolution failed: %s", exc)
    return EXIT_INPUT_FAILURE


def _warn_on_empty_peers(cfg: HAConfig) -> None:
    if not cfg.peer_ip_list:
        ui.warn("PEER_IPS is empty; Galera will bootstrap a single-node cluster.")
    if not cfg.peer_device_id_list:
        ui.warn("SYNCTHING_PEER_DEVICE_IDS is empty; synced folders have no peers.")


def _write(
    cfg: HAConfig,
    values: Dict[str, str],
    workdir: Path,
    root: Path,
) -> Dict[str, Path]:
    from cloudproxy_ha.render.renderer import write_artifacts

    written = write_artifacts(cfg, workdir=workdir, root=root)
    for name, path in written.items():
        ui.ok(f"{name}: {path}")
    next_run = write_values_template(values, workdir / NEXT_RUN_VALUES)
    ui.info(f"Next-run values: {next_run}")
    return written


# ---------------------------------------------------------------------------
# Render-only workflow
# ---------------------------------------------------------------------------


def run_render_only(
    *,
    config_path: Optional[str] = None,
    workdir: Optional[Path] = None,
    root: Optional[Path] = None,
    non_interactive: bool = False,
    debug: bool = False,
    prompt: Optional[PromptFn] = None,
) -> int:
    """Resolve inputs and write every artifact; touch no services.

    Returns one of the ``EXIT_*`` constants.
    """
    if debug:
        logging.getLogger("cloudproxy_ha").setLevel(logging.DEBUG)

    workdir = workdir if workdir is not None else Path.cwd()
    root = root if root is not None else Path("/")

    ui.phase("RESOLVE")
    try:
        values, cfg = resolve_config(
            config_path=config_path, non_interactive=non_interactive, prompt=prompt,
        )
    except (MissingVariablesError, ValidationError) as exc:
        return _report_input_error(exc)
    ui.values_table("Resolved variables", masked_values(values))
    _warn_on_empty_peers(cfg)

    ui.phase("RENDER")
    try:
        _write(cfg, values, workdir, root)
    except OSError as exc:
        ui.fail(f"Write failed: {exc}")
        logger.error("Artifact write failed: %s", exc)
        return EXIT_WRITE_FAILURE

    ui.success_panel("Rendered", f"Artifacts written under {workdir} and {root}")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Full setup workflow
# ---------------------------------------------------------------------------


def run_setup_workflow(
    *,
    config_path: Optional[str] = None,
    workdir: Optional[Path] = None,
    root: Optional[Path] = None,
    skip_install: bool = False,
    no_start: bool = False,
    non_interactive: bool = False,
    debug: bool = False,
    prompt: Optional[PromptFn] = None,
) -> int:
    """End-to-end node setup: resolve -> install -> render -> start.

    Returns one of the ``EXIT_*`` constants.
    """
    from cloudproxy_ha.provision.commands import CommandError
    from cloudproxy_ha.provision.hcloud import HcloudInstallError, install_hcloud_cli
    from cloudproxy_ha.provision.packages import install_system_packages
    from cloudproxy_ha.provision.services import (
        compose_up,
        enable_ha_services,
        restart_ha_services,
    )

    if debug:
        logging.getLogger("cloudproxy_ha").setLevel(logging.DEBUG)

    workdir = workdir if workdir is not None else Path.cwd()
    root = root if root is not None else Path("/")

    # -- 1-2. Resolve ---------------------------------------------------------
    ui.phase("RESOLVE")
    try:
        values, cfg = resolve_config(
            config_path=config_path, non_interactive=non_interactive, prompt=prompt,
        )
    except (MissingVariablesError, ValidationError) as exc:
        return _report_input_error(exc)
    ui.values_table("Resolved variables", masked_values(values))
    _warn_on_empty_peers(cfg)

    # -- 3. Install -----------------------------------------------------------
    if skip_install:
        ui.info("Skipping package and hcloud installation.")
    else:
        ui.phase("INSTALL")
        try:
            ui.step("Installing system packages ...")
            install_system_packages()
            ui.step("Installing hcloud CLI ...")
            hc = install_hcloud_cli()
            ui.ok(hc.stdout or "hcloud installed")
            ui.step("Enabling keepalived and syncthing ...")
            enable_ha_services()
        except (CommandError, HcloudInstallError) as exc:
            ui.fail(str(exc))
            logger.error("Install phase failed: %s", exc)
            return EXIT_COMMAND_FAILURE
        except OSError as exc:
            ui.fail(f"Install write failed: {exc}")
            logger.error("Install phase write failed: %s", exc)
            return EXIT_WRITE_FAILURE

    # -- 4. Render ------------------------------------------------------------
    ui.phase("RENDER")
    try:
        _write(cfg, values, workdir, root)
    except OSError as exc:
        ui.fail(f"Write failed: {exc}")
        logger.error("Artifact write failed: %s", exc)
        return EXIT_WRITE_FAILURE

    # -- 5. Start -------------------------------------------------------------
    if no_start:
        ui.info("Skipping service start.")
    else:
        ui.phase("START")
        try:
            ui.step("Starting Docker Compose stack ...")
            compose_up(workdir)
            ui.step("Restarting keepalived and syncthing ...")
            restart_ha_services()
        except CommandError as exc:
            ui.fail(str(exc))
            return EXIT_COMMAND_FAILURE

    ui.success_panel(
        "HA node ready",
        f"Role      : {cfg.role.value} (priority {cfg.priority})\n"
        f"Floating  : {cfg.floating_ip} on {cfg.vrrp_interface}\n"
        f"Cluster   : {cfg.cluster_address}",
    )
    logger.info("Setup complete for %s.", cfg.host_ip)
    return EXIT_SUCCESS

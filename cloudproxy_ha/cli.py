"""CLI entry point for cloudproxy-ha, built on cli-core-yo.

Provides ``setup``, ``render`` and ``variables`` commands for provisioning
one node of the two-node HA proxy stack.

Usage::

    cloudproxy-ha --help
    cloudproxy-ha setup --config ha-values.yaml
    cloudproxy-ha render --output-root /tmp/preview --non-interactive
    cloudproxy-ha variables
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from cli_core_yo import output
from cli_core_yo.app import create_app
from cli_core_yo.runtime import _reset, initialize
from cli_core_yo.spec import CliSpec, XdgSpec

# ── App specification ────────────────────────────────────────────────────────

spec = CliSpec(
    prog_name="cloudproxy-ha",
    app_display_name="Cloud-Proxy HA",
    dist_name="cloudproxy-ha",
    root_help=(
        "Provision a node of the two-node HA reverse-proxy stack "
        "(MariaDB Galera, Keepalived, Syncthing, Nginx Proxy Manager)."
    ),
    xdg=XdgSpec(app_dir_name="cloudproxy-ha"),
)

app = create_app(spec)


def _paths(output_root: Optional[str]) -> tuple[Optional[Path], Optional[Path]]:
    """Map ``--output-root`` to (workdir, root); ``None`` keeps live paths."""
    if not output_root:
        return None, None
    base = Path(output_root)
    return base, base


# ── Root callback (global options) ───────────────────────────────────────────


@app.callback()
def _root_callback(
    json_flag: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON."
    ),
) -> None:
    """Cloud-Proxy HA node provisioning."""
    _reset()
    debug = os.environ.get("CLI_CORE_YO_DEBUG") == "1"
    xdg_paths = app._cli_core_yo_xdg_paths  # type: ignore[attr-defined]
    initialize(spec, xdg_paths, json_mode=json_flag, debug=debug)


# ── setup command ────────────────────────────────────────────────────────────


@app.command()
def setup(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help="Values YAML (cloudproxy_ha.values.<KEY>). Env vars take precedence.",
    ),
    output_root: Optional[str] = typer.Option(
        None,
        "--output-root",
        help="Write every artifact under this directory instead of / and cwd.",
    ),
    skip_install: bool = typer.Option(
        False,
        "--skip-install",
        help="Skip apt packages and hcloud CLI installation.",
    ),
    no_start: bool = typer.Option(
        False,
        "--no-start",
        help="Do not run docker compose or restart services.",
    ),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Disable prompts; fail if a required variable is unset.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging.",
    ),
) -> None:
    """Install, render and start the HA stack on this node.

    Environment variables:
      HOST_IP, PEER_IPS, FLOATING_IP, ROLE, PRIORITY, ...   Input values
                                   (see ``cloudproxy-ha variables``).
      CLOUDPROXY_NON_INTERACTIVE   Set to 1 to disable prompts.
    """
    from cloudproxy_ha.workflow.setup_ha import run_setup_workflow

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    workdir, root = _paths(output_root)
    output.action("Setting up HA node ...")
    rc = run_setup_workflow(
        config_path=config,
        workdir=workdir,
        root=root,
        skip_install=skip_install,
        no_start=no_start,
        non_interactive=non_interactive,
        debug=debug,
    )
    raise typer.Exit(rc)


# ── render command ───────────────────────────────────────────────────────────


@app.command()
def render(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help="Values YAML (cloudproxy_ha.values.<KEY>).",
    ),
    output_root: Optional[str] = typer.Option(
        None,
        "--output-root",
        help="Write every artifact under this directory instead of / and cwd.",
    ),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Disable prompts.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging.",
    ),
) -> None:
    """Resolve inputs and write configuration files only.

    Exits 0 on success, 1 on bad input, 3 on write failure.
    """
    from cloudproxy_ha.workflow.setup_ha import run_render_only

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    workdir, root = _paths(output_root)
    output.action("Rendering configuration ...")
    rc = run_render_only(
        config_path=config,
        workdir=workdir,
        root=root,
        non_interactive=non_interactive,
        debug=debug,
    )
    raise typer.Exit(rc)


# ── variables command ────────────────────────────────────────────────────────


@app.command()
def variables() -> None:
    """List every input variable, its description and default."""
    from cloudproxy_ha.config.models import ALL_VARIABLES

    for var in ALL_VARIABLES:
        kind = "required" if var.required else f"optional, default={var.default or '(computed)'}"
        secret = ", secret" if var.secret else ""
        output.detail(f"{var.name:<28} {var.prompt} ({kind}{secret})")


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())

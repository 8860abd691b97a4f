"""Variable resolution: environment, values file, then interactive prompt.

This module is the Python equivalent of the prompt loop at the top of
``setup-ha.sh``.  It provides:

- :func:`load_values_file` - parse an optional values YAML into a :class:`ValuesFile`
- :func:`resolve_variables` - resolve every catalogue key in order
- :func:`build_config` - assemble the immutable :class:`HAConfig`
- :func:`masked_values` - secrets replaced for console output
- :func:`write_values_template` - write a next-run values file (no secrets)
"""

from __future__ import annotations

import logging
import os
import socket
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from cloudproxy_ha.config.models import (
    ALL_VARIABLES,
    OPTIONAL_VARIABLES,
    REQUIRED_VARIABLES,
    SECRET_KEYS,
    HAConfig,
    ValuesFile,
    VariableSpec,
)

logger = logging.getLogger(__name__)

#: Placeholder shown instead of secret values.
MASK: str = "********"

PromptFn = Callable[[str], str]


class MissingVariablesError(RuntimeError):
    """Required variables are unset and no terminal is available to ask."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing required variable(s) and no interactive terminal: "
            + ", ".join(self.missing)
        )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_values_file(path: Optional[str | Path]) -> ValuesFile:
    """Load a values YAML file.

    A missing path (or ``None``) yields an empty :class:`ValuesFile`.
    """
    if path is None:
        return ValuesFile()
    path = Path(path)
    raw: Dict[str, Any] = {}
    if path.exists():
        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    else:
        logger.warning("Values file %s not found; ignoring.", path)
    return ValuesFile.model_validate(raw)


# ---------------------------------------------------------------------------
# Interactivity
# ---------------------------------------------------------------------------


def is_non_interactive() -> bool:
    """Check if ``CLOUDPROXY_NON_INTERACTIVE`` is set to ``"1"``."""
    return os.environ.get("CLOUDPROXY_NON_INTERACTIVE", "") == "1"


def can_prompt() -> bool:
    """True when stdin is a terminal and prompting has not been disabled."""
    if is_non_interactive():
        return False
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def prompt_text(spec: VariableSpec) -> str:
    """Return the prompt line shown for *spec*."""
    return f"Enter {spec.name} ({spec.prompt}): "


def _default_prompt(text: str) -> str:
    return input(text)


def _default_for(spec: VariableSpec) -> str:
    if spec.default is not None:
        return spec.default
    if spec.name == "NODE_NAME":
        return socket.gethostname()
    return ""


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _lookup(key: str, environ: Mapping[str, str], file_values: Mapping[str, str]) -> str:
    """Environment first, then values file; empty means unset."""
    value = environ.get(key, "")
    if value:
        return value
    return file_values.get(key, "")


def resolve_variables(
    *,
    environ: Optional[Mapping[str, str]] = None,
    values_file: Optional[ValuesFile] = None,
    prompt: Optional[PromptFn] = None,
    interactive: Optional[bool] = None,
    export: bool = False,
) -> Dict[str, str]:
    """Resolve every catalogue variable and return ``{KEY: value}``.

    Required keys: a non-empty environment value is used verbatim, then a
    non-empty values-file entry, otherwise the operator is prompted exactly
    once and whatever they type (including nothing) is accepted.

    Optional keys: environment, values file, then the catalogue default.

    Raises
    ------
    MissingVariablesError
        If any required key needs a prompt but *interactive* is false.
    """
    env = os.environ if environ is None else environ
    file_values = values_file.cloudproxy_ha.values if values_file else {}
    ask = prompt or _default_prompt
    if interactive is None:
        interactive = can_prompt()

    missing = [
        spec.name for spec in REQUIRED_VARIABLES
        if not _lookup(spec.name, env, file_values)
    ]
    if missing and not interactive:
        raise MissingVariablesError(missing)

    resolved: Dict[str, str] = {}
    for spec in REQUIRED_VARIABLES:
        value = _lookup(spec.name, env, file_values)
        if not value:
            value = ask(prompt_text(spec))
            logger.debug("Prompted for %s", spec.name)
        resolved[spec.name] = value

    for spec in OPTIONAL_VARIABLES:
        resolved[spec.name] = _lookup(spec.name, env, file_values) or _default_for(spec)

    if export:
        for key, value in resolved.items():
            os.environ[key] = value

    return resolved


def build_config(values: Dict[str, str]) -> HAConfig:
    """Assemble the immutable :class:`HAConfig` from resolved values.

    Raises :class:`pydantic.ValidationError` on a malformed ROLE or PRIORITY.
    """
    return HAConfig.from_values(values)


# ---------------------------------------------------------------------------
# Display / write-back
# ---------------------------------------------------------------------------


def masked_values(values: Mapping[str, str]) -> Dict[str, str]:
    """Copy of *values* with every secret replaced by :data:`MASK`."""
    return {
        k: (MASK if k in SECRET_KEYS and v else v) for k, v in values.items()
    }


def write_values_template(values: Mapping[str, str], dest: str | Path) -> Path:
    """Write a next-run values file with resolved non-secret values.

    Secrets are written empty so they are prompted for (or taken from the
    environment) on the next run.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    out: Dict[str, str] = {}
    for spec in ALL_VARIABLES:
        out[spec.name] = "" if spec.secret else values.get(spec.name, "")

    with open(dest, "w", encoding="utf-8") as fh:
        yaml.safe_dump(
            {"cloudproxy_ha": {"values": out}},
            fh,
            default_flow_style=False,
            sort_keys=False,
        )
    return dest

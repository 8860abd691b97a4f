"""Subprocess wrapper for the host tools the setup drives.

Every external program (``apt-get``, ``systemctl``, ``docker``, ``hcloud``)
goes through :func:`run_command` so invocation, logging and failure
handling look the same everywhere.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

#: Return code used when the binary itself cannot be found.
RC_NOT_FOUND: int = 127


@dataclass
class CommandResult:
    """Outcome of one external command."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    """An external command exited non-zero or could not be started."""

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        detail = result.stderr or result.stdout or "(no output)"
        super().__init__(
            f"Command failed (rc={result.returncode}): {result.command}: {detail}"
        )


def run_command(
    args: Sequence[str],
    *,
    check: bool = True,
    extra_env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
) -> CommandResult:
    """Run *args* to completion and return a :class:`CommandResult`.

    No timeout is applied: a hung package manager blocks the run.

    Raises
    ------
    CommandError
        When *check* is true and the command fails or is missing.
    """
    cmd: List[str] = list(args)
    env = {**os.environ}
    if extra_env:
        env.update(extra_env)

    logger.info("Running: %s", " ".join(cmd))

    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            env=env,
            cwd=cwd,
        )
    except FileNotFoundError:
        result = CommandResult(
            command=" ".join(cmd),
            returncode=RC_NOT_FOUND,
            stderr=f"{cmd[0]} not found on PATH",
        )
    else:
        result = CommandResult(
            command=" ".join(cmd),
            returncode=proc.returncode,
            stdout=(proc.stdout or "").strip(),
            stderr=(proc.stderr or "").strip(),
        )

    if result.success:
        logger.debug("ok: %s", result.command)
    else:
        logger.error(
            "Command failed (rc=%d): %s | %s",
            result.returncode,
            result.command,
            result.stderr or result.stdout or "(no output)",
        )
        if check:
            raise CommandError(result)

    return result

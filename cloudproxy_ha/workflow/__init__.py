"""Node setup orchestration."""

from cloudproxy_ha.workflow.setup_ha import (
    EXIT_COMMAND_FAILURE,
    EXIT_INPUT_FAILURE,
    EXIT_SUCCESS,
    EXIT_WRITE_FAILURE,
    resolve_config,
    run_render_only,
    run_setup_workflow,
)

__all__ = [
    "EXIT_COMMAND_FAILURE",
    "EXIT_INPUT_FAILURE",
    "EXIT_SUCCESS",
    "EXIT_WRITE_FAILURE",
    "resolve_config",
    "run_render_only",
    "run_setup_workflow",
]

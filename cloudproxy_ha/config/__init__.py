"""Variable catalogue, resolution, and the resolved configuration record."""

from cloudproxy_ha.config.models import (
    ALL_VARIABLES,
    OPTIONAL_VARIABLES,
    REQUIRED_KEYS,
    REQUIRED_VARIABLES,
    SECRET_KEYS,
    HAConfig,
    Role,
    ValuesFile,
    VariableSpec,
    split_peer_list,
)
from cloudproxy_ha.config.resolver import (
    MASK,
    MissingVariablesError,
    build_config,
    can_prompt,
    is_non_interactive,
    load_values_file,
    masked_values,
    prompt_text,
    resolve_variables,
    write_values_template,
)

__all__ = [
    "ALL_VARIABLES",
    "HAConfig",
    "MASK",
    "MissingVariablesError",
    "OPTIONAL_VARIABLES",
    "REQUIRED_KEYS",
    "REQUIRED_VARIABLES",
    "Role",
    "SECRET_KEYS",
    "ValuesFile",
    "VariableSpec",
    "build_config",
    "can_prompt",
    "is_non_interactive",
    "load_values_file",
    "masked_values",
    "prompt_text",
    "resolve_variables",
    "split_peer_list",
    "write_values_template",
]

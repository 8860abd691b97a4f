"""Artifact rendering for the Galera / Keepalived / Syncthing / Compose stack."""

from cloudproxy_ha.render.renderer import (
    ARTIFACT_ORDER,
    SYSTEM_TARGETS,
    WORKDIR_TARGETS,
    RenderedArtifact,
    render_all,
    render_compose,
    render_device_list_block,
    render_env_file,
    render_galera,
    render_init_sql,
    render_keepalived,
    render_readme,
    render_syncthing,
    render_template,
    write_artifacts,
)

__all__ = [
    "ARTIFACT_ORDER",
    "RenderedArtifact",
    "SYSTEM_TARGETS",
    "WORKDIR_TARGETS",
    "render_all",
    "render_compose",
    "render_device_list_block",
    "render_env_file",
    "render_galera",
    "render_init_sql",
    "render_keepalived",
    "render_readme",
    "render_syncthing",
    "render_template",
    "write_artifacts",
]

"""Project materialization, manifests, plugin bindings and dependencies."""

from pmp.projects.base import PluginBinding, Project, ProjectHandle, ProjectRef
from pmp.projects.graph import DependencyGraph
from pmp.projects.manifest import (
    ENVIRONMENT_FILE,
    LOCK_FILE,
    OUTPUTS_FILE,
    PROJECT_FILE,
    load_manifest,
    load_outputs,
    open_project,
    save_outputs,
)
from pmp.projects.materializer import (
    create_project,
    discover_projects,
    materialize,
    rerender,
)
from pmp.projects.plugins import plugin_env_name, resolve_plugin_env

__all__ = [
    "DependencyGraph",
    "ENVIRONMENT_FILE",
    "LOCK_FILE",
    "OUTPUTS_FILE",
    "PROJECT_FILE",
    "PluginBinding",
    "Project",
    "ProjectHandle",
    "ProjectRef",
    "create_project",
    "discover_projects",
    "load_manifest",
    "load_outputs",
    "materialize",
    "open_project",
    "plugin_env_name",
    "rerender",
    "resolve_plugin_env",
    "save_outputs",
]

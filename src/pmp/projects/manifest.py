"""Reading and writing the files pmp keeps inside a project."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from pmp.errors import ManifestError, ProjectNotFoundError
from pmp.projects.base import ENVIRONMENTS_DIRNAME, Project, ProjectHandle

logger = logging.getLogger(__name__)

# Constants
PROJECT_FILE = ".pmp.project.yaml"
ENVIRONMENT_FILE = ".pmp.environment.yaml"
OUTPUTS_FILE = ".pmp.outputs.yaml"
LOCK_FILE = ".pmp.lock"
API_VERSION = "pmp/v1"
PROJECTS_GLOB = f"projects/*/*/environments/*/{ENVIRONMENT_FILE}"


def _dump(path: Path, data: dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def _load(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a mapping")
    return data


def write_project_identifier(project_root: Path, project: Project) -> Path:
    """Write .pmp.project.yaml marking a directory as a pmp project."""
    path = project_root / PROJECT_FILE
    _dump(
        path,
        {
            "apiVersion": API_VERSION,
            "kind": "Project",
            "name": project.name,
            "category": project.category,
            "template": {"pack": project.pack_id, "name": project.template_id},
        },
    )
    return path


def write_environment_manifest(env_dir: Path, project: Project) -> Path:
    """Write .pmp.environment.yaml describing one project environment."""
    path = env_dir / ENVIRONMENT_FILE
    _dump(path, {"apiVersion": API_VERSION, "kind": "Environment", **project.to_dict()})
    return path


def load_manifest(env_dir: Path) -> ProjectHandle:
    """Load the project environment recorded in ``env_dir``.

    Raises ProjectNotFoundError if the directory holds no manifest, and
    ManifestError if the manifest is unreadable.
    """
    path = env_dir / ENVIRONMENT_FILE
    if not path.is_file():
        raise ProjectNotFoundError(env_dir)
    data = _load(path)
    try:
        project = Project.from_dict(data)
    except (KeyError, TypeError) as e:
        raise ManifestError(f"Incomplete manifest {path}: missing {e}") from e
    return ProjectHandle(project=project, path=env_dir.resolve())


def open_project(path: Path) -> ProjectHandle:
    """Open a project environment from its directory.

    A project root with exactly one environment is accepted as well.
    """
    if (path / ENVIRONMENT_FILE).is_file():
        return load_manifest(path)
    if (path / PROJECT_FILE).is_file():
        environments = sorted(
            p
            for p in (path / ENVIRONMENTS_DIRNAME).glob("*")
            if (p / ENVIRONMENT_FILE).is_file()
        )
        if len(environments) == 1:
            return load_manifest(environments[0])
        if environments:
            names = ", ".join(p.name for p in environments)
            raise ManifestError(
                f"{path} has several environments ({names}); pass one of them"
            )
    raise ProjectNotFoundError(path)


def load_outputs(env_dir: Path) -> dict[str, Any] | None:
    """Load recorded engine outputs, or None if none were recorded."""
    path = env_dir / OUTPUTS_FILE
    if not path.is_file():
        return None
    return _load(path)


def save_outputs(env_dir: Path, outputs: dict[str, Any]) -> Path:
    """Record engine outputs for dependent projects."""
    path = env_dir / OUTPUTS_FILE
    _dump(path, outputs)
    logger.debug("Recorded %d output(s) in %s", len(outputs), path)
    return path

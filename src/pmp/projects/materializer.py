"""Writing rendered templates into the project directory tree."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pmp.engines import OPENTOFU, Engine
from pmp.errors import DependencyCycleError, ProjectExistsError, ValidationError
from pmp.inputs.validation import ResolvedInputs, collect_inputs
from pmp.packs.base import Template
from pmp.packs.registry import TemplateRegistry
from pmp.projects.base import (
    PluginBinding,
    Project,
    ProjectHandle,
    ProjectRef,
    check_name,
    project_dir,
)
from pmp.projects.graph import DependencyGraph
from pmp.projects.manifest import (
    ENVIRONMENT_FILE,
    PROJECTS_GLOB,
    load_manifest,
    write_environment_manifest,
    write_project_identifier,
)
from pmp.projects.plugins import resolve_plugin_env
from pmp.render.renderer import RenderContext, RenderedFile, Renderer

logger = logging.getLogger(__name__)


def discover_projects(projects_root: Path) -> list[ProjectHandle]:
    """Load every project environment under ``<projects_root>/projects``."""
    handles: list[ProjectHandle] = []
    for manifest_path in sorted(projects_root.glob(PROJECTS_GLOB)):
        handles.append(load_manifest(manifest_path.parent))
    return handles


def check_dependency_cycle(
    projects_root: Path, ref: ProjectRef, bindings: Sequence[PluginBinding]
) -> None:
    """Raise DependencyCycleError if ``bindings`` would close a cycle."""
    graph = DependencyGraph.from_projects(discover_projects(projects_root))
    graph = graph.with_dependencies(str(ref), (str(b.project) for b in bindings))
    cycle = graph.find_cycle()
    if cycle:
        raise DependencyCycleError(cycle)


def _target_path(env_dir: Path, relative: str) -> Path:
    target = (env_dir / relative).resolve()
    if not target.is_relative_to(env_dir.resolve()):
        raise ValidationError("path", "escapes the project directory", relative)
    return target


def _remove_previous_files(env_dir: Path, engine: Engine) -> None:
    """Delete files written by the previous render. Engine state stays."""
    previous = load_manifest(env_dir)

    relative_paths = [*previous.project.files, engine.common_file]
    parents: set[Path] = set()
    for relative in relative_paths:
        path = _target_path(env_dir, relative)
        if path.is_file():
            path.unlink()
            logger.debug("Removed %s", path)
        parents.update(p for p in path.parents if p != env_dir.resolve())

    # Drop directories the previous render created and left empty
    for directory in sorted(parents, key=lambda p: len(p.parts), reverse=True):
        if directory.is_relative_to(env_dir.resolve()) and directory.is_dir():
            if not any(directory.iterdir()):
                directory.rmdir()


def materialize(
    project_name: str,
    environment: str,
    template: Template,
    inputs: ResolvedInputs | Mapping[str, Any],
    rendered: Sequence[RenderedFile],
    bindings: Sequence[PluginBinding] = (),
    overwrite: bool = False,
    projects_root: Path = Path("."),
    engine: Engine = OPENTOFU,
) -> ProjectHandle:
    """Write a rendered project environment to disk.

    Files land in ``<root>/projects/<category>/<name>/environments/<env>/``
    together with the engine support file and the environment manifest.

    Raises:
        ProjectExistsError: The environment directory exists and overwrite
            is False.
        DependencyCycleError: The bindings would close a dependency cycle.
    """
    check_name("name", project_name)
    check_name("environment", environment)
    ref = ProjectRef(template.category, project_name, environment)
    env_dir = ref.environment_dir(projects_root)

    if env_dir.exists() and not overwrite:
        raise ProjectExistsError(env_dir)

    check_dependency_cycle(projects_root, ref, bindings)

    env_dir.mkdir(parents=True, exist_ok=True)
    if (env_dir / ENVIRONMENT_FILE).exists():
        _remove_previous_files(env_dir, engine)

    for file in rendered:
        path = _target_path(env_dir, file.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(file.content, encoding="utf-8")
        logger.debug("Wrote %s", path)

    (env_dir / engine.common_file).write_text(
        engine.render_common_file(project_name, environment), encoding="utf-8"
    )

    values = inputs.to_dict() if isinstance(inputs, ResolvedInputs) else dict(inputs)
    project = Project(
        name=project_name,
        category=template.category,
        environment=environment,
        pack_id=template.pack_id,
        template_id=template.id,
        inputs=values,
        plugins=tuple(bindings),
        files=tuple(f.path for f in rendered),
    )
    write_environment_manifest(env_dir, project)
    write_project_identifier(
        project_dir(projects_root, template.category, project_name), project
    )

    return ProjectHandle(project=project, path=env_dir.resolve())


def create_project(
    registry: TemplateRegistry,
    template: Template,
    project_name: str,
    environment: str,
    inputs: ResolvedInputs,
    bindings: Sequence[PluginBinding] = (),
    overwrite: bool = False,
    projects_root: Path = Path("."),
    engine: Engine = OPENTOFU,
) -> ProjectHandle:
    """Resolve plugins, render and materialize one project environment."""
    pack = registry.get_pack(template.pack_id)
    plugin_env = resolve_plugin_env(projects_root, template, pack, bindings)
    context = RenderContext(
        name=project_name, environment=environment, plugin_env=plugin_env
    )
    rendered = Renderer().render(template, inputs, context)
    return materialize(
        project_name,
        environment,
        template,
        inputs,
        rendered,
        bindings=bindings,
        overwrite=overwrite,
        projects_root=projects_root,
        engine=engine,
    )


def rerender(
    handle: ProjectHandle, registry: TemplateRegistry, engine: Engine = OPENTOFU
) -> ProjectHandle:
    """Render an existing project again from its manifest.

    Recorded inputs are validated against the current template, so a pack
    update that tightens a constraint surfaces as a ValidationError.
    """
    project = handle.project
    template = registry.get_template(project.pack_id, project.template_id)
    inputs = collect_inputs(template.inputs, project.inputs)
    return create_project(
        registry,
        template,
        project.name,
        project.environment,
        inputs,
        bindings=project.plugins,
        overwrite=True,
        projects_root=handle.projects_root,
        engine=engine,
    )

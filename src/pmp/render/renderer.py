"""Jinja2 rendering of template file bodies.

Rendering is pure: the same template and inputs always produce the same
files, byte for byte. Names referenced by a body are checked against the
template's schema before rendering, so an authoring mistake surfaces as a
:class:`MissingBindingError` naming the template and field rather than as a
half-rendered file.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, meta

from pmp.errors import CatalogLoadError, MissingBindingError
from pmp.packs.base import FileTemplate, Template

# Names bound for every template in addition to its declared inputs
BUILTIN_NAMES: frozenset[str] = frozenset(
    {"name", "environment", "pack", "template", "category", "plugin_env"}
)


def _k8s_name_filter(value: str) -> str:
    """Lowercase and replace characters not allowed in Kubernetes names."""
    out = []
    for ch in str(value).lower():
        out.append(ch if ch.isalnum() or ch == "-" else "-")
    return "".join(out).strip("-")


def create_environment() -> Environment:
    """Create the Jinja2 environment shared by the loader and the renderer."""
    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["k8s_name"] = _k8s_name_filter
    return env


def referenced_names(env: Environment, body: str) -> set[str]:
    """Return the free variable names a template body refers to.

    Raises jinja2.TemplateSyntaxError on malformed bodies.
    """
    ast = env.parse(body)
    return {
        name for name in meta.find_undeclared_variables(ast) if name not in env.globals
    }


def check_bindings(env: Environment, template: Template, file: FileTemplate) -> None:
    """Raise MissingBindingError if a body references an undeclared name."""
    allowed = BUILTIN_NAMES | set(template.input_names)
    try:
        names = referenced_names(env, file.body)
    except TemplateSyntaxError as e:
        raise CatalogLoadError(
            f"template syntax error in {file.source} line {e.lineno}: {e.message}",
            pack_id=template.pack_id,
            template_id=template.id,
        ) from e
    for name in sorted(names):
        if name not in allowed:
            raise MissingBindingError(
                template.pack_id, template.id, name, path=file.source
            )


@dataclass(frozen=True)
class RenderContext:
    """Project-level values bound alongside the resolved inputs."""

    name: str
    environment: str
    plugin_env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedFile:
    """A rendered file, relative to the project environment directory."""

    path: str
    content: str


class Renderer:
    """Renders a template's file bodies against resolved inputs."""

    def __init__(self) -> None:
        self._env = create_environment()

    def selected_files(
        self, template: Template, inputs: Mapping[str, Any]
    ) -> list[FileTemplate]:
        """Files whose predicate holds (files without a predicate always do)."""
        values = dict(inputs)
        return [
            f for f in template.files if f.when is None or f.when.evaluate(values)
        ]

    def render(
        self,
        template: Template,
        inputs: Mapping[str, Any],
        context: RenderContext | None = None,
    ) -> tuple[RenderedFile, ...]:
        """Render the template to a tuple of files sorted by path."""
        if context is None:
            context = RenderContext(name=template.id, environment="default")

        variables: dict[str, Any] = dict(inputs)
        variables.update(
            {
                "name": context.name,
                "environment": context.environment,
                "pack": template.pack_id,
                "template": template.id,
                "category": template.category,
                "plugin_env": [
                    {"name": key, "value": context.plugin_env[key]}
                    for key in sorted(context.plugin_env)
                ],
            }
        )

        rendered: list[RenderedFile] = []
        for file in self.selected_files(template, inputs):
            check_bindings(self._env, template, file)
            for name in referenced_names(self._env, file.body):
                if name not in variables:
                    raise MissingBindingError(
                        template.pack_id, template.id, name, path=file.source
                    )
            body = self._env.from_string(file.body)
            rendered.append(RenderedFile(path=file.output, content=body.render(variables)))

        return tuple(sorted(rendered, key=lambda f: f.path))

"""Project data model: references, plugin bindings and materialized projects."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pmp.errors import PluginBindingError, ValidationError

PROJECTS_DIRNAME = "projects"
ENVIRONMENTS_DIRNAME = "environments"

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def check_name(kind: str, value: str) -> str:
    """Validate a project, category or environment name used as a path segment."""
    if not _NAME_RE.match(value):
        raise ValidationError(
            kind,
            "must be lowercase letters, digits, '-' or '_'",
            value,
        )
    return value


@dataclass(frozen=True, order=True)
class ProjectRef:
    """Identifies one environment of one project."""

    category: str
    name: str
    environment: str

    def __str__(self) -> str:
        return f"{self.category}/{self.name}@{self.environment}"

    @classmethod
    def parse(cls, text: str, default_environment: str | None = None) -> ProjectRef:
        """Parse ``CATEGORY/NAME[@ENV]``."""
        target, _, environment = text.strip().partition("@")
        category, sep, name = target.partition("/")
        environment = environment or (default_environment or "")
        if not sep or not category or not name or not environment:
            raise PluginBindingError(
                f"Invalid project reference '{text}' (expected CATEGORY/NAME@ENV)"
            )
        return cls(category=category, name=name, environment=environment)

    def environment_dir(self, projects_root: Path) -> Path:
        return (
            project_dir(projects_root, self.category, self.name)
            / ENVIRONMENTS_DIRNAME
            / self.environment
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category,
            "name": self.name,
            "environment": self.environment,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectRef:
        return cls(
            category=str(data["category"]),
            name=str(data["name"]),
            environment=str(data["environment"]),
        )


def project_dir(projects_root: Path, category: str, name: str) -> Path:
    """Root directory of a project: <root>/projects/<category>/<name>."""
    return projects_root / PROJECTS_DIRNAME / category / name


@dataclass(frozen=True)
class PluginBinding:
    """An explicit dependency edge: this project consumes another project."""

    plugin: str  # e.g. "postgres-access"
    instance: str  # e.g. "orders_db"
    project: ProjectRef

    def __str__(self) -> str:
        return f"{self.plugin}:{self.instance}={self.project}"

    @classmethod
    def parse(
        cls, text: str, default_environment: str | None = None
    ) -> PluginBinding:
        """Parse ``PLUGIN:INSTANCE=CATEGORY/NAME[@ENV]``."""
        head, sep, target = text.partition("=")
        plugin, colon, instance = head.partition(":")
        plugin, instance = plugin.strip(), instance.strip()
        if not sep or not colon or not plugin or not instance:
            raise PluginBindingError(
                f"Invalid plugin binding '{text}' "
                "(expected PLUGIN:INSTANCE=CATEGORY/NAME[@ENV])"
            )
        return cls(
            plugin=plugin,
            instance=instance,
            project=ProjectRef.parse(target, default_environment),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "plugin": self.plugin,
            "instance": self.instance,
            "project": self.project.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginBinding:
        return cls(
            plugin=str(data["plugin"]),
            instance=str(data["instance"]),
            project=ProjectRef.from_dict(data["project"]),
        )


@dataclass(frozen=True)
class Project:
    """A materialized environment of a project, as recorded in its manifest."""

    name: str
    category: str
    environment: str
    pack_id: str
    template_id: str
    inputs: dict[str, Any] = field(default_factory=dict)
    plugins: tuple[PluginBinding, ...] = ()
    files: tuple[str, ...] = ()

    @property
    def ref(self) -> ProjectRef:
        return ProjectRef(self.category, self.name, self.environment)

    @property
    def template_name(self) -> str:
        return f"{self.pack_id}/{self.template_id}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to the manifest mapping written to disk."""
        return {
            "name": self.name,
            "category": self.category,
            "environment": self.environment,
            "template": {"pack": self.pack_id, "name": self.template_id},
            "inputs": dict(self.inputs),
            "plugins": [binding.to_dict() for binding in self.plugins],
            "files": list(self.files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        template = data.get("template") or {}
        return cls(
            name=str(data["name"]),
            category=str(data["category"]),
            environment=str(data["environment"]),
            pack_id=str(template["pack"]),
            template_id=str(template["name"]),
            inputs=dict(data.get("inputs") or {}),
            plugins=tuple(
                PluginBinding.from_dict(b) for b in data.get("plugins") or []
            ),
            files=tuple(str(f) for f in data.get("files") or []),
        )


@dataclass(frozen=True)
class ProjectHandle:
    """A project environment together with its location on disk."""

    project: Project
    path: Path  # <root>/projects/<category>/<name>/environments/<env>

    @property
    def ref(self) -> ProjectRef:
        return self.project.ref

    @property
    def project_root(self) -> Path:
        return self.path.parent.parent

    @property
    def projects_root(self) -> Path:
        # <root>/projects/<category>/<name>/environments/<env>
        return self.path.parents[4]

"""Exception hierarchy for pmp."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pmp.driver import ApplyResult


class PmpError(Exception):
    """Base exception for pmp operations."""


class CatalogLoadError(PmpError):
    """Raised when a template pack on disk is malformed."""

    def __init__(
        self,
        message: str,
        pack_id: str | None = None,
        template_id: str | None = None,
        field: str | None = None,
    ) -> None:
        self.pack_id = pack_id
        self.template_id = template_id
        self.field = field
        location = "/".join(p for p in (pack_id, template_id) if p)
        if field:
            location = f"{location}:{field}" if location else field
        super().__init__(f"{location}: {message}" if location else message)


class MissingBindingError(CatalogLoadError):
    """Raised when a template body references a name absent from its schema."""

    def __init__(
        self,
        pack_id: str,
        template_id: str,
        field: str,
        path: str | None = None,
    ) -> None:
        self.path = path
        where = f" in {path}" if path else ""
        super().__init__(
            f"template references undeclared input '{field}'{where}",
            pack_id=pack_id,
            template_id=template_id,
            field=field,
        )


class TemplateNotFoundError(PmpError):
    """Raised when a pack or template id is not in the registry."""

    def __init__(self, pack_id: str, template_id: str | None = None) -> None:
        self.pack_id = pack_id
        self.template_id = template_id
        if template_id is None:
            super().__init__(f"Template pack not found: {pack_id}")
        else:
            super().__init__(f"Template not found: {pack_id}/{template_id}")


class ValidationError(PmpError):
    """Raised when a user-supplied value violates an input constraint."""

    def __init__(self, field: str, reason: str, value: object = None) -> None:
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"{field}: {reason}")


class ProjectExistsError(PmpError):
    """Raised when materializing over an existing project without overwrite."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Project already exists: {path} (use --overwrite to replace it)"
        )


class ProjectNotFoundError(PmpError):
    """Raised when a path does not contain a pmp project environment."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"No pmp project environment found at {path}")


class ManifestError(PmpError):
    """Raised when a project manifest on disk is unreadable or incomplete."""


class PluginBindingError(PmpError):
    """Raised when a plugin binding cannot be resolved."""


class DependencyCycleError(PluginBindingError):
    """Raised when plugin bindings would form a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Dependency cycle detected: " + " -> ".join(cycle))


class ProjectLockedError(PmpError):
    """Raised when another process holds the project lock."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Project is locked by another pmp process: {path}. "
            "Wait for it to finish and try again."
        )


class EngineNotInstalledError(PmpError):
    """Raised when the IaC engine binary is not on PATH."""

    def __init__(self, name: str, install_info: str) -> None:
        self.name = name
        super().__init__(f"{name} is not installed. Install: {install_info}")


class ApplyEngineError(PmpError):
    """Raised when the external IaC engine exits with a failure status."""

    def __init__(self, result: ApplyResult) -> None:
        self.result = result
        super().__init__(
            f"'{' '.join(result.command)}' failed with exit code {result.exit_code}"
        )

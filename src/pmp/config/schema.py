"""Configuration schema for pmp."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass
class PmpConfig:
    """pmp configuration schema.

    None values indicate "not set" and will use defaults or be inherited.
    """

    # Engine settings
    engine: str | None = None
    lock_timeout: float | None = None

    # Catalog and project layout
    projects_root: str | None = None
    packs_paths: list[str] | None = None

    # Environments offered by `pmp create`
    environments: list[str] | None = None
    default_environment: str | None = None

    def merge(self, other: PmpConfig) -> PmpConfig:
        """Merge another config into this one.

        Values from `other` take precedence when they are not None.
        Returns a new PmpConfig instance.
        """
        return PmpConfig(
            engine=other.engine if other.engine is not None else self.engine,
            lock_timeout=(
                other.lock_timeout
                if other.lock_timeout is not None
                else self.lock_timeout
            ),
            projects_root=(
                other.projects_root
                if other.projects_root is not None
                else self.projects_root
            ),
            packs_paths=(
                other.packs_paths if other.packs_paths is not None else self.packs_paths
            ),
            environments=(
                other.environments
                if other.environments is not None
                else self.environments
            ),
            default_environment=(
                other.default_environment
                if other.default_environment is not None
                else self.default_environment
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PmpConfig:
        """Create a PmpConfig from a dictionary.

        Unknown keys are ignored. Type validation is performed.
        """
        engine = data.get("engine")
        lock_timeout_raw = data.get("lock_timeout")
        lock_timeout = (
            float(lock_timeout_raw) if lock_timeout_raw is not None else None
        )
        projects_root = data.get("projects_root")
        packs_paths_raw = data.get("packs_paths")
        packs_paths = (
            [str(p) for p in packs_paths_raw]
            if isinstance(packs_paths_raw, list)
            else None
        )
        environments_raw = data.get("environments")
        environments = (
            [str(e) for e in environments_raw]
            if isinstance(environments_raw, list)
            else None
        )
        default_environment = data.get("default_environment")

        return cls(
            engine=str(engine) if engine is not None else None,
            lock_timeout=lock_timeout,
            projects_root=str(projects_root) if projects_root is not None else None,
            packs_paths=packs_paths,
            environments=environments,
            default_environment=(
                str(default_environment) if default_environment is not None else None
            ),
        )


DEFAULT_CONFIG = PmpConfig(
    engine="opentofu",
    lock_timeout=10.0,
    projects_root=".",
    packs_paths=[],
    environments=["dev", "staging", "production"],
    default_environment="dev",
)

"""Infrastructure-as-code engine definitions and detection."""

from pmp.engines.base import Engine
from pmp.engines.opentofu import OPENTOFU
from pmp.engines.terraform import TERRAFORM

__all__ = [
    "Engine",
    "ENGINES",
    "OPENTOFU",
    "TERRAFORM",
    "get_available_engines",
    "get_engine_by_name",
]

ENGINES: tuple[Engine, ...] = (
    OPENTOFU,
    TERRAFORM,
)


def get_available_engines() -> list[Engine]:
    """Return list of engines that are currently installed."""
    return [engine for engine in ENGINES if engine.is_installed()]


def get_engine_by_name(name: str) -> Engine | None:
    """Find engine by name (case-insensitive) or cli_command."""
    name_lower = name.lower()
    for engine in ENGINES:
        if engine.name.lower() == name_lower or engine.cli_command == name:
            return engine
    return None

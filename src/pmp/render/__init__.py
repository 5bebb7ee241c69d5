"""Template rendering."""

from pmp.render.renderer import (
    BUILTIN_NAMES,
    RenderContext,
    RenderedFile,
    Renderer,
    check_bindings,
    create_environment,
)

__all__ = [
    "BUILTIN_NAMES",
    "RenderContext",
    "RenderedFile",
    "Renderer",
    "check_bindings",
    "create_environment",
]

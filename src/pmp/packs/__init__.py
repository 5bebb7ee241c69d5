"""Template pack data model.

Loading and lookup live in :mod:`pmp.packs.loader` and
:mod:`pmp.packs.registry`; they are not re-exported here because the input
and render layers import the data model from this package.
"""

from pmp.packs.base import (
    DEFAULT_PLUGIN_ATTRIBUTES,
    INPUT_KINDS,
    FilePredicate,
    FileTemplate,
    InputField,
    PluginSpec,
    Template,
    TemplatePack,
)

__all__ = [
    "DEFAULT_PLUGIN_ATTRIBUTES",
    "INPUT_KINDS",
    "FilePredicate",
    "FileTemplate",
    "InputField",
    "PluginSpec",
    "Template",
    "TemplatePack",
]

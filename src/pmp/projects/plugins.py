"""Plugin bindings: resolving cross-project dependencies to environment variables."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from pathlib import Path

from pmp.errors import ManifestError, PluginBindingError, ProjectNotFoundError
from pmp.packs.base import PluginSpec, Template, TemplatePack
from pmp.projects.base import PluginBinding
from pmp.projects.manifest import load_manifest, load_outputs

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLUGIN"

_INSTANCE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def _env_token(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", text).upper()


def plugin_env_name(plugin: str, instance: str, attribute: str) -> str:
    """Environment variable name for one attribute of a plugin instance.

    >>> plugin_env_name("postgres-access", "orders_db", "host")
    'PLUGIN_POSTGRES_ACCESS_ORDERS_DB_HOST'
    """
    return "_".join(
        (ENV_PREFIX, _env_token(plugin), _env_token(instance), _env_token(attribute))
    )


def check_bindings(
    template: Template, pack: TemplatePack, bindings: Sequence[PluginBinding]
) -> list[tuple[PluginBinding, PluginSpec]]:
    """Check bindings against what the template accepts, without touching disk.

    Returns each binding paired with the plugin it binds.
    """
    checked: list[tuple[PluginBinding, PluginSpec]] = []
    seen: set[tuple[str, str]] = set()
    for binding in bindings:
        if binding.plugin not in template.plugins:
            raise PluginBindingError(
                f"Template {template.qualified_name} does not accept plugin "
                f"'{binding.plugin}'"
            )
        spec = pack.get_plugin(binding.plugin)
        if spec is None:
            raise PluginBindingError(
                f"Plugin '{binding.plugin}' is not declared by pack {pack.id}"
            )
        if not _INSTANCE_RE.match(binding.instance):
            raise PluginBindingError(
                f"Invalid instance name '{binding.instance}' for plugin "
                f"'{binding.plugin}'; give each instance an explicit name"
            )
        key = (binding.plugin, binding.instance)
        if key in seen:
            raise PluginBindingError(
                f"Duplicate instance '{binding.instance}' for plugin '{binding.plugin}'"
            )
        seen.add(key)
        checked.append((binding, spec))

    names = [plugin_env_name(b.plugin, b.instance, "") for b in bindings]
    if len(set(names)) != len(names):
        raise PluginBindingError(
            "Plugin instance names collide once converted to environment variables"
        )
    return checked


def resolve_plugin_env(
    projects_root: Path,
    template: Template,
    pack: TemplatePack,
    bindings: Sequence[PluginBinding],
) -> dict[str, str]:
    """Resolve bindings to ``PLUGIN_<PLUGIN>_<INSTANCE>_<ATTR>`` variables.

    Each referenced project must exist, come from a template the plugin
    accepts, and have recorded outputs (``pmp output``) covering every
    attribute of the plugin.
    """
    env: dict[str, str] = {}
    for binding, spec in check_bindings(template, pack, bindings):
        dep_dir = binding.project.environment_dir(projects_root)
        try:
            dependency = load_manifest(dep_dir)
        except ProjectNotFoundError as e:
            raise PluginBindingError(
                f"Plugin '{binding.plugin}:{binding.instance}' references "
                f"{binding.project}, which does not exist"
            ) from e
        except ManifestError as e:
            raise PluginBindingError(
                f"Cannot read {binding.project} for plugin "
                f"'{binding.plugin}:{binding.instance}': {e}"
            ) from e

        if spec.provided_by and dependency.project.template_id not in spec.provided_by:
            raise PluginBindingError(
                f"{binding.project} was created from "
                f"{dependency.project.template_name}; plugin '{spec.name}' needs "
                f"one of: {', '.join(spec.provided_by)}"
            )

        outputs = load_outputs(dependency.path)
        if outputs is None:
            raise PluginBindingError(
                f"{binding.project} has no recorded outputs. "
                f"Run 'pmp apply' and 'pmp output' on {dependency.path} first."
            )

        for attribute in spec.attributes:
            if outputs.get(attribute) is None:
                raise PluginBindingError(
                    f"{binding.project} does not output '{attribute}' "
                    f"required by plugin '{spec.name}'"
                )
            value = outputs[attribute]
            if isinstance(value, bool):
                value = "true" if value else "false"
            env[plugin_env_name(binding.plugin, binding.instance, attribute)] = str(value)

        logger.debug("Resolved plugin %s from %s", binding, dependency.path)

    return env

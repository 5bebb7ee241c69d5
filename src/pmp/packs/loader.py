"""Template pack loading and discovery."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from pmp.errors import CatalogLoadError, ValidationError
from pmp.inputs.validation import validate_value
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
from pmp.render.renderer import BUILTIN_NAMES, check_bindings, create_environment

logger = logging.getLogger(__name__)

# Constants
PACK_DIRNAME = "packs"
PACK_YAML = "pack.yaml"
TEMPLATE_YAML = "template.yaml"
PLUGIN_YAML = "plugin.yaml"
TEMPLATE_SRC_DIRNAME = "src"
TEMPLATE_SUFFIX = ".j2"

_INPUT_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
_KIND_ALIASES: dict[str, str] = {"select": "enum", "multiselect": "multi-select"}


def get_package_packs_path() -> Path:
    """Get path to package-bundled default packs."""
    return Path(__file__).parent / "default"


def get_global_packs_path() -> Path:
    """Get path to global user packs: ~/.pmp/packs/."""
    return Path.home() / ".pmp" / PACK_DIRNAME


def get_local_packs_path() -> Path:
    """Get path to project-specific packs: ./.pmp/packs/."""
    return Path.cwd() / ".pmp" / PACK_DIRNAME


def get_pack_search_paths(extra_paths: Iterable[str | Path] = ()) -> list[Path]:
    """Return pack roots in load order (lowest priority first).

    Resolution order:
    1. Package-bundled packs
    2. Extra roots from configuration (packs_paths)
    3. Global user packs (~/.pmp/packs/)
    4. Local project packs (./.pmp/packs/) - highest priority
    """
    paths = [get_package_packs_path()]
    paths.extend(Path(p).expanduser() for p in extra_paths)
    paths.append(get_global_packs_path())
    paths.append(get_local_packs_path())
    return [p for p in paths if p.exists()]


def discover_pack_dirs(base_path: Path) -> dict[str, Path]:
    """Discover pack directories within a base path.

    Returns dict mapping directory name -> pack directory path.
    Only includes directories containing pack.yaml.
    """
    packs: dict[str, Path] = {}
    if not base_path.exists():
        return packs

    for item in sorted(base_path.iterdir()):
        if item.is_dir() and (item / PACK_YAML).exists():
            packs[item.name] = item

    return packs


def _load_yaml_mapping(
    path: Path, pack_id: str | None = None, template_id: str | None = None
) -> dict[str, Any]:
    """Load a YAML file that must contain a mapping."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise CatalogLoadError(
            f"cannot read {path.name}: {e}", pack_id=pack_id, template_id=template_id
        ) from e
    except yaml.YAMLError as e:
        raise CatalogLoadError(
            f"invalid YAML in {path.name}: {e}",
            pack_id=pack_id,
            template_id=template_id,
        ) from e
    if not isinstance(data, dict):
        raise CatalogLoadError(
            f"{path.name} must contain a mapping",
            pack_id=pack_id,
            template_id=template_id,
        )
    return data


def _require_str(
    data: dict[str, Any],
    key: str,
    pack_id: str | None,
    template_id: str | None = None,
) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CatalogLoadError(
            f"missing required field '{key}'",
            pack_id=pack_id,
            template_id=template_id,
            field=key,
        )
    return value.strip()


def _parse_number(value: Any, key: str, pack_id: str, template_id: str, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CatalogLoadError(
            f"input '{name}': '{key}' must be a number",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )
    return value


def _parse_options(raw: Any, pack_id: str, template_id: str, name: str) -> tuple[str, ...]:
    if not isinstance(raw, list) or not raw:
        raise CatalogLoadError(
            f"input '{name}': options must be a non-empty list",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )
    options: list[str] = []
    for item in raw:
        # Accept both plain values and {label, value} mappings
        value = item.get("value") if isinstance(item, dict) else item
        if value is None or isinstance(value, (dict, list)):
            raise CatalogLoadError(
                f"input '{name}': invalid option {item!r}",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            )
        options.append(str(value))
    if len(set(options)) != len(options):
        raise CatalogLoadError(
            f"input '{name}': duplicate options",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )
    return tuple(options)


def parse_input_field(data: Any, pack_id: str, template_id: str) -> InputField:
    """Parse and check one entry of a template's ``inputs`` list."""
    if not isinstance(data, dict):
        raise CatalogLoadError(
            f"input entries must be mappings, got {data!r}",
            pack_id=pack_id,
            template_id=template_id,
        )

    name = _require_str(data, "name", pack_id, template_id)
    if not _INPUT_NAME_RE.match(name):
        raise CatalogLoadError(
            f"input name '{name}' is not a valid identifier",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )
    if name in BUILTIN_NAMES:
        raise CatalogLoadError(
            f"input name '{name}' is reserved",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )

    kind_raw = str(data.get("type", "")).strip()
    kind = _KIND_ALIASES.get(kind_raw, kind_raw)
    if kind not in INPUT_KINDS:
        raise CatalogLoadError(
            f"input '{name}': unknown type '{kind_raw}'",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )

    minimum = maximum = None
    if "min" in data or "max" in data:
        if kind not in ("number", "multi-select"):
            raise CatalogLoadError(
                f"input '{name}': min/max only apply to number and multi-select inputs",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            )
        if data.get("min") is not None:
            minimum = _parse_number(data["min"], "min", pack_id, template_id, name)
        if data.get("max") is not None:
            maximum = _parse_number(data["max"], "max", pack_id, template_id, name)
        if minimum is not None and maximum is not None and minimum > maximum:
            raise CatalogLoadError(
                f"input '{name}': min is greater than max",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            )
        if kind == "multi-select":
            # Selection counts
            for bound in (minimum, maximum):
                if bound is not None and (bound < 0 or bound != int(bound)):
                    raise CatalogLoadError(
                        f"input '{name}': min/max must be whole selection counts",
                        pack_id=pack_id,
                        template_id=template_id,
                        field=name,
                    )

    integer = data.get("integer", False)
    if not isinstance(integer, bool):
        raise CatalogLoadError(
            f"input '{name}': 'integer' must be true or false",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )
    if integer and kind != "number":
        raise CatalogLoadError(
            f"input '{name}': integer only applies to number inputs",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )

    options: tuple[str, ...] = ()
    if kind in ("enum", "multi-select"):
        options = _parse_options(data.get("options"), pack_id, template_id, name)
    elif "options" in data:
        raise CatalogLoadError(
            f"input '{name}': options only apply to enum and multi-select inputs",
            pack_id=pack_id,
            template_id=template_id,
            field=name,
        )

    pattern = data.get("pattern")
    if pattern is not None:
        if kind not in ("string", "password"):
            raise CatalogLoadError(
                f"input '{name}': pattern only applies to string and password inputs",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            )
        try:
            re.compile(str(pattern))
        except re.error as e:
            raise CatalogLoadError(
                f"input '{name}': invalid pattern: {e}",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            ) from e
        pattern = str(pattern)

    default = data.get("default")
    if isinstance(default, list):
        default = tuple(default)

    input_field = InputField(
        name=name,
        kind=kind,  # type: ignore[arg-type]
        description=str(data.get("description", "")).strip(),
        default=default,
        required=bool(data.get("required", True)),
        minimum=minimum,
        maximum=maximum,
        options=options,
        pattern=pattern,
        integer=integer,
    )

    if input_field.has_default:
        try:
            coerced = validate_value(input_field, default)
        except ValidationError as e:
            shown = "(hidden)" if input_field.is_secret else repr(default)
            raise CatalogLoadError(
                f"input '{name}': default {shown} is invalid ({e.reason})",
                pack_id=pack_id,
                template_id=template_id,
                field=name,
            ) from e
        # Store the coerced default so prompts and manifests see the real type
        input_field = replace(input_field, default=coerced)

    return input_field


def parse_predicate(
    raw: Any, input_names: set[str], pack_id: str, template_id: str, path: str
) -> FilePredicate:
    """Parse a file's ``when`` condition.

    Accepts an input name (truthiness) or a mapping with ``input`` and one
    of ``equals``, ``not_equals`` or ``in``.
    """
    if isinstance(raw, str):
        predicate = FilePredicate(input=raw)
    elif isinstance(raw, dict):
        input_name = raw.get("input")
        operators = [key for key in ("equals", "not_equals", "in") if key in raw]
        if not isinstance(input_name, str) or len(operators) > 1:
            raise CatalogLoadError(
                f"invalid 'when' for {path}: {raw!r}",
                pack_id=pack_id,
                template_id=template_id,
            )
        one_of = raw.get("in")
        if one_of is not None and not isinstance(one_of, list):
            raise CatalogLoadError(
                f"'when.in' for {path} must be a list",
                pack_id=pack_id,
                template_id=template_id,
            )
        predicate = FilePredicate(
            input=input_name,
            equals=raw.get("equals"),
            not_equals=raw.get("not_equals"),
            one_of=tuple(one_of) if one_of is not None else None,
        )
    else:
        raise CatalogLoadError(
            f"invalid 'when' for {path}: {raw!r}",
            pack_id=pack_id,
            template_id=template_id,
        )

    if predicate.input not in input_names:
        raise CatalogLoadError(
            f"'when' for {path} references unknown input '{predicate.input}'",
            pack_id=pack_id,
            template_id=template_id,
            field=predicate.input,
        )
    return predicate


def _output_path(source: str) -> str:
    return source[: -len(TEMPLATE_SUFFIX)] if source.endswith(TEMPLATE_SUFFIX) else source


def _read_source(path: Path, source: str, pack_id: str, template_id: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(
            f"cannot read {TEMPLATE_SRC_DIRNAME}/{source}: {e}",
            pack_id=pack_id,
            template_id=template_id,
        ) from e


def _load_file_templates(
    template_dir: Path,
    file_entries: Any,
    input_names: set[str],
    pack_id: str,
    template_id: str,
) -> tuple[FileTemplate, ...]:
    """Read every file under src/, attaching predicates from ``files``."""
    src_dir = template_dir / TEMPLATE_SRC_DIRNAME
    if not src_dir.is_dir():
        raise CatalogLoadError(
            f"missing {TEMPLATE_SRC_DIRNAME}/ directory",
            pack_id=pack_id,
            template_id=template_id,
        )

    if file_entries is None:
        file_entries = []
    if not isinstance(file_entries, list):
        raise CatalogLoadError(
            "'files' must be a list", pack_id=pack_id, template_id=template_id
        )

    predicates: dict[str, FilePredicate] = {}
    for entry in file_entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
            raise CatalogLoadError(
                f"invalid files entry {entry!r}",
                pack_id=pack_id,
                template_id=template_id,
            )
        path = entry["path"]
        if not (src_dir / path).is_file():
            raise CatalogLoadError(
                f"files entry references missing file src/{path}",
                pack_id=pack_id,
                template_id=template_id,
            )
        if "when" in entry:
            predicates[path] = parse_predicate(
                entry["when"], input_names, pack_id, template_id, path
            )

    files: list[FileTemplate] = []
    outputs: set[str] = set()
    for file_path in sorted(p for p in src_dir.rglob("*") if p.is_file()):
        source = file_path.relative_to(src_dir).as_posix()
        output = _output_path(source)
        if output in outputs:
            raise CatalogLoadError(
                f"two source files render to {output}",
                pack_id=pack_id,
                template_id=template_id,
            )
        outputs.add(output)
        files.append(
            FileTemplate(
                source=source,
                output=output,
                body=_read_source(file_path, source, pack_id, template_id),
                when=predicates.get(source),
            )
        )

    if not files:
        raise CatalogLoadError(
            "template has no files", pack_id=pack_id, template_id=template_id
        )
    return tuple(files)


def load_template_from_dir(template_dir: Path, pack_id: str) -> Template:
    """Load and check a Template from a template directory."""
    data = _load_yaml_mapping(template_dir / TEMPLATE_YAML, pack_id, template_dir.name)
    template_id = _require_str(data, "name", pack_id, template_dir.name)
    if not _ID_RE.match(template_id):
        raise CatalogLoadError(
            f"invalid template name '{template_id}'",
            pack_id=pack_id,
            template_id=template_dir.name,
            field="name",
        )
    category = str(data.get("category") or template_id).strip()
    if not _ID_RE.match(category):
        raise CatalogLoadError(
            f"invalid category '{category}'",
            pack_id=pack_id,
            template_id=template_id,
            field="category",
        )

    inputs_raw = data.get("inputs", [])
    if not isinstance(inputs_raw, list):
        raise CatalogLoadError(
            "'inputs' must be a list", pack_id=pack_id, template_id=template_id
        )

    fields: list[InputField] = []
    seen: set[str] = set()
    for entry in inputs_raw:
        input_field = parse_input_field(entry, pack_id, template_id)
        if input_field.name in seen:
            raise CatalogLoadError(
                f"duplicate input name '{input_field.name}'",
                pack_id=pack_id,
                template_id=template_id,
                field=input_field.name,
            )
        seen.add(input_field.name)
        fields.append(input_field)

    plugins_raw = data.get("plugins", [])
    if not isinstance(plugins_raw, list):
        raise CatalogLoadError(
            "'plugins' must be a list", pack_id=pack_id, template_id=template_id
        )

    files = _load_file_templates(
        template_dir, data.get("files"), seen, pack_id, template_id
    )

    template = Template(
        id=template_id,
        pack_id=pack_id,
        description=str(data.get("description", "")).strip(),
        category=category,
        inputs=tuple(fields),
        files=files,
        plugins=tuple(str(p) for p in plugins_raw),
        source=template_dir,
    )

    env = create_environment()
    for file in template.files:
        check_bindings(env, template, file)

    return template


def load_plugin_from_dir(plugin_dir: Path, pack_id: str) -> PluginSpec:
    """Load a PluginSpec from a plugin directory."""
    data = _load_yaml_mapping(plugin_dir / PLUGIN_YAML, pack_id)
    name = _require_str(data, "name", pack_id)

    attributes_raw = data.get("attributes", list(DEFAULT_PLUGIN_ATTRIBUTES))
    if not isinstance(attributes_raw, list) or not attributes_raw:
        raise CatalogLoadError(
            f"plugin '{name}': attributes must be a non-empty list",
            pack_id=pack_id,
            field="attributes",
        )
    provided_raw = data.get("provided_by", [])
    if not isinstance(provided_raw, list):
        raise CatalogLoadError(
            f"plugin '{name}': provided_by must be a list",
            pack_id=pack_id,
            field="provided_by",
        )

    return PluginSpec(
        name=name,
        description=str(data.get("description", "")).strip(),
        attributes=tuple(str(a) for a in attributes_raw),
        provided_by=tuple(str(t) for t in provided_raw),
        source=plugin_dir,
    )


def _subdirs_with(base: Path, marker: str) -> list[Path]:
    if not base.is_dir():
        return []
    return [d for d in sorted(base.iterdir()) if d.is_dir() and (d / marker).exists()]


def load_pack(pack_dir: Path) -> TemplatePack:
    """Load a TemplatePack from a pack directory.

    Raises CatalogLoadError if any part of the pack is malformed.
    """
    data = _load_yaml_mapping(pack_dir / PACK_YAML, pack_dir.name)
    pack_id = _require_str(data, "name", pack_dir.name)
    if not _ID_RE.match(pack_id):
        raise CatalogLoadError(f"invalid pack name '{pack_id}'", pack_id=pack_id)

    plugins: list[PluginSpec] = []
    for plugin_dir in _subdirs_with(pack_dir / "plugins", PLUGIN_YAML):
        plugin = load_plugin_from_dir(plugin_dir, pack_id)
        if any(p.name == plugin.name for p in plugins):
            raise CatalogLoadError(
                f"duplicate plugin name '{plugin.name}'", pack_id=pack_id
            )
        plugins.append(plugin)
    plugin_names = {p.name for p in plugins}

    templates: list[Template] = []
    for template_dir in _subdirs_with(pack_dir / "templates", TEMPLATE_YAML):
        template = load_template_from_dir(template_dir, pack_id)
        if any(t.id == template.id for t in templates):
            raise CatalogLoadError(
                f"duplicate template name '{template.id}'", pack_id=pack_id
            )
        for plugin_name in template.plugins:
            if plugin_name not in plugin_names:
                raise CatalogLoadError(
                    f"accepts undeclared plugin '{plugin_name}'",
                    pack_id=pack_id,
                    template_id=template.id,
                )
        templates.append(template)

    logger.debug("Loaded pack %s with %d template(s)", pack_id, len(templates))
    return TemplatePack(
        id=pack_id,
        description=str(data.get("description", "")).strip(),
        templates=tuple(templates),
        plugins=tuple(plugins),
        source=pack_dir,
    )


def load_packs(paths: Iterable[Path]) -> dict[str, TemplatePack]:
    """Load all packs under the given roots (later roots win for same id)."""
    packs: dict[str, TemplatePack] = {}
    for base_path in paths:
        for pack_dir in discover_pack_dirs(base_path).values():
            pack = load_pack(pack_dir)
            if pack.id in packs:
                logger.debug("Pack %s overridden by %s", pack.id, pack_dir)
            packs[pack.id] = pack
    return packs


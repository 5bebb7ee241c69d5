"""Template pack data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

InputKind = Literal["string", "password", "number", "boolean", "enum", "multi-select"]

INPUT_KINDS: tuple[str, ...] = (
    "string",
    "password",
    "number",
    "boolean",
    "enum",
    "multi-select",
)

DEFAULT_PLUGIN_ATTRIBUTES: tuple[str, ...] = (
    "host",
    "port",
    "database",
    "username",
    "password",
)


@dataclass(frozen=True)
class InputField:
    """A single entry of a template's input schema.

    ``minimum``/``maximum`` bound the value of a number input and the
    selection count of a multi-select input.
    """

    name: str
    kind: InputKind
    description: str = ""
    default: Any = None
    required: bool = True
    minimum: float | None = None
    maximum: float | None = None
    options: tuple[str, ...] = ()
    pattern: str | None = None
    integer: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def is_secret(self) -> bool:
        return self.kind == "password"

    @property
    def label(self) -> str:
        """Prompt label: description if present, otherwise the name."""
        return self.description or self.name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting unset constraints."""
        result: dict[str, Any] = {"name": self.name, "type": self.kind}
        if self.description:
            result["description"] = self.description
        if self.default is not None:
            result["default"] = (
                list(self.default) if isinstance(self.default, tuple) else self.default
            )
        if not self.required:
            result["required"] = False
        if self.minimum is not None:
            result["min"] = self.minimum
        if self.maximum is not None:
            result["max"] = self.maximum
        if self.integer:
            result["integer"] = True
        if self.options:
            result["options"] = list(self.options)
        if self.pattern is not None:
            result["pattern"] = self.pattern
        return result


@dataclass(frozen=True)
class FilePredicate:
    """Condition over resolved inputs deciding whether a file is emitted.

    Exactly one of ``equals``, ``not_equals`` or ``one_of`` may be set; with
    none of them the predicate tests the input for truthiness.
    """

    input: str
    equals: Any = None
    not_equals: Any = None
    one_of: tuple[Any, ...] | None = None

    def evaluate(self, inputs: dict[str, Any]) -> bool:
        value = inputs.get(self.input)
        if self.equals is not None:
            return bool(value == self.equals)
        if self.not_equals is not None:
            return bool(value != self.not_equals)
        if self.one_of is not None:
            return value in self.one_of
        return bool(value)

    def describe(self) -> str:
        if self.equals is not None:
            return f"{self.input} == {self.equals!r}"
        if self.not_equals is not None:
            return f"{self.input} != {self.not_equals!r}"
        if self.one_of is not None:
            return f"{self.input} in {list(self.one_of)!r}"
        return self.input


@dataclass(frozen=True)
class FileTemplate:
    """A file body to render, relative to the template's src/ directory."""

    source: str  # e.g. "manifests/deployment.yaml.j2"
    output: str  # e.g. "manifests/deployment.yaml"
    body: str
    when: FilePredicate | None = None


@dataclass(frozen=True)
class PluginSpec:
    """A cross-project dependency type declared by a pack."""

    name: str  # e.g. "postgres-access"
    description: str = ""
    attributes: tuple[str, ...] = DEFAULT_PLUGIN_ATTRIBUTES
    provided_by: tuple[str, ...] = ()  # template ids; empty accepts any
    source: Path | None = None


@dataclass(frozen=True)
class Template:
    """A parameterized unit producing one category of infrastructure project."""

    id: str
    pack_id: str
    description: str = ""
    category: str = ""
    inputs: tuple[InputField, ...] = ()
    files: tuple[FileTemplate, ...] = ()
    plugins: tuple[str, ...] = ()
    source: Path | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.pack_id}/{self.id}"

    @property
    def input_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.inputs)

    def get_input(self, name: str) -> InputField | None:
        for input_field in self.inputs:
            if input_field.name == name:
                return input_field
        return None


@dataclass(frozen=True)
class TemplatePack:
    """A named, ordered collection of templates. Immutable once loaded."""

    id: str
    description: str = ""
    templates: tuple[Template, ...] = ()
    plugins: tuple[PluginSpec, ...] = field(default_factory=tuple)
    source: Path | None = None

    def get_template(self, template_id: str) -> Template | None:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None

    def get_plugin(self, name: str) -> PluginSpec | None:
        for plugin in self.plugins:
            if plugin.name == name:
                return plugin
        return None

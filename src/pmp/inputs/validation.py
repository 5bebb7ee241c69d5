"""Input validation and coercion against a template's input schema."""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from pmp.errors import ValidationError
from pmp.packs.base import InputField

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0", "off"})


class ResolvedInputs(Mapping[str, Any]):
    """Immutable mapping of input name to validated, concrete value.

    Only produced by :func:`collect_inputs`, so every value satisfies its
    field's constraint.
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ResolvedInputs({self._values!r})"

    def to_dict(self) -> dict[str, Any]:
        """Plain dict with tuples turned into lists, for YAML serialization."""
        return {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in self._values.items()
        }


def is_unset(value: Any) -> bool:
    """Check whether a raw value counts as "not provided"."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def _coerce_number(input_field: InputField, value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValidationError(input_field.name, "not a number", value)
    if isinstance(value, (int, float)):
        number: int | float = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise ValidationError(input_field.name, "not a number", value) from None
    else:
        raise ValidationError(input_field.name, "not a number", value)

    if isinstance(number, float) and not math.isfinite(number):
        raise ValidationError(input_field.name, "not a number", value)
    if input_field.integer and isinstance(number, float):
        if not number.is_integer():
            raise ValidationError(input_field.name, "not an integer", value)
        number = int(number)
    return number


def _coerce_boolean(input_field: InputField, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValidationError(input_field.name, "not a boolean", value)


def _coerce_scalar_string(input_field: InputField, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(input_field.name, "not a string", value)
    return value if isinstance(value, str) else str(value)


def _coerce_multi_select(input_field: InputField, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        items: Sequence[Any] = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ValidationError(input_field.name, "not a list of values", value)

    selected: list[str] = []
    for item in items:
        text = _coerce_scalar_string(input_field, item)
        if text and text not in selected:
            selected.append(text)
    return tuple(selected)


def coerce_value(input_field: InputField, value: Any) -> Any:
    """Coerce a raw value to the field's kind, without checking constraints."""
    if input_field.kind == "number":
        return _coerce_number(input_field, value)
    if input_field.kind == "boolean":
        return _coerce_boolean(input_field, value)
    if input_field.kind == "multi-select":
        return _coerce_multi_select(input_field, value)
    return _coerce_scalar_string(input_field, value)


def check_constraint(input_field: InputField, value: Any) -> None:
    """Check an already-coerced value against range, option and pattern rules."""
    if input_field.kind == "number":
        if input_field.minimum is not None and value < input_field.minimum:
            raise ValidationError(input_field.name, "out of range", value)
        if input_field.maximum is not None and value > input_field.maximum:
            raise ValidationError(input_field.name, "out of range", value)
    elif input_field.kind == "enum":
        if value not in input_field.options:
            raise ValidationError(input_field.name, "not an allowed value", value)
    elif input_field.kind == "multi-select":
        # Each selected element is checked on its own
        for item in value:
            if item not in input_field.options:
                raise ValidationError(input_field.name, "not an allowed value", item)
        if input_field.minimum is not None and len(value) < input_field.minimum:
            raise ValidationError(input_field.name, "too few selections", value)
        if input_field.maximum is not None and len(value) > input_field.maximum:
            raise ValidationError(input_field.name, "too many selections", value)
    elif input_field.kind in ("string", "password") and input_field.pattern is not None:
        if re.fullmatch(input_field.pattern, value) is None:
            raise ValidationError(input_field.name, "does not match pattern", value)


def _coerce_or_default(input_field: InputField, value: Any) -> Any:
    """Coerce a raw value, falling back to the field default when unset.

    A multi-select answer that selects nothing (e.g. ``","``) counts as unset.
    """
    coerced = None if is_unset(value) else coerce_value(input_field, value)
    if coerced is None or (input_field.kind == "multi-select" and not coerced):
        if input_field.has_default:
            return coerce_value(input_field, input_field.default)
        if input_field.required:
            raise ValidationError(input_field.name, "required")
        return None
    return coerced


def validate_value(input_field: InputField, value: Any) -> Any:
    """Validate a single raw value for one field and return the coerced value.

    Used by interactive prompts to re-ask on bad answers. Unset values fall
    back to the field default, or fail with reason "required".
    """
    coerced = _coerce_or_default(input_field, value)
    if coerced is not None:
        check_constraint(input_field, coerced)
    return coerced


def collect_inputs(
    fields: Sequence[InputField], raw: Mapping[str, Any]
) -> ResolvedInputs:
    """Resolve raw values against a schema.

    Validation order:
    1. Required fields, in schema order (fails on the first missing one)
    2. Unknown keys not declared by the schema
    3. Type coercion for every field
    4. Range / option / pattern membership for every field

    Defaults apply only to fields left unset. Optional fields with no
    default and no value resolve to None.
    """
    for input_field in fields:
        if (
            input_field.required
            and not input_field.has_default
            and is_unset(raw.get(input_field.name))
        ):
            raise ValidationError(input_field.name, "required")

    known = {input_field.name for input_field in fields}
    for key in raw:
        if key not in known:
            raise ValidationError(key, "unknown input", raw[key])

    coerced = {
        input_field.name: _coerce_or_default(input_field, raw.get(input_field.name))
        for input_field in fields
    }

    for input_field in fields:
        value = coerced[input_field.name]
        if value is not None:
            check_constraint(input_field, value)

    return ResolvedInputs(coerced)

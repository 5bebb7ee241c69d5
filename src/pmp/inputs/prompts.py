"""Interactive prompts for the create workflow."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

import click

from pmp.console import console
from pmp.errors import ValidationError
from pmp.inputs.validation import validate_value
from pmp.packs.base import InputField

T = TypeVar("T")


def select(question: str, options: Sequence[T], labels: Sequence[str]) -> T:
    """Numbered selection prompt. A single option is chosen without asking."""
    if not options:
        raise click.UsageError(f"Nothing to choose for: {question}")
    if len(options) == 1:
        console.print(f"[bold]{question}[/bold] [cyan]{labels[0]}[/cyan]")
        return options[0]

    console.print(f"\n[bold]{question}[/bold]")
    for i, label in enumerate(labels, 1):
        console.print(f"  {i}. {label}")

    choice: int = click.prompt(
        "Select", type=click.IntRange(1, len(options)), default=1
    )
    return options[choice - 1]


def _default_text(input_field: InputField) -> str | None:
    default = input_field.default
    if default is None:
        return None
    if isinstance(default, bool):
        return "yes" if default else "no"
    if isinstance(default, (list, tuple)):
        return ",".join(str(d) for d in default)
    return str(default)


def _prompt_text(input_field: InputField) -> str:
    text = input_field.label
    if input_field.kind in ("enum", "multi-select"):
        text += f" [{'/'.join(input_field.options)}]"
    elif input_field.kind == "number" and (
        input_field.minimum is not None or input_field.maximum is not None
    ):
        low = "" if input_field.minimum is None else f"{input_field.minimum:g}"
        high = "" if input_field.maximum is None else f"{input_field.maximum:g}"
        text += f" ({low}..{high})"
    if not input_field.required and not input_field.has_default:
        text += " (optional)"
    return text


def prompt_for_input(input_field: InputField) -> Any:
    """Ask for one field until the answer validates.

    Password answers are read without echo and their defaults are never shown.
    """
    while True:
        if input_field.is_secret:
            answer = click.prompt(
                _prompt_text(input_field),
                default="",
                show_default=False,
                hide_input=True,
            )
        else:
            answer = click.prompt(
                _prompt_text(input_field),
                default=_default_text(input_field) or "",
                show_default=input_field.has_default,
            )
        try:
            validate_value(input_field, answer)
        except ValidationError as e:
            console.print(f"[red]Invalid value: {e.reason}[/red]")
            continue
        return answer


def prompt_for_inputs(
    fields: Sequence[InputField], provided: Mapping[str, Any]
) -> dict[str, Any]:
    """Prompt for every field not already provided.

    Returns the combined raw values; the caller runs the full collector on
    the result so validation order stays the same for flags and prompts.
    """
    raw = dict(provided)
    for input_field in fields:
        if input_field.name in raw:
            continue
        raw[input_field.name] = prompt_for_input(input_field)
    return raw

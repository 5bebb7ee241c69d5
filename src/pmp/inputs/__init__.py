"""Input collection and validation."""

from pmp.inputs.prompts import prompt_for_inputs, select
from pmp.inputs.sources import load_values_file, parse_assignments
from pmp.inputs.validation import ResolvedInputs, collect_inputs, validate_value

__all__ = [
    "ResolvedInputs",
    "collect_inputs",
    "load_values_file",
    "parse_assignments",
    "prompt_for_inputs",
    "select",
    "validate_value",
]

"""Tests for input validation and coercion."""

import pytest

from pmp.errors import ValidationError
from pmp.inputs.validation import (
    ResolvedInputs,
    collect_inputs,
    is_unset,
    validate_value,
)
from pmp.packs.base import InputField, Template

CPU = InputField(
    name="cpu_millicores", kind="number", default=500, minimum=100, maximum=32000
)
PORT = InputField(name="port", kind="number")
FLAG = InputField(name="flag", kind="boolean", default=False)
SERVICE = InputField(
    name="service_type",
    kind="enum",
    options=("ClusterIP", "NodePort", "LoadBalancer"),
)
METRICS = InputField(
    name="metrics", kind="multi-select", options=("cpu", "memory"), default=("cpu",)
)
PATH = InputField(name="path", kind="string", pattern="^/.*")
REPLICAS = InputField(
    name="replicas", kind="number", minimum=0, maximum=100, integer=True
)
SECRET = InputField(name="token", kind="password", pattern=".{8,}")


class TestValidateValue:
    """Tests for single-field validation."""

    @pytest.mark.parametrize("value", [100, 32000, "100", "32000", 500])
    def test_number_inside_range_accepted(self, value: object) -> None:
        """Test that range boundaries are inclusive."""
        assert validate_value(CPU, value) == int(value)  # type: ignore[call-overload]

    @pytest.mark.parametrize("value", [99, 32001, 33000, "99"])
    def test_number_outside_range_rejected(self, value: object) -> None:
        """Test that values outside the range fail with 'out of range'."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(CPU, value)
        assert exc_info.value.field == "cpu_millicores"
        assert exc_info.value.reason == "out of range"

    def test_number_coercion(self) -> None:
        """Test that numeric strings coerce to int or float."""
        assert validate_value(PORT, "500") == 500
        assert isinstance(validate_value(PORT, "500"), int)
        assert validate_value(PORT, "1.5") == 1.5

    @pytest.mark.parametrize("value", ["abc", True, "nan", [1]])
    def test_not_a_number(self, value: object) -> None:
        """Test that non-numbers (including booleans) are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(PORT, value)
        assert exc_info.value.reason == "not a number"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("yes", True), ("true", True), ("1", True), ("no", False), ("off", False)],
    )
    def test_boolean_coercion(self, value: str, expected: bool) -> None:
        """Test that common boolean spellings are accepted."""
        assert validate_value(FLAG, value) is expected

    def test_boolean_rejects_other_strings(self) -> None:
        """Test that unrecognized strings are not booleans."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(FLAG, "maybe")
        assert exc_info.value.reason == "not a boolean"

    def test_enum_exact_match(self) -> None:
        """Test that enum values must match an option exactly."""
        assert validate_value(SERVICE, "ClusterIP") == "ClusterIP"
        with pytest.raises(ValidationError) as exc_info:
            validate_value(SERVICE, "clusterip")
        assert exc_info.value.reason == "not an allowed value"

    def test_multi_select_from_string(self) -> None:
        """Test that comma separated strings become a tuple."""
        assert validate_value(METRICS, "cpu, memory") == ("cpu", "memory")

    def test_multi_select_drops_duplicates(self) -> None:
        """Test that duplicates are dropped and order is kept."""
        assert validate_value(METRICS, ["memory", "cpu", "memory"]) == (
            "memory",
            "cpu",
        )

    def test_multi_select_checks_each_element(self) -> None:
        """Test that one bad element fails the whole selection."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(METRICS, ["cpu", "disk"])
        assert exc_info.value.reason == "not an allowed value"
        assert exc_info.value.value == "disk"

    def test_pattern(self) -> None:
        """Test that string patterns must match the whole value."""
        assert validate_value(PATH, "/health") == "/health"
        with pytest.raises(ValidationError) as exc_info:
            validate_value(PATH, "health")
        assert exc_info.value.reason == "does not match pattern"

    @pytest.mark.parametrize("value", ["2.5", 2.5, "1e-1"])
    def test_integer_rejects_fractions(self, value: object) -> None:
        """Test that integer inputs reject non-whole numbers."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(REPLICAS, value)
        assert exc_info.value.field == "replicas"
        assert exc_info.value.reason == "not an integer"

    @pytest.mark.parametrize("value", ["3", 3, 3.0, "3.0"])
    def test_integer_whole_values(self, value: object) -> None:
        """Test that whole floats are accepted and stored as int."""
        result = validate_value(REPLICAS, value)
        assert result == 3
        assert isinstance(result, int)

    def test_empty_selection_uses_default(self) -> None:
        """Test that a selection of nothing counts as unset."""
        assert validate_value(METRICS, ",") == ("cpu",)
        assert validate_value(METRICS, [""]) == ("cpu",)

    def test_empty_selection_required(self) -> None:
        """Test that a required multi-select cannot select nothing."""
        required = InputField(name="zones", kind="multi-select", options=("a", "b"))
        with pytest.raises(ValidationError) as exc_info:
            validate_value(required, " , ")
        assert exc_info.value.reason == "required"

    def test_selection_counts(self) -> None:
        """Test that min/max bound the number of selected options."""
        zones = InputField(
            name="zones",
            kind="multi-select",
            options=("a", "b", "c"),
            minimum=2,
            maximum=2,
        )
        assert validate_value(zones, "a,b") == ("a", "b")
        with pytest.raises(ValidationError) as exc_info:
            validate_value(zones, "a")
        assert exc_info.value.reason == "too few selections"
        with pytest.raises(ValidationError) as exc_info:
            validate_value(zones, "a,b,c")
        assert exc_info.value.reason == "too many selections"

    def test_password_behaves_as_string(self) -> None:
        """Test that password inputs coerce like strings and honor patterns."""
        assert validate_value(SECRET, "s3cr3t!!") == "s3cr3t!!"
        with pytest.raises(ValidationError) as exc_info:
            validate_value(SECRET, "short")
        assert exc_info.value.reason == "does not match pattern"
        assert "short" not in str(exc_info.value)

    def test_unset_uses_default(self) -> None:
        """Test that blank answers fall back to the default."""
        assert validate_value(CPU, "") == 500
        assert validate_value(METRICS, []) == ("cpu",)

    def test_unset_required_fails(self) -> None:
        """Test that a required field without default cannot be blank."""
        with pytest.raises(ValidationError) as exc_info:
            validate_value(PORT, "  ")
        assert exc_info.value.reason == "required"

    def test_unset_optional_is_none(self) -> None:
        """Test that optional fields may stay unset."""
        optional = InputField(name="host", kind="string", required=False)
        assert validate_value(optional, "") is None


class TestCollectInputs:
    """Tests for collecting a full set of inputs."""

    def test_applies_defaults_only_to_unset_fields(self) -> None:
        """Test that given values win over defaults."""
        resolved = collect_inputs([CPU, FLAG, METRICS], {"cpu_millicores": "800"})

        assert resolved["cpu_millicores"] == 800
        assert resolved["flag"] is False
        assert resolved["metrics"] == ("cpu",)

    def test_optional_without_default_resolves_to_none(self) -> None:
        """Test that unset optional fields are present with None."""
        optional = InputField(name="host", kind="string", required=False)
        resolved = collect_inputs([optional], {})
        assert "host" in resolved
        assert resolved["host"] is None

    def test_first_missing_required_field_in_schema_order(self) -> None:
        """Test that the first missing required field is reported."""
        fields = [
            InputField(name="a", kind="string"),
            InputField(name="b", kind="string"),
        ]
        with pytest.raises(ValidationError) as exc_info:
            collect_inputs(fields, {"b": "x"})
        assert exc_info.value.field == "a"
        assert exc_info.value.reason == "required"

        with pytest.raises(ValidationError) as exc_info:
            collect_inputs(fields, {})
        assert exc_info.value.field == "a"

    def test_unknown_key_rejected(self) -> None:
        """Test that undeclared keys are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            collect_inputs([PORT], {"port": 80, "extra": 1})
        assert exc_info.value.field == "extra"
        assert exc_info.value.reason == "unknown input"

    def test_coercion_runs_before_constraints(self) -> None:
        """Test that type errors are found before range errors."""
        with pytest.raises(ValidationError) as exc_info:
            collect_inputs([CPU, PORT], {"cpu_millicores": "50000", "port": "abc"})
        assert exc_info.value.field == "port"
        assert exc_info.value.reason == "not a number"

    def test_result_is_immutable(self) -> None:
        """Test that ResolvedInputs cannot be modified."""
        resolved = collect_inputs([PORT], {"port": 80})
        assert isinstance(resolved, ResolvedInputs)
        with pytest.raises(TypeError):
            resolved["port"] = 81  # type: ignore[index]

    def test_to_dict_turns_tuples_into_lists(self) -> None:
        """Test that to_dict output is YAML friendly."""
        resolved = collect_inputs([METRICS], {"metrics": "cpu,memory"})
        assert resolved.to_dict() == {"metrics": ["cpu", "memory"]}

    def test_http_api_cpu_out_of_range(self, http_api: Template) -> None:
        """Test the bundled http-api template's CPU bound."""
        raw = {"docker_image": "myregistry.io/my-api", "cpu_millicores": 33000}
        with pytest.raises(ValidationError) as exc_info:
            collect_inputs(http_api.inputs, raw)
        assert exc_info.value.field == "cpu_millicores"
        assert exc_info.value.reason == "out of range"
        assert str(exc_info.value) == "cpu_millicores: out of range"

    def test_http_api_defaults(self, http_api: Template) -> None:
        """Test that the http-api template only requires the image."""
        resolved = collect_inputs(http_api.inputs, {"docker_image": "nginx"})
        assert resolved["version"] == "latest"
        assert resolved["create_ingress"] is False
        assert resolved["autoscaling_metrics"] == ("cpu",)
        assert resolved["ingress_host"] is None

    def test_http_api_fractional_replicas(self, http_api: Template) -> None:
        """Test that replica counts on the bundled template must be whole."""
        raw = {"docker_image": "myregistry.io/my-api", "min_replicas": "2.5"}
        with pytest.raises(ValidationError) as exc_info:
            collect_inputs(http_api.inputs, raw)
        assert exc_info.value.field == "min_replicas"
        assert exc_info.value.reason == "not an integer"

    def test_http_api_empty_metrics_use_default(self, http_api: Template) -> None:
        """Test that selecting no autoscaling metric keeps the default."""
        raw = {"docker_image": "myregistry.io/my-api", "autoscaling_metrics": ","}
        resolved = collect_inputs(http_api.inputs, raw)
        assert resolved["autoscaling_metrics"] == ("cpu",)

    def test_empty_selection_optional_is_none(self) -> None:
        """Test that an optional multi-select selecting nothing resolves to None."""
        optional = InputField(
            name="keys", kind="multi-select", options=("A", "B"), required=False
        )
        assert collect_inputs([optional], {"keys": ","})["keys"] is None


def test_is_unset() -> None:
    """Test which raw values count as not provided."""
    assert is_unset(None)
    assert is_unset("")
    assert is_unset("   ")
    assert is_unset([])
    assert not is_unset(0)
    assert not is_unset(False)
    assert not is_unset("x")

"""Tests for engine detection."""

from unittest.mock import patch

from pmp.engines import (
    ENGINES,
    OPENTOFU,
    TERRAFORM,
    Engine,
    get_available_engines,
    get_engine_by_name,
)


def test_engine_dataclass() -> None:
    """Test Engine dataclass creation and defaults."""
    engine = Engine(
        name="Test Engine",
        cli_command="test-cmd",
        install_info="test install info",
    )
    assert engine.name == "Test Engine"
    assert engine.cli_command == "test-cmd"
    assert engine.common_file == "_common.tf"
    assert engine.state_dir == ".terraform"


def test_engine_is_installed_false() -> None:
    """Test is_installed returns False when command doesn't exist."""
    engine = Engine(
        name="Test",
        cli_command="nonexistent-command-xyz-12345",
        install_info="test",
    )
    assert engine.is_installed() is False


def test_engines_registry() -> None:
    """Test that both supported engines are registered, OpenTofu first."""
    assert ENGINES == (OPENTOFU, TERRAFORM)
    assert [e.cli_command for e in ENGINES] == ["tofu", "terraform"]
    for engine in ENGINES:
        assert engine.install_info, "Engine must have install info"


def test_get_available_engines() -> None:
    """Test get_available_engines filters on PATH lookups."""

    def fake_which(cmd: str) -> str | None:
        return "/usr/bin/terraform" if cmd == "terraform" else None

    with patch("pmp.engines.base.shutil.which", side_effect=fake_which):
        assert get_available_engines() == [TERRAFORM]


def test_get_engine_by_name() -> None:
    """Test lookup by display name (case-insensitive) or CLI command."""
    assert get_engine_by_name("opentofu") is OPENTOFU
    assert get_engine_by_name("OpenTofu") is OPENTOFU
    assert get_engine_by_name("tofu") is OPENTOFU
    assert get_engine_by_name("Terraform") is TERRAFORM
    assert get_engine_by_name("pulumi") is None


def test_render_common_file() -> None:
    """Test that the support file applies every manifest of the project."""
    content = OPENTOFU.render_common_file("my-api", "dev")

    assert 'pmp_project     = "my-api"' in content
    assert 'pmp_environment = "dev"' in content
    assert 'resource "kubernetes_manifest" "pmp"' in content
    assert 'yamldecode(file("${path.module}/${each.value}"))' in content
    assert "{{" not in content

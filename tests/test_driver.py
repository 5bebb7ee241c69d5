"""Tests for the apply driver."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from filelock import FileLock, Timeout

from pmp.driver import ApplyDriver
from pmp.engines import OPENTOFU, TERRAFORM
from pmp.errors import (
    ApplyEngineError,
    EngineNotInstalledError,
    PmpError,
    ProjectLockedError,
)
from pmp.packs.base import FileTemplate, Template
from pmp.projects import LOCK_FILE, OUTPUTS_FILE, load_outputs, materialize
from pmp.render.renderer import RenderedFile


@pytest.fixture
def handle(tmp_path: Path):
    """An empty materialized project environment."""
    template = Template(
        id="app",
        pack_id="test",
        category="apps",
        files=(FileTemplate(source="main.tf.j2", output="main.tf", body=""),),
    )
    return materialize(
        "demo",
        "dev",
        template,
        {},
        [RenderedFile(path="main.tf", content="# empty\n")],
        projects_root=tmp_path / "root",
    )


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for engine commands."""
    with patch("pmp.driver.subprocess") as mock:
        yield mock


@pytest.fixture
def installed():
    """Pretend every engine binary is on PATH."""
    with patch("pmp.engines.base.shutil.which", return_value="/usr/bin/tofu"):
        yield


@pytest.fixture
def driver(tmp_path: Path) -> ApplyDriver:
    return ApplyDriver(OPENTOFU, lock_timeout=0.1, logs_dir=tmp_path / "logs")


def _commands(mock_subprocess) -> list[list[str]]:
    return [c.args[0] for c in mock_subprocess.run.call_args_list]


class TestApply:
    """Tests for ApplyDriver.apply."""

    def test_init_then_apply(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that a fresh directory is initialized before apply."""
        mock_subprocess.run.return_value = MagicMock(
            returncode=0, stdout="Apply complete!", stderr=""
        )

        result = driver.apply(handle, auto_approve=True)

        assert _commands(mock_subprocess) == [
            ["tofu", "init", "-input=false"],
            ["tofu", "apply", "-input=false", "-auto-approve"],
        ]
        for call in mock_subprocess.run.call_args_list:
            assert call.kwargs["cwd"] == handle.path
            assert call.kwargs["capture_output"] is True
        assert result.success
        assert result.command == ("tofu", "apply", "-input=false", "-auto-approve")

    def test_initialized_directory_skips_init(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that an existing .terraform directory skips init."""
        (handle.path / ".terraform").mkdir()
        mock_subprocess.run.return_value = MagicMock(returncode=0, stdout="", stderr="")

        driver.apply(handle)

        assert _commands(mock_subprocess) == [["tofu", "apply", "-input=false"]]

    def test_uses_engine_command(
        self, tmp_path: Path, handle, mock_subprocess, installed
    ) -> None:
        """Test that the configured engine binary is invoked."""
        (handle.path / ".terraform").mkdir()
        mock_subprocess.run.return_value = MagicMock(returncode=0, stdout="", stderr="")

        ApplyDriver(TERRAFORM, logs_dir=tmp_path / "logs").plan(handle, ["-refresh=false"])

        assert _commands(mock_subprocess) == [
            ["terraform", "plan", "-input=false", "-refresh=false"]
        ]

    def test_failure_is_not_retried(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that a failing apply raises once with the engine's output."""
        (handle.path / ".terraform").mkdir()
        mock_subprocess.run.return_value = MagicMock(
            returncode=1, stdout="", stderr="Error: cluster unreachable"
        )

        with pytest.raises(ApplyEngineError) as exc_info:
            driver.apply(handle, auto_approve=True)

        assert mock_subprocess.run.call_count == 1
        result = exc_info.value.result
        assert result.exit_code == 1
        assert result.stderr == "Error: cluster unreachable"
        assert "exit code 1" in str(exc_info.value)

    def test_init_failure_stops_apply(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that apply never runs when init fails."""
        mock_subprocess.run.return_value = MagicMock(
            returncode=1, stdout="", stderr="provider not found"
        )

        with pytest.raises(ApplyEngineError) as exc_info:
            driver.apply(handle)

        assert _commands(mock_subprocess) == [["tofu", "init", "-input=false"]]
        assert exc_info.value.result.command[1] == "init"

    def test_engine_not_installed(
        self, driver: ApplyDriver, handle, mock_subprocess
    ) -> None:
        """Test that a missing binary is reported without running anything."""
        with patch("pmp.engines.base.shutil.which", return_value=None):
            with pytest.raises(EngineNotInstalledError) as exc_info:
                driver.apply(handle)

        assert "OpenTofu" in str(exc_info.value)
        mock_subprocess.run.assert_not_called()

    def test_binary_vanishes(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that FileNotFoundError from the OS maps to EngineNotInstalledError."""
        mock_subprocess.run.side_effect = FileNotFoundError("tofu")

        with pytest.raises(EngineNotInstalledError):
            driver.apply(handle)

    def test_writes_session_log(
        self, driver: ApplyDriver, handle, mock_subprocess, installed, tmp_path: Path
    ) -> None:
        """Test that each engine run is logged under the logs directory."""
        (handle.path / ".terraform").mkdir()
        mock_subprocess.run.return_value = MagicMock(
            returncode=0, stdout="Apply complete!", stderr="warning: deprecated"
        )

        result = driver.apply(handle)

        logs = list((tmp_path / "logs").glob("*_apply.log"))
        assert logs == [result.log_path]
        content = logs[0].read_text()
        assert content.startswith("$ tofu apply -input=false\n")
        assert "Apply complete!" in content
        assert "--- stderr ---\nwarning: deprecated" in content
        assert content.endswith("--- exit code 0 ---\n")

    def test_locked_project(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that a held lock fails fast with ProjectLockedError."""
        with patch("pmp.driver.FileLock") as mock_lock:
            mock_lock.return_value.acquire.side_effect = Timeout(
                str(handle.path / ".pmp.lock")
            )
            with pytest.raises(ProjectLockedError):
                driver.apply(handle)

        mock_lock.assert_called_once_with(
            str(handle.path / ".pmp.lock"), timeout=0.1
        )
        mock_subprocess.run.assert_not_called()

    def test_held_lock_file(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that another holder of the project lock file blocks apply."""
        held = FileLock(str(handle.path / LOCK_FILE))
        with held:
            with pytest.raises(ProjectLockedError) as exc_info:
                driver.apply(handle)
        assert exc_info.value.path == handle.path
        mock_subprocess.run.assert_not_called()

    def test_lock_released_after_apply(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that the lock file can be taken again once apply returns."""
        mock_subprocess.run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        driver.apply(handle)

        held = FileLock(str(handle.path / LOCK_FILE), timeout=0)
        with held:
            assert held.is_locked


class TestOutput:
    """Tests for ApplyDriver.output."""

    def test_output_recorded(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that output values are unwrapped and saved for dependents."""
        payload = {
            "host": {"sensitive": False, "type": "string", "value": "db.local"},
            "port": {"sensitive": False, "type": "number", "value": 5432},
            "password": {"sensitive": True, "type": "string", "value": "pw"},
        }
        mock_subprocess.run.return_value = MagicMock(
            returncode=0, stdout=json.dumps(payload), stderr=""
        )

        outputs = driver.output(handle)

        assert outputs == {"host": "db.local", "port": 5432, "password": "pw"}
        assert _commands(mock_subprocess) == [["tofu", "output", "-json"]]
        assert (handle.path / OUTPUTS_FILE).is_file()
        assert load_outputs(handle.path) == outputs

    def test_output_not_json(
        self, driver: ApplyDriver, handle, mock_subprocess, installed
    ) -> None:
        """Test that unparsable output is an error and nothing is recorded."""
        mock_subprocess.run.return_value = MagicMock(
            returncode=0, stdout="not json", stderr=""
        )

        with pytest.raises(PmpError):
            driver.output(handle)

        assert load_outputs(handle.path) is None

"""Shared fixtures for pmp tests."""

from typing import Any

import pytest

from pmp.inputs.validation import ResolvedInputs, collect_inputs
from pmp.packs.base import Template
from pmp.packs.loader import get_package_packs_path
from pmp.packs.registry import TemplateRegistry

HTTP_API_SCENARIO: dict[str, Any] = {
    "docker_image": "myregistry.io/my-api",
    "version": "v1.0.0",
    "min_replicas": 2,
    "max_replicas": 10,
    "cpu_millicores": 500,
    "memory_mb": 1024,
    "http_port": 8080,
    "healthcheck_uri": "/health",
    "service_type": "ClusterIP",
}


@pytest.fixture(scope="session")
def registry() -> TemplateRegistry:
    """Registry over the bundled packs only."""
    return TemplateRegistry.from_paths([get_package_packs_path()])


@pytest.fixture
def http_api(registry: TemplateRegistry) -> Template:
    return registry.get_template("kubernetes-workloads", "http-api")


@pytest.fixture
def scenario_inputs(http_api: Template) -> ResolvedInputs:
    return collect_inputs(http_api.inputs, HTTP_API_SCENARIO)


@pytest.fixture
def scenario_raw() -> dict[str, Any]:
    """Raw http-api inputs for the reference scenario."""
    return dict(HTTP_API_SCENARIO)

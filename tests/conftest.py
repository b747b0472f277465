"""
Test configuration and fixtures.

Shared builders for registries, options and CSV files used across the unit
tests.
"""

import pytest
from pathlib import Path
from typing import Callable, Dict, List

from dynparams.bootstrap.config import ExecutionOptions, reset_config
from dynparams.parameters.registry import ParameterRegistry
from dynparams.parameters.spec import ParameterSpec


REGIONS: Dict[str, List[str]] = {
    "Development": ["dev-east", "dev-west"],
    "Production": ["prod-east", "prod-west", "prod-eu"],
}


def regions_for(environment=None):
    """Computed data source used by the Environment/Region scenario."""
    return list(REGIONS.get(environment, []))


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch):
    """Isolate tests from DYNPARAMS_* variables and the cached config."""
    for name in [
        "DYNPARAMS_PROFILE",
        "DYNPARAMS_TIMEOUT_SECONDS",
        "DYNPARAMS_MAX_RESULTS",
        "DYNPARAMS_PROGRESS_THRESHOLD_MS",
        "DYNPARAMS_SHOW_PROGRESS",
        "DYNPARAMS_PERF_LOGGING",
        "DYNPARAMS_ENVIRONMENT",
        "DYNPARAMS_DEBUG",
        "DYNPARAMS_LOG_LEVEL",
        "DYNPARAMS_LOG_FILE",
        "DYNPARAMS_JSON_LOGS",
    ]:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fast_options() -> ExecutionOptions:
    """Short timeout so deadline tests finish quickly."""
    return ExecutionOptions(timeout_seconds=2, max_results=1000, progress_threshold_ms=500)


@pytest.fixture
def environment_registry() -> ParameterRegistry:
    """Static Environment feeding a computed Region."""
    return ParameterRegistry([
        ParameterSpec.static("Environment", default="Development"),
        ParameterSpec.computed("Region", regions_for, depends_on=["Environment"]),
    ])


@pytest.fixture
def write_csv(tmp_path) -> Callable[..., Path]:
    """Write a CSV file under tmp_path and return its path."""

    def _write(name: str, content: str, encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding=encoding)
        return path

    return _write


@pytest.fixture
def servers_csv(write_csv) -> Path:
    return write_csv(
        "servers.csv",
        "Environment,Server,Owner\n"
        "Development,dev-01,alice\n"
        "Development,dev-02,bob\n"
        "Production,prod-01,carol\n"
        "Production,,dave\n",
    )

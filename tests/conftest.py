"""
Pytest configuration and shared fixtures for the Trimmer test suite.

This module provides common fixtures, test utilities, and configuration
for all test modules in the Trimmer project.
"""

import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "e2e: mark test as an end-to-end test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def runner_config(temp_dir):
    """Runner configuration with short termination timeouts and a private temp root."""
    from trimmer.models import RunnerConfig

    return RunnerConfig(
        cancellation_exit_codes=frozenset({137, 143}),
        project_dir=temp_dir,
        temp_root=temp_dir / "workspaces",
        termination_graceful_timeout=1.0,
        termination_interrupt_timeout=0.5,
        termination_force_timeout=0.5,
        status_check_interval=0.01,
    )


@pytest.fixture
def registry():
    """A fresh progress registry."""
    from trimmer.tasks import ProgressRegistry

    return ProgressRegistry()


@pytest.fixture
def credentials():
    """An empty in-memory credential store."""
    from trimmer.system import MemoryCredentialStore

    return MemoryCredentialStore()


@pytest.fixture
def distro_kwargs(runner_config, registry, credentials):
    """Common keyword arguments for creating distros in tests."""
    return {"config": runner_config, "registry": registry, "credentials": credentials}


@pytest.fixture
def make_build(temp_dir):
    """Factory creating a build directory with a few files."""
    from trimmer.models import BuildPath, BuildTarget

    def _make_build(target="StandaloneLinux64", name="Game", files=("game.x86_64", "data.bin")) -> BuildPath:
        build_dir = temp_dir / "Builds" / name
        build_dir.mkdir(parents=True, exist_ok=True)
        for file_name in files:
            (build_dir / file_name).write_text(f"contents of {file_name}")
        return BuildPath(BuildTarget.parse(target), build_dir)

    return _make_build


@pytest.fixture
def fake_tool(temp_dir):
    """
    Factory writing an executable shell script that stands in for an
    external tool. The script's arguments are appended to `<name>.log`.
    """

    def _fake_tool(name: str, body: str = "exit 0") -> Path:
        tools_dir = temp_dir / "tools"
        tools_dir.mkdir(exist_ok=True)
        path = tools_dir / name
        log = tools_dir / f"{name}.log"
        path.write_text(f'#!/bin/sh\necho "$@" >> "{log}"\n{body}\n')
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _fake_tool


@pytest.fixture
def leftover_workspaces(runner_config):
    """Function listing the run workspaces left in the temp root."""

    def _leftover_workspaces() -> list:
        temp_root = Path(runner_config.temp_root)
        if not temp_root.exists():
            return []
        return list(temp_root.iterdir())

    return _leftover_workspaces


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample configuration data for testing."""
    return {
        "runner": {
            "log_level": "DEBUG",
            "project_dir": ".",
            "temp_root": "tmp",
            "cancellation_exit_codes": [137, 143],
            "termination_graceful_timeout": 1.5,
            "status_check_interval": 5.0,
        },
        "credentials": {"env_prefix": "TEST_"},
        "distros": {
            "nightly-zip": {
                "kind": "zip",
                "format": "zip",
                "compression": 7,
                "builds": [{"target": "StandaloneLinux64", "path": "Builds/Linux"}],
            },
            "mac-notarize": {
                "kind": "notarization",
                "sign_identity": "Developer ID Application: Example",
                "primary_bundle_id": "com.example.game",
                "login": {"user": "dev@example.com"},
            },
            "release": {
                "kind": "meta",
                "distros": ["nightly-zip"],
            },
        },
    }


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a temporary trimmer.toml."""
    import toml

    config_path = temp_dir / "trimmer.toml"
    with open(config_path, "w") as f:
        toml.dump(sample_config_data, f)
    return config_path


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    yield  # Run the test

    from trimmer.config import clear_config_cache, set_config_path

    clear_config_cache()
    # Always reset to the default config path
    set_config_path(Path("trimmer.toml"))

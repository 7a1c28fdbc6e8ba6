"""Pytest configuration and fixtures for NSX-T upgrade tests."""

import json
import pytest
from pathlib import Path

# Add src and tests to path for imports
import sys
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "src"))
sys.path.insert(0, str(_project_root))

from nsxt_upgrade.models import WaitParameters
from tests.helpers import FakeCancelEvent, FakeClock, FakeNsxFabric


# =============================================================================
# Fake Upgrade Service Fixtures
# =============================================================================

@pytest.fixture
def fabric() -> FakeNsxFabric:
    """
    Provides an empty in-memory upgrade service.

    Usage:
        def test_something(fabric):
            fabric.add_group("EDGE", "edge-1")
            fabric.upgrade_scripts["HOST"] = ["IN_PROGRESS", "PAUSED"]
    """
    return FakeNsxFabric()


@pytest.fixture
def clock() -> FakeClock:
    """Provides a clock that advances only when waited on."""
    return FakeClock()


@pytest.fixture
def cancel_event(clock) -> FakeCancelEvent:
    """Provides a cancel event whose waits advance the fake clock."""
    return FakeCancelEvent(clock)


@pytest.fixture
def wait() -> WaitParameters:
    """Status wait parameters small enough to count polls by hand."""
    return WaitParameters(timeout=60, interval=10, delay=0)


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def test_work_dir(tmp_path) -> Path:
    """
    Provides a fresh temporary work directory for each test.

    Creates the standard directory structure used by the application.
    """
    work_dir = tmp_path / "nsxt-upgrade"

    dirs = [
        "config",
        "runs",
        "logs/structured",
        "logs/text",
        "commands/incoming",
        "commands/processed",
    ]

    for d in dirs:
        (work_dir / d).mkdir(parents=True, exist_ok=True)

    return work_dir


@pytest.fixture
def test_config(test_work_dir) -> "Config":
    """
    Provides a test configuration pointing to temp directories.
    """
    from nsxt_upgrade.config import Config

    config_data = {
        "nsx": {
            "host": "nsx-test.example.com",
            "username": "admin",
            "password": "test-pass",
            "verify_ssl": False,
            "timeout": 30
        },
        "upgrade": {
            "timeout": 120,
            "interval": 5,
            "delay": 0
        },
        "logging": {
            "level": "DEBUG"
        }
    }

    config_file = test_work_dir / "config" / "config.json"
    with open(config_file, 'w') as f:
        json.dump(config_data, f, indent=2)

    return Config(config_file=str(config_file), work_dir=str(test_work_dir))


# =============================================================================
# Declaration Fixtures
# =============================================================================

@pytest.fixture
def sample_declaration() -> dict:
    """Provides a declaration touching both customizable components."""
    return {
        "upgrade_prepare_ready_id": "prep-001",
        "timeout": 60,
        "interval": 10,
        "delay": 0,
        "edge_group": [
            {"id": "edge-a"},
            {"id": "edge-b", "pause_after_each_upgrade_unit": False},
        ],
        "host_group": [
            {
                "id": "host-a",
                "upgrade_mode": "in_place",
                "extended_config": {"custom_key": "custom_value"},
            },
        ],
        "host_upgrade_setting": {
            "parallel": False,
            "stop_on_error": True,
            "post_upgrade_check": False,
        },
    }


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

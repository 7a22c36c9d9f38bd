"""
Pytest configuration and shared fixtures for gopipe tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

# Get the project root (parent of tests/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

# Add both project root and tests root to sys.path
for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

# =============================================================================
# Import fixtures using importlib (more robust for pytest loading)
# =============================================================================

import importlib

_common = importlib.import_module("fixtures.common")

make_spec = _common.make_spec
passing_results = _common.passing_results
ScriptedInvoker = _common.ScriptedInvoker


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def spec():
    """Provide a default PipelineSpec for tests."""
    return make_spec()


@pytest.fixture
def pipeline_yaml(tmp_path):
    """Write a valid pipeline input file and return its path."""
    path = tmp_path / "pipeline.yaml"
    path.write_text(
        "git_url: https://github.com/example/service.git\n"
        "test_flags: [\"-json\", \"-race\"]\n"
        "build_flags: [\"-v\"]\n"
        "generate_flags: []\n"
    )
    return path


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every gopipe/Temporal variable from the environment."""
    import os

    for name in list(os.environ):
        if name.startswith(("GOPIPE_", "TEMPORAL_")) or name == "WORKFLOW_INPUT":
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )

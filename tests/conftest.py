"""
mlcheck - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures
- Seeded random data fixtures
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import numpy as np
import pytest

# Set test environment
os.environ["MLCHECK_ENVIRONMENT"] = "dev"

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "mlcheck" / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Any:
    """Get test configuration."""
    from mlcheck.shared.config import get_config, reload_config

    # Ensure fresh config for tests
    reload_config("dev")
    return get_config("dev")


@pytest.fixture
def make_config(test_config: Any) -> Any:
    """Build a config with some validation/drift/engine fields replaced."""

    def _make(validation: dict | None = None, drift: dict | None = None, engine: dict | None = None):
        update = {}
        if validation:
            update["validation"] = test_config.validation.model_copy(update=validation)
        if drift:
            update["drift"] = test_config.drift.model_copy(update=drift)
        if engine:
            update["engine"] = test_config.engine.model_copy(update=engine)
        return test_config.model_copy(update=update)

    return _make


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator for reproducible test data."""
    return np.random.default_rng(42)


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Clean up environment variables after each test."""
    original_env = os.environ.copy()
    yield
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)

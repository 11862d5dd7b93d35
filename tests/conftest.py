"""Shared test fixtures."""

import pytest

from pkm_data.cli import configure_logging


@pytest.fixture(autouse=True)
def quiet_logging() -> None:
    """Keep structlog output off stdout so command output can be asserted exactly."""
    configure_logging("critical")

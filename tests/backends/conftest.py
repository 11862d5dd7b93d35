"""Fixtures for backend tests."""

import pytest

from tests.backends.fakes import FakeFirestore


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    """Create an empty fake Firestore database."""
    return FakeFirestore()

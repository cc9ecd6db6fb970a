"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.WARNING,  # Reduce noise during tests
        format="%(name)s - %(levelname)s - %(message)s",
    )

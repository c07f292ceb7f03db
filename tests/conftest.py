"""Pytest configuration for the stockmaxwin test suite."""

from __future__ import annotations

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--stockmaxwin-run-integration",
        action="store_true",
        default=False,
        help="Run stockmaxwin integration tests that call the live EastMoney API.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks stockmaxwin tests requiring network access",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--stockmaxwin-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --stockmaxwin-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)

"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import os

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom pytest options for integration test execution."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration (live GitHub API).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly enabled."""
    run_integration = config.getoption("--run-integration")
    env_enabled = os.getenv("RUN_INTEGRATION_TESTS") == "1"
    if run_integration or env_enabled:
        return

    skip_marker = pytest.mark.skip(
        reason=(
            "Integration tests are disabled by default. "
            "Use --run-integration or set RUN_INTEGRATION_TESTS=1."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> dict[str, list[float]]:
    """Replace rate-limit and settle sleeps with recorders."""
    sleeps: dict[str, list[float]] = {"rate_limit": [], "settle": []}
    monkeypatch.setattr(
        "gei_migration_helper.github_client._sleep_for_rate_limit",
        sleeps["rate_limit"].append,
    )
    monkeypatch.setattr(
        "gei_migration_helper.operations._sleep_for_settle",
        sleeps["settle"].append,
    )
    return sleeps


@pytest.fixture(autouse=True)
def _isolate_github_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep endpoint and delay overrides from the developer shell out of tests."""
    for name in ("GITHUB_API_URL", "GITHUB_GRAPHQL_URL", "GHAS_SETTLE_DELAY_SECONDS"):
        # setenv first so values later loaded from a .env file are undone too.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

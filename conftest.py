from __future__ import annotations

import os

import pytest


def _postgres_enabled() -> bool:
    flag = os.getenv("GROUPGATE_PYTEST_DB") or os.getenv("PYTEST_DB")
    if flag:
        return flag.strip().lower() in {"1", "true", "yes", "on"}
    return False


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "requires_db: marks tests that need GROUPGATE_TEST_DATABASE_URL to point at a server database "
        "(enable with GROUPGATE_PYTEST_DB=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items) -> None:  # type: ignore[no-untyped-def]
    if _postgres_enabled():
        return
    skip = pytest.mark.skip(reason="server database disabled (set GROUPGATE_PYTEST_DB=1)")
    for item in items:
        if "requires_db" in item.keywords:
            item.add_marker(skip)

"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _clear_orderharvest_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ORDERHARVEST_* variables before each test.

    ``load_extraction_config_from_env`` reads the process environment, so a
    developer's shell settings would otherwise leak into config tests.
    """
    for name in list(os.environ):
        if name.startswith("ORDERHARVEST_"):
            monkeypatch.delenv(name, raising=False)

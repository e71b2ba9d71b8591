"""Root conftest: isolate tests from ambient configuration and global logging state."""

import os

import pytest
import structlog


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # Settings read TRAINWATCH_* variables; a developer's shell must not leak into tests.
    for name in list(os.environ):
        if name.startswith("TRAINWATCH_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_structlog():
    # The CLI binds structlog to the stream CliRunner swaps in; drop it afterwards.
    yield
    structlog.reset_defaults()

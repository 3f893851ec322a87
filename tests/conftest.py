"""Pytest configuration and fixtures for compiler dispatch tests."""

import logging

import pytest

from compiler_dispatch import temp_cleanup


@pytest.fixture(autouse=True)
def fresh_cleanup_service(monkeypatch):
    """Give each test its own process-wide cleanup service."""
    monkeypatch.setattr(temp_cleanup, "_cleanup_service", None)


@pytest.fixture(autouse=True)
def restore_log_levels():
    """Undo level changes made by ``configure_logging`` in app tests."""
    names = ("compiler_dispatch", "uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore")
    levels = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)

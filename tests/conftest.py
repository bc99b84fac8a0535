"""Shared fixtures for orgview tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from orgview.logging_config import LOGGER_NAME
from orgview.vault import Vault, load_vault


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
VAULT_DIR = FIXTURES_DIR / "vault"


@pytest.fixture(autouse=True)
def isolated_orgview_logger() -> Iterator[logging.Logger]:
    """Start every test with a bare orgview logger and restore its state afterwards."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def vault_dir() -> Path:
    """Directory holding the sample org vault."""
    return VAULT_DIR


@pytest.fixture
def vault() -> Vault:
    """Sample vault with games and notes, paths relative to the vault directory."""
    return load_vault([str(VAULT_DIR)])

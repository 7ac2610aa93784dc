from __future__ import annotations

import pytest

from budgettracker.db import DatabaseManager
from budgettracker.services.agent.tools import ToolExecutor


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def executor():
    return ToolExecutor(timeout_seconds=5.0)

"""Shared pytest fixtures for the bridge test suite.

Test doubles (fake page, context and site adapter) live in helpers.py.
"""

import sys
from pathlib import Path

import pytest

# Add the tests directory to sys.path so test files can import helpers.py
sys.path.insert(0, str(Path(__file__).parent))

from helpers import BASE_URL, FakeAdapter, FakeContext  # noqa: E402

from venice_ai_bridge.config import BridgeConfig  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> BridgeConfig:
    return BridgeConfig(
        user_data_dir=tmp_path / "profile",
        base_url=BASE_URL,
        login_email="jane@example.com",
        login_password="secret",
    )


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()

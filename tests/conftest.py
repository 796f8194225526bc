"""Shared test fixtures."""

import pytest

from src.config import Settings


@pytest.fixture
def full_settings() -> Settings:
    """Settings with both credentials present."""
    return Settings(anthropic_api_key="sk-test", mem0_api_key="m0-test")


@pytest.fixture
def anthropic_only_settings() -> Settings:
    """Settings with memory disabled."""
    return Settings(anthropic_api_key="sk-test")

"""
Tests for configuration management.
"""

import pytest
from pydantic import ValidationError

from privwallet.config import Settings, get_settings


def test_default_settings() -> None:
    settings = Settings()
    assert settings.max_subset_size == 8
    assert settings.max_enumerated_subsets == 50_000
    assert settings.anon_score_target == 5
    assert settings.log_level == "INFO"


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("MAX_SUBSET_SIZE", "4")
    monkeypatch.setenv("ANON_SCORE_TARGET", "20")

    settings = get_settings()

    assert settings.max_subset_size == 4
    assert settings.anon_score_target == 20


def test_invalid_subset_size() -> None:
    with pytest.raises(ValidationError):
        Settings(max_subset_size=0)

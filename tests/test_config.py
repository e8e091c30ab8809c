"""Tests for settings loading."""

import pytest

from clinicsplit.config import (
    DEFAULT_PERCENT_A,
    DEFAULT_PERCENT_B,
    AllocationSettings,
    Settings,
    load_settings,
)


def test_defaults():
    settings = load_settings({})

    assert settings == Settings()
    assert settings.allocation.default_percent_a == DEFAULT_PERCENT_A
    assert settings.allocation.default_percent_b == DEFAULT_PERCENT_B
    assert settings.db_path is None
    assert not settings.allow_hard_delete


def test_environment_overrides():
    settings = load_settings(
        {
            "CLINICSPLIT_DB_PATH": "/tmp/clinic.db",
            "CLINICSPLIT_DEFAULT_PERCENT_A": " 60 ",
            "CLINICSPLIT_ALLOW_HARD_DELETE": "1",
        }
    )

    assert settings.db_path == "/tmp/clinic.db"
    assert settings.allocation == AllocationSettings(60.0, 40.0)
    assert settings.allow_hard_delete


def test_hard_delete_needs_exactly_one():
    assert not load_settings({"CLINICSPLIT_ALLOW_HARD_DELETE": "yes"}).allow_hard_delete


def test_default_percent_keeps_exact_pair():
    """Test that the built-in A share maps back to the built-in B share."""
    assert AllocationSettings.from_percent_a(DEFAULT_PERCENT_A) == AllocationSettings()


@pytest.mark.parametrize("raw", ["abc", "-1", "100.5", "nan"])
def test_invalid_default_percent(raw):
    with pytest.raises(ValueError):
        load_settings({"CLINICSPLIT_DEFAULT_PERCENT_A": raw})

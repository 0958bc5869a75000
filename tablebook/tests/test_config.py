import pytest
from pydantic import ValidationError

from tablebook.app.core.config import BookingPolicy, Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_slot_guard_ttl_covers_the_guarded_create():
    config = _settings(STORE_TIMEOUT_SECONDS=10, STORE_READ_RETRIES=2)

    # two reads with three attempts each, one insert
    assert config.guarded_section_seconds() == 72
    assert config.SLOT_GUARD_TTL_SECONDS == 72


def test_short_slot_guard_ttl_is_rejected():
    with pytest.raises(ValidationError):
        _settings(STORE_TIMEOUT_SECONDS=10, STORE_READ_RETRIES=2, SLOT_GUARD_TTL_SECONDS=15)

    assert _settings(STORE_TIMEOUT_SECONDS=2, STORE_READ_RETRIES=0, SLOT_GUARD_TTL_SECONDS=15).SLOT_GUARD_TTL_SECONDS == 15


def test_optional_columns_default_to_absent():
    config = _settings()

    assert config.RESERVATION_END_FIELD == ""
    assert config.RESERVATION_REQUEST_KEY_FIELD == ""


def test_policy_from_settings():
    config = _settings(MAX_CAPACITY=12, SLOT_DURATION_MINUTES=90)

    assert BookingPolicy.from_settings(config) == BookingPolicy(max_capacity=12, slot_duration_minutes=90)

    with pytest.raises(ValidationError):
        _settings(MAX_CAPACITY=0)

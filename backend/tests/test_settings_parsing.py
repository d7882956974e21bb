import uuid

import pytest
from pydantic import ValidationError

from deskwise.settings import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("TESTING", raising=False)

    config = Settings(_env_file=None)

    assert config.app_env == "prod"
    assert config.default_org_id == uuid.UUID("00000000-0000-0000-0000-000000000001")
    assert config.schedule_max_occurrences == 100
    assert config.schedule_slot_search_days == 7
    assert config.schedule_weekly_capacity_hours == 40
    assert config.schedule_serialize_bookings is True


def test_cors_origins_accepts_csv_and_json(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
    assert Settings(_env_file=None).cors_origins == ["https://a.example.com", "https://b.example.com"]

    monkeypatch.setenv("CORS_ORIGINS", '["https://c.example.com"]')
    assert Settings(_env_file=None).cors_origins == ["https://c.example.com"]

    monkeypatch.setenv("CORS_ORIGINS", "")
    assert Settings(_env_file=None).cors_origins == []


def test_engine_tuning_from_env(monkeypatch):
    monkeypatch.setenv("SCHEDULE_MAX_OCCURRENCES", "25")
    monkeypatch.setenv("SCHEDULE_WORK_START_HOUR", "8")
    monkeypatch.setenv("SCHEDULE_WORK_END_HOUR", "18")

    config = Settings(_env_file=None)

    assert config.schedule_max_occurrences == 25
    assert config.schedule_work_start_hour == 8
    assert config.schedule_work_end_hour == 18


def test_rejects_inverted_working_hours(monkeypatch):
    monkeypatch.setenv("SCHEDULE_WORK_START_HOUR", "17")
    monkeypatch.setenv("SCHEDULE_WORK_END_HOUR", "9")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_rejects_zero_cap(monkeypatch):
    monkeypatch.setenv("SCHEDULE_MAX_OCCURRENCES", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_prod_cannot_enable_testing(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("TESTING", "true")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)

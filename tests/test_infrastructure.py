"""Tests for log masking and database URL handling."""

from kitbot.database import normalize_database_url
from kitbot.logging_config import mask_phone_numbers


def test_mask_phone_numbers_keeps_last_digits():
    event = {"event": "lead_upserted", "phone": "5548999990000", "sender_id": "5511988887777", "created": True}

    masked = mask_phone_numbers(None, "info", event)

    assert masked["phone"] == "***0000"
    assert masked["sender_id"] == "***7777"
    assert masked["created"] is True


def test_mask_phone_numbers_ignores_short_and_missing_values():
    assert mask_phone_numbers(None, "info", {"event": "x", "phone": "123"}) == {"event": "x", "phone": "123"}
    assert mask_phone_numbers(None, "info", {"event": "x", "phone": None}) == {"event": "x", "phone": None}


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@db:5432/kit") == "postgresql://u:p@db:5432/kit"
    assert normalize_database_url("postgresql://u:p@db/kit") == "postgresql://u:p@db/kit"
    assert normalize_database_url("sqlite:///./kitbot.db") == "sqlite:///./kitbot.db"

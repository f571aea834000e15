"""Google Calendar sync for visits booked by the bot.

Calendar sync is best-effort: every public method returns a falsy value
instead of raising when credentials are missing or the API fails.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from google.oauth2 import service_account
from googleapiclient.discovery import build

from kitbot.config import config
from kitbot.language import get_text
from kitbot.logging_config import get_logger

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

# Accepted after ISO 8601; the model is asked for AAAA-MM-DDTHH:MM.
_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %Hh%M",
    "%d/%m/%Y %Hh",
    "%d/%m/%Y às %H:%M",
    "%d/%m/%Y às %Hh",
)


def parse_visit_datetime(text: str) -> Optional[datetime]:
    """Parse the visit date/time produced by the model. Returns None if unparseable."""
    t = (text or "").strip()
    if not t:
        return None

    try:
        return datetime.fromisoformat(t.replace("Z", "+00:00"))
    except ValueError:
        pass

    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(t, fmt)
        except ValueError:
            continue
    return None


class GoogleCalendarService:
    """Thin wrapper around googleapiclient for the owner's calendar."""

    def __init__(self, service: Any = None) -> None:
        self._service = service

    def _load_credentials(self):
        # 1. Environment variable (production)
        if config.GOOGLE_CREDENTIALS_JSON:
            try:
                info = json.loads(config.GOOGLE_CREDENTIALS_JSON)
                # Keys pasted into env vars often carry literal "\n" sequences.
                if info.get("private_key"):
                    info["private_key"] = info["private_key"].replace("\\n", "\n")
                credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
                logger.info("calendar_credentials_loaded", source="env")
                return credentials
            except Exception as e:
                logger.error("calendar_credentials_env_invalid", error=str(e))

        # 2. Local file (development)
        if not os.path.exists(config.GOOGLE_CREDENTIALS_FILE):
            logger.warning("calendar_credentials_missing", path=config.GOOGLE_CREDENTIALS_FILE)
            return None

        try:
            credentials = service_account.Credentials.from_service_account_file(
                config.GOOGLE_CREDENTIALS_FILE, scopes=SCOPES
            )
            logger.info("calendar_credentials_loaded", source="file")
            return credentials
        except Exception as e:
            logger.error("calendar_credentials_file_invalid", error=str(e))
            return None

    def _get_service(self):
        if self._service is not None:
            return self._service

        credentials = self._load_credentials()
        if credentials is None:
            return None

        try:
            self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        except Exception as e:
            logger.error("calendar_client_build_failed", error=str(e))
            return None
        return self._service

    def create_event(self, phone: str, date_time: str, name: Optional[str] = None) -> Optional[str]:
        """Create the visit event. Returns the event link, or None if not synced."""
        service = self._get_service()
        if service is None:
            return None

        start = parse_visit_datetime(date_time)
        if start is None:
            logger.warning("calendar_invalid_datetime", date_time=date_time)
            return None
        end = start + timedelta(minutes=config.VISIT_DURATION_MINUTES)

        who = f"{name} ({phone})" if name else phone
        body = {
            "summary": get_text("calendar_summary", who=who),
            "description": get_text("calendar_description", who=who),
            "start": {"dateTime": start.isoformat(), "timeZone": config.CALENDAR_TIMEZONE},
            "end": {"dateTime": end.isoformat(), "timeZone": config.CALENDAR_TIMEZONE},
        }

        try:
            event = service.events().insert(calendarId=config.GOOGLE_CALENDAR_ID, body=body).execute()
        except Exception as e:
            logger.error("calendar_event_failed", phone=phone, error=str(e))
            return None

        link = event.get("htmlLink") or ""
        logger.info("calendar_event_created", phone=phone, link=link)
        return link or None

    def check_availability(self, date_time: str) -> bool:
        """True when the visit slot is free.

        Unparseable input is reported busy. Auth or API failures report free,
        so a calendar outage never blocks a booking.
        """
        start = parse_visit_datetime(date_time)
        if start is None:
            return False

        service = self._get_service()
        if service is None:
            return True

        end = start + timedelta(minutes=config.VISIT_DURATION_MINUTES)
        try:
            response = (
                service.events()
                .list(
                    calendarId=config.GOOGLE_CALENDAR_ID,
                    timeMin=_rfc3339(start),
                    timeMax=_rfc3339(end),
                    timeZone=config.CALENDAR_TIMEZONE,
                    singleEvents=True,
                    orderBy="startTime",
                )
                .execute()
            )
        except Exception as e:
            logger.error("calendar_availability_failed", error=str(e))
            return True

        events = response.get("items", [])
        if events:
            logger.info("calendar_slot_busy", date_time=date_time, conflict=events[0].get("summary"))
            return False
        return True

    def test_connection(self) -> dict:
        """Probe the calendar API for health checks."""
        service = self._get_service()
        if service is None:
            return {"status": "error", "message": "Calendar credentials missing or invalid"}

        try:
            service.events().list(calendarId=config.GOOGLE_CALENDAR_ID, maxResults=1, singleEvents=True).execute()
        except Exception as e:
            return {"status": "error", "message": str(e)}
        return {"status": "ok"}


def _rfc3339(value: datetime) -> str:
    # timeMin/timeMax require an offset; naive values are local to the calendar.
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(config.CALENDAR_TIMEZONE))
    return value.isoformat()


calendar_service = GoogleCalendarService()

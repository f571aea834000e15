"""
Follow-up of new leads who went quiet.

A lead still marked `novo` one to three days after its last contact gets one
friendly nudge over WhatsApp and is then marked `followup_enviado`, so it is
never nudged twice. Runs are small and sends are spaced out.
"""

import random
import time
from datetime import datetime
from typing import Callable, Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from kitbot.config import config
from kitbot.db_models import LeadStatus
from kitbot.language import get_text
from kitbot.logging_config import get_logger
from kitbot.metrics import lead_followups_total
from kitbot.services import LeadService

logger = get_logger(__name__)


class TextSender(Protocol):
    """Transport capability used to deliver a plain text message."""

    def __call__(self, phone: str, text: str) -> None:
        ...


class WhatsAppGatewaySender:
    """TextSender backed by the WhatsApp transport's HTTP API (POST /send)."""

    def __init__(self, base_url: str, api_key: str = "", client: Optional[httpx.Client] = None, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def __call__(self, phone: str, text: str) -> None:
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        response = self._client.post(f"{self.base_url}/send", json={"to": phone, "text": text}, headers=headers)
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


def followup_text(name: Optional[str]) -> str:
    """Follow-up message, greeting the lead by name when we know it."""
    name = (name or "").strip()
    if name and name != get_text("unknown_name"):
        greeting = get_text("followup_greeting_named", name=name)
    else:
        greeting = get_text("followup_greeting")
    return get_text("followup_message", greeting=greeting)


def _pause() -> float:
    return random.uniform(config.FOLLOWUP_MIN_DELAY_SECONDS, config.FOLLOWUP_MAX_DELAY_SECONDS)


def send_followups(
    db: Session,
    text_sender: TextSender,
    now: Optional[datetime] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Send one follow-up to each lead due for it and mark it as followed up.

    Args:
        db: Database session
        text_sender: Transport used to send the message
        now: Reference time (UTC, naive like the stored timestamps); defaults to now
        sleep: Called with a random pause (FOLLOWUP_*_DELAY_SECONDS) between two sends

    Returns:
        Number of leads successfully followed up. A failed send is logged and
        leaves the lead untouched, so the next run retries it while still in the window.
    """
    leads = LeadService.leads_due_for_followup(db, now=now)
    logger.info("followup_leads_found", count=len(leads))

    sent = 0
    for i, lead in enumerate(leads):
        if i > 0:
            sleep(_pause())

        try:
            text_sender(lead.phone, followup_text(lead.name))
        except Exception as e:
            logger.error("followup_send_failed", phone=lead.phone, error=str(e))
            lead_followups_total.labels(ok="false").inc()
            continue

        LeadService.update_lead_status(db, lead.phone, LeadStatus.FOLLOWUP_SENT)
        lead_followups_total.labels(ok="true").inc()
        sent += 1

    logger.info("followup_run_completed", found=len(leads), sent=sent)
    return sent

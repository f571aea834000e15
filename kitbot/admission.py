"""Per-sender admission control.

A turn must never run twice at the same time for the same sender (lead merge
and the two model round-trips are read-modify-write sequences), and senders
who fire messages in bursts are debounced by a short cool-down.

State is kept in memory and bounded: once the table grows past `max_senders`,
the least recently seen senders are evicted, except those with a turn in flight.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from kitbot.config import config
from kitbot.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class _SenderSlot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    last_admitted: Optional[float] = None
    holders: int = 0


class SenderGate:
    """Cool-down debouncer plus a mutex per sender."""

    def __init__(
        self,
        cooldown_seconds: float,
        max_senders: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self.max_senders = max_senders
        self._clock = clock
        self._slots: "OrderedDict[str, _SenderSlot]" = OrderedDict()
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)

    def _slot(self, sender_id: str) -> _SenderSlot:
        # Caller holds self._guard.
        slot = self._slots.get(sender_id)
        if slot is None:
            slot = _SenderSlot()
            self._slots[sender_id] = slot
        self._slots.move_to_end(sender_id)
        self._evict(keep=sender_id)
        return slot

    def _evict(self, keep: str) -> None:
        excess = len(self._slots) - self.max_senders
        if excess <= 0:
            return
        for sender_id in list(self._slots):
            if excess <= 0:
                break
            if sender_id != keep and self._slots[sender_id].holders == 0:
                del self._slots[sender_id]
                excess -= 1

    def admit(self, sender_id: str) -> bool:
        """Return False if the sender's previous message was admitted less than cooldown ago."""
        now = self._clock()
        with self._guard:
            slot = self._slot(sender_id)
            if slot.last_admitted is not None and now - slot.last_admitted < self.cooldown_seconds:
                logger.info("sender_debounced", sender_id=sender_id)
                return False
            slot.last_admitted = now
            return True

    @contextmanager
    def hold(self, sender_id: str) -> Iterator[None]:
        """Run the body while holding the sender's mutex (blocks while another turn is in flight)."""
        with self._guard:
            slot = self._slot(sender_id)
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.holders -= 1


sender_gate = SenderGate(config.SENDER_COOLDOWN_SECONDS, config.SENDER_GATE_MAX_ENTRIES)

"""
In-process registry of connected student notification streams.

One AttendanceNotifier lives on `app.state.notifier` and is injected with
`get_notifier`; tests construct their own. Publishing never blocks and never
raises: a full or closed subscription drops the event and logs it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendanceEvent:
    student_id: UUID
    day: date
    status: str

    def payload(self) -> Dict[str, Any]:
        return {"date": self.day.isoformat(), "status": self.status}


@dataclass(eq=False)
class Subscription:
    student_id: UUID
    queue: "asyncio.Queue[AttendanceEvent]"
    dropped: int = 0
    closed: bool = field(default=False)


class AttendanceNotifier:
    """Best-effort fan-out of ledger changes to currently connected students."""

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscriptions: Dict[UUID, Set[Subscription]] = {}

    def subscribe(self, student_id: UUID) -> Subscription:
        sub = Subscription(student_id=student_id, queue=asyncio.Queue(maxsize=self._queue_size))
        self._subscriptions.setdefault(student_id, set()).add(sub)
        logger.debug("Student %s subscribed (%d open)", student_id, len(self._subscriptions[student_id]))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        subs = self._subscriptions.get(sub.student_id)
        if not subs:
            return
        subs.discard(sub)
        if not subs:
            self._subscriptions.pop(sub.student_id, None)

    def connected(self, student_id: UUID) -> int:
        return len(self._subscriptions.get(student_id, ()))

    def publish(self, event: AttendanceEvent) -> int:
        """Queue `event` for every open stream of the student. Returns deliveries."""
        delivered = 0
        # Copy: a stream may unsubscribe while we iterate.
        for sub in list(self._subscriptions.get(event.student_id, ())):
            if sub.closed:
                continue
            try:
                sub.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                sub.dropped += 1
                logger.warning(
                    "Dropping attendance event for student %s: stream buffer full", event.student_id
                )
        return delivered

    def publish_many(self, events: Iterable[AttendanceEvent]) -> int:
        total = 0
        for event in events:
            try:
                total += self.publish(event)
            except Exception:  # noqa: BLE001 - notifications must never fail a ledger write
                logger.warning("Attendance notification failed for %s", event.student_id, exc_info=True)
        return total


def notify_safely(notifier: Optional[AttendanceNotifier], events: List[AttendanceEvent]) -> None:
    """Publish after the ledger commit; swallow and log any notifier failure."""
    if notifier is None or not events:
        return
    try:
        delivered = notifier.publish_many(events)
    except Exception:  # noqa: BLE001
        logger.warning("Attendance notifier unavailable; %d events dropped", len(events), exc_info=True)
        return
    logger.debug("Delivered %d of %d attendance events", delivered, len(events))


def get_notifier(request: Request) -> Optional[AttendanceNotifier]:
    return getattr(request.app.state, "notifier", None)

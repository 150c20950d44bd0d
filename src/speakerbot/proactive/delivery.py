"""
proactive/delivery.py — Ordered delivery with fallback

A message is delivered by walking an explicit list of DeliveryAttempt
entries in order until one succeeds. Every attempt yields a typed
DeliveryOutcome, so callers can see which route worked and why the others
failed without nesting try/except chains.

    attempts = reminder_attempts(talk)        # [DM speaker, post to booking thread]
    report = await deliver(notifier, attempts, text)
    if report.delivered: ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from speakerbot.notify.base import Notifier
from speakerbot.observability.logger import get_logger
from speakerbot.store.models import Talk

log = get_logger(__name__)


class DeliveryRoute(str, Enum):
    DIRECT_MESSAGE = "direct_message"
    CHANNEL = "channel"


@dataclass(frozen=True)
class DeliveryAttempt:
    route: DeliveryRoute
    destination: str


@dataclass(frozen=True)
class DeliveryOutcome:
    attempt: DeliveryAttempt
    delivered: bool
    error: Optional[str] = None


@dataclass
class DeliveryReport:
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(o.delivered for o in self.outcomes)

    @property
    def delivered_via(self) -> Optional[DeliveryAttempt]:
        for o in self.outcomes:
            if o.delivered:
                return o.attempt
        return None

    def error_summary(self) -> str:
        failed = [o for o in self.outcomes if not o.delivered]
        if not failed:
            return "No delivery destinations available"
        return "; ".join(f"{o.attempt.route.value} {o.attempt.destination}: {o.error}" for o in failed)


def reminder_attempts(talk: Talk) -> list[DeliveryAttempt]:
    """DM the speaker first; fall back to the booking thread when the talk has one."""
    attempts = [DeliveryAttempt(DeliveryRoute.DIRECT_MESSAGE, talk.speaker_id)]
    if talk.thread_id:
        attempts.append(DeliveryAttempt(DeliveryRoute.CHANNEL, talk.thread_id))
    return attempts


async def _attempt(notifier: Notifier, attempt: DeliveryAttempt, text: str) -> None:
    if attempt.route is DeliveryRoute.DIRECT_MESSAGE:
        await notifier.send_direct_message(attempt.destination, text)
    else:
        channel = await notifier.resolve_channel(attempt.destination)
        await notifier.send_channel_message(channel, text)


async def deliver(notifier: Notifier, attempts: list[DeliveryAttempt], text: str) -> DeliveryReport:
    """Try attempts sequentially; stop at the first success."""
    report = DeliveryReport()
    for attempt in attempts:
        try:
            await _attempt(notifier, attempt, text)
        except Exception as e:
            log.info(
                "delivery.attempt_failed",
                route=attempt.route.value,
                destination=attempt.destination,
                error=str(e),
            )
            report.outcomes.append(DeliveryOutcome(attempt, delivered=False, error=str(e)))
            continue
        report.outcomes.append(DeliveryOutcome(attempt, delivered=True))
        break
    return report

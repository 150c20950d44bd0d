"""
proactive/results.py — Job result contracts

JobResult is the one shape every caller of a proactive job sees (scheduler
log line, HTTP trigger response, CLI output). It is a common envelope plus a
job-specific payload:

    JobResult
    ├── job, status, duration_ms, timestamp      (always)
    ├── reason, lock_acquired_at                  (skipped)
    ├── error                                     (error)
    └── payload: ReminderReport | AnnouncementReport | None

to_dict() joins the two explicitly: the payload lands under its own key
("reminders" or "announcement"), never spread into the envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from speakerbot.store.models import ReminderKind


class JobName(str, Enum):
    REMINDERS = "talk-reminders"
    WEEKLY_SUMMARY = "weekly-announcement"


class JobStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


SKIP_ALREADY_RUNNING = "already_running"
SKIP_DISABLED = "disabled"


# ─────────────────────────────────────────────────────────────────────────────
# Payloads
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ReminderError:
    """One talk whose reminder could not be delivered on any destination."""
    kind: ReminderKind
    talk_id: Optional[str]
    speaker_id: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "talk_id": self.talk_id,
            "speaker_id": self.speaker_id,
            "message": self.message,
        }


@dataclass
class ReminderReport:
    tminus1_sent: int = 0
    day_of_sent: int = 0
    errors: list[ReminderError] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None

    key = "reminders"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "tminus1_sent": self.tminus1_sent,
            "day_of_sent": self.day_of_sent,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.skipped:
            d["skipped"] = True
            d["reason"] = self.reason
        return d


@dataclass
class AnnouncementReport:
    posted: bool = False
    talks_count: Optional[int] = None
    channel_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    key = "announcement"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"posted": self.posted, "error": self.error}
        if self.talks_count is not None:
            d["talks_count"] = self.talks_count
        if self.channel_id is not None:
            d["channel_id"] = self.channel_id
        if self.skipped:
            d["skipped"] = True
            d["reason"] = self.reason
        return d


JobPayload = Union[ReminderReport, AnnouncementReport]


# ─────────────────────────────────────────────────────────────────────────────
# Envelope
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class JobResult:
    job: str
    status: JobStatus
    duration_ms: float
    timestamp: str
    payload: Optional[JobPayload] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "job": self.job,
            "status": self.status.value,
            "duration_ms": round(self.duration_ms, 3),
            "timestamp": self.timestamp,
        }
        if self.reason is not None:
            d["reason"] = self.reason
        if self.lock_acquired_at is not None:
            d["lock_acquired_at"] = self.lock_acquired_at.isoformat()
        if self.error is not None:
            d["error"] = self.error
        if self.payload is not None:
            d[self.payload.key] = self.payload.to_dict()
        return d

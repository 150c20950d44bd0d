"""
exceptions.py — speakerbot Unified Error Hierarchy

All speakerbot-specific exceptions live here. Every layer of the stack
raises typed subclasses of SpeakerBotError — never bare Exception.

Import from here, not from individual modules:
    from speakerbot.exceptions import DeliveryError, StoreError

Hierarchy:
    SpeakerBotError
    ├── StoreError
    │   ├── StoreNotInitializedError
    │   └── DuplicateTalkDateError
    ├── DeliveryError
    │   └── ChannelNotFoundError
    └── JobError
        └── ReminderJobError

Configuration problems raise ConfigError from speakerbot.config.settings.
"""

from __future__ import annotations


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class SpeakerBotError(Exception):
    """Base class for all speakerbot exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Record store
# ─────────────────────────────────────────────────────────────────────────────

class StoreError(SpeakerBotError):
    """A record store operation (read or write) failed."""


class StoreNotInitializedError(StoreError):
    """RecordStore.init() has not been called before first use."""


class DuplicateTalkDateError(StoreError):
    """A talk is already booked on the requested calendar date."""

    def __init__(self, scheduled_date, message: str = "") -> None:
        self.scheduled_date = scheduled_date
        super().__init__(
            message or f"A talk is already scheduled on {scheduled_date.isoformat()}."
        )


# ─────────────────────────────────────────────────────────────────────────────
# Notification delivery
# ─────────────────────────────────────────────────────────────────────────────

class DeliveryError(SpeakerBotError):
    """A message could not be delivered to its destination."""

    def __init__(self, destination: str, message: str = "") -> None:
        self.destination = destination
        super().__init__(message or f"Failed to deliver message to '{destination}'.")


class ChannelNotFoundError(DeliveryError):
    """A channel reference could not be resolved by the notification client."""

    def __init__(self, channel_id: str, message: str = "") -> None:
        super().__init__(channel_id, message or f"Channel '{channel_id}' not found.")


# ─────────────────────────────────────────────────────────────────────────────
# Jobs
# ─────────────────────────────────────────────────────────────────────────────

class JobError(SpeakerBotError):
    """Base for job-level failures surfaced through the result envelope."""


class ReminderJobError(JobError):
    """The reminder job aborted while querying or updating talks."""


__all__ = [
    "SpeakerBotError",
    # Store
    "StoreError",
    "StoreNotInitializedError",
    "DuplicateTalkDateError",
    # Delivery
    "DeliveryError",
    "ChannelNotFoundError",
    # Jobs
    "JobError",
    "ReminderJobError",
]

"""Shared column helpers and the day boundary used for quote scoping"""
from datetime import date, datetime, time
import uuid


def generate_uuid() -> str:
    """Generate a UUID string (stored as VARCHAR(36) on every backend)"""
    return str(uuid.uuid4())


def submission_day(moment: datetime) -> date:
    """
    Calendar day a quote belongs to.

    All timestamps are naive UTC, so the day boundary is UTC midnight on every
    deployment regardless of server timezone.
    """
    return moment.date()


def start_of_submission_day(moment: datetime) -> datetime:
    """UTC midnight at the start of ``moment``'s submission day"""
    return datetime.combine(submission_day(moment), time.min)

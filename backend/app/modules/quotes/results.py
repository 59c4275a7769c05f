"""
Value objects passed through the quote intake pipeline.

Rejections are results, not exceptions: every gate layer and the
persistence conflict path return one of these so callers branch on type.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from app.models.quote_request import QuoteRequest, QUOTA_SLOT_CONSTRAINT


# Body keys the website uses for the screening fields
FORM_TIMESTAMP_KEYS = ("formStartTs", "form_start_ts")
CAPTCHA_TOKEN_KEYS = ("captchaToken", "captcha_token")


def parse_form_timestamp(raw: Any) -> Optional[float]:
    """Epoch milliseconds from a number or numeric string; anything else is None"""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _first_present(body: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if body.get(key) is not None:
            return body[key]
    return None


@dataclass(frozen=True)
class BotSignals:
    """
    Anti-bot inputs of a submission.

    Read straight from the raw request body so they can be screened before
    (and regardless of) field validation. Decoy values keep whatever type the
    client sent.
    """
    decoy_fields: Mapping[str, Any] = field(default_factory=dict)
    form_started_at_ms: Optional[float] = None
    captcha_token: Optional[str] = None

    @classmethod
    def from_body(cls, body: Any, decoy_field_names: Iterable[str]) -> "BotSignals":
        if not isinstance(body, Mapping):
            return cls()
        token = _first_present(body, CAPTCHA_TOKEN_KEYS)
        return cls(
            decoy_fields={name: body.get(name) for name in decoy_field_names},
            form_started_at_ms=parse_form_timestamp(_first_present(body, FORM_TIMESTAMP_KEYS)),
            captcha_token=(token.strip() or None) if isinstance(token, str) else None,
        )


@dataclass(frozen=True)
class QuoteSubmission:
    """What the customer typed into the quote form"""
    name: str
    phone: str
    email: str
    company: Optional[str] = None
    whatsapp: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[str] = None
    project_details: Optional[str] = None
    decoy_fields: Mapping[str, Any] = field(default_factory=dict)
    form_started_at_ms: Optional[float] = None
    captcha_token: Optional[str] = None

    @property
    def signals(self) -> BotSignals:
        return BotSignals(
            decoy_fields=self.decoy_fields,
            form_started_at_ms=self.form_started_at_ms,
            captcha_token=self.captcha_token,
        )


@dataclass(frozen=True)
class RequestMetadata:
    """What the server observed about the request"""
    ip_address: str
    user_agent: Optional[str]
    received_at: datetime  # naive UTC


class RejectionLayer(str, Enum):
    RATE_LIMIT = "rate_limit"
    CAPTCHA_MISSING = "captcha_missing"
    CAPTCHA_FAILED = "captcha_failed"
    HONEYPOT = "honeypot"
    TOO_FAST = "too_fast"
    STALE = "stale"
    MISSING_TIMESTAMP = "missing_timestamp"
    DAILY_QUOTA = "daily_quota"
    DAILY_QUOTA_CONFLICT = "daily_quota_conflict"
    DUPLICATE = "duplicate"
    DUPLICATE_CONFLICT = "duplicate_conflict"


# ============== Submission results ==============

class SubmissionResult:
    accepted: bool = False
    message: str = ""


@dataclass(frozen=True)
class Accepted(SubmissionResult):
    quote_id: str
    reference_number: str

    accepted = True
    message = "Quote request submitted successfully. We will contact you soon."


class Rejection(SubmissionResult):
    layer: RejectionLayer


@dataclass(frozen=True)
class RejectedRateLimited(Rejection):
    layer: RejectionLayer = RejectionLayer.RATE_LIMIT

    message = "Too many quote submissions. Please try again later."


@dataclass(frozen=True)
class RejectedCaptcha(Rejection):
    """Captcha token absent or refused by the provider"""
    layer: RejectionLayer = RejectionLayer.CAPTCHA_FAILED

    @property
    def message(self) -> str:
        if self.layer == RejectionLayer.CAPTCHA_MISSING:
            return "Captcha verification required"
        return "Captcha verification failed"


@dataclass(frozen=True)
class RejectedBot(Rejection):
    """Honeypot or timing failure; the message never says which"""
    layer: RejectionLayer = RejectionLayer.HONEYPOT

    message = "Invalid request"


@dataclass(frozen=True)
class RejectedQuotaExceeded(Rejection):
    layer: RejectionLayer = RejectionLayer.DAILY_QUOTA

    message = "Too many quote submissions for this email today. Please try again tomorrow."


@dataclass(frozen=True)
class RejectedDuplicate(Rejection):
    """Same email and phone already recorded, by the pre-check or the unique constraint"""
    layer: RejectionLayer = RejectionLayer.DUPLICATE

    message = "We already received your request. Please wait for our response."

    @property
    def detected_by_constraint(self) -> bool:
        return self.layer == RejectionLayer.DUPLICATE_CONFLICT


# ============== Persistence results ==============

class InsertResult:
    pass


@dataclass(frozen=True)
class Inserted(InsertResult):
    quote: QuoteRequest


@dataclass(frozen=True)
class UniqueConflict(InsertResult):
    """A unique constraint rejected the row; ``constraint`` names which one"""
    constraint: Optional[str] = None

    @property
    def quota_slot_taken(self) -> bool:
        return self.constraint == QUOTA_SLOT_CONSTRAINT

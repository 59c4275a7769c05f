"""
Quote intake: anti-abuse gate, persistence and notification for public quote requests.
"""
from app.modules.quotes.results import (
    QuoteSubmission,
    RequestMetadata,
    RejectionLayer,
    SubmissionResult,
    Accepted,
    Rejection,
    RejectedRateLimited,
    RejectedBot,
    RejectedQuotaExceeded,
    RejectedDuplicate,
    InsertResult,
    Inserted,
    UniqueConflict,
)
from app.modules.quotes.gate import IntakeGate, QuoteGateConfig
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.notifier import QuoteNotifier, QuoteNotification, NotificationTarget
from app.modules.quotes.service import QuoteIntakeService

__all__ = [
    "QuoteSubmission",
    "RequestMetadata",
    "RejectionLayer",
    "SubmissionResult",
    "Accepted",
    "Rejection",
    "RejectedRateLimited",
    "RejectedBot",
    "RejectedQuotaExceeded",
    "RejectedDuplicate",
    "InsertResult",
    "Inserted",
    "UniqueConflict",
    "IntakeGate",
    "QuoteGateConfig",
    "QuoteRepository",
    "QuoteNotifier",
    "QuoteNotification",
    "NotificationTarget",
    "QuoteIntakeService",
]

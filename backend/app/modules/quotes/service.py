"""
Quote Intake Service - business logic for quote submissions and the admin inbox

Handles:
- Gate evaluation and persistence of public submissions
- Background staff/customer notification for accepted quotes
- Inbox listing, detail, status/notes updates and notification resends
"""

from typing import Any, Dict, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import QuoteNotFoundError, ServiceUnavailableError
from app.core.logging_config import logger
from app.core.types import start_of_submission_day
from app.models.quote_request import QuoteRequest, QuoteStatus
from app.modules.quotes.gate import IntakeGate
from app.modules.quotes.notifier import NotificationTarget, QuoteNotification, QuoteNotifier
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.results import (
    Accepted,
    BotSignals,
    Inserted,
    QuoteSubmission,
    Rejection,
    RejectedDuplicate,
    RejectedQuotaExceeded,
    RejectionLayer,
    RequestMetadata,
    SubmissionResult,
)
from app.schemas.quote import QuoteUpdate


class QuoteIntakeService:
    """Service for accepting and managing quote requests"""

    def __init__(self, gate: IntakeGate, repository: QuoteRepository, notifier: QuoteNotifier):
        self.gate = gate
        self.repository = repository
        self.notifier = notifier

    # ==================== PUBLIC INTAKE ====================

    async def submit_quote(
        self,
        db: AsyncSession,
        submission: QuoteSubmission,
        metadata: RequestMetadata,
    ) -> SubmissionResult:
        """
        Gate, store and notify.

        Returns Accepted or one of the rejection results. Raises
        ServiceUnavailableError when the gate or the database cannot be
        consulted; nothing is stored in that case.
        """
        rejection = await self.screen_request(submission.signals, metadata, email=submission.email)
        if rejection is not None:
            return rejection
        return await self.submit_screened(db, submission, metadata)

    async def screen_request(
        self,
        signals: BotSignals,
        metadata: RequestMetadata,
        email: Optional[str] = None,
    ) -> Optional[Rejection]:
        """Screening layers only (rate limit, captcha, honeypot, timing)"""
        try:
            return await self.gate.screen(signals, metadata, email=email)
        except ServiceUnavailableError as e:
            self._log_unavailable(e, "quote_gate", metadata)
            raise

    async def submit_screened(
        self,
        db: AsyncSession,
        submission: QuoteSubmission,
        metadata: RequestMetadata,
    ) -> SubmissionResult:
        """Quota and duplicate checks, insert and notify for an already screened request"""
        try:
            rejection = await self.gate.check_history(db, submission, metadata)
        except ServiceUnavailableError as e:
            self._log_unavailable(e, "quote_gate", metadata)
            raise
        if rejection is not None:
            return rejection

        try:
            outcome = await self._insert_with_quota_slot(db, submission, metadata)
        except ServiceUnavailableError as e:
            self._log_unavailable(e, "quote_insert", metadata)
            raise

        if isinstance(outcome, Rejection):
            self.gate.log_rejection(outcome, metadata, submission.email)
            return outcome

        stored = outcome.quote
        logger.info(
            f"[Quotes] Accepted {stored.reference_number} from {stored.email}",
            extra={"event_type": "quote_accepted", "quote_id": stored.id, "client_ip": metadata.ip_address},
        )
        self.notifier.dispatch(QuoteNotification.from_quote(stored))
        return Accepted(quote_id=stored.id, reference_number=stored.reference_number)

    async def _insert_with_quota_slot(
        self,
        db: AsyncSession,
        submission: QuoteSubmission,
        metadata: RequestMetadata,
    ) -> Union[Inserted, Rejection]:
        """
        Insert the quote into the next free daily slot for its email.

        Slots are numbered 1..quota_per_day_max and unique per (email, day),
        so concurrent inserts for one email serialise on the constraint: a
        loser recounts and tries the next slot. Every lost slot means another
        quote was stored, so the loop ends within quota + 1 attempts.
        """
        limit = self.gate.config.quota_per_day_max
        day_start = start_of_submission_day(metadata.received_at)

        for _ in range(limit + 1):
            used = await self.repository.count_by_email_since(db, submission.email, day_start)
            if used >= limit:
                break

            inserted = await self.repository.insert_quote(
                db, self._build_quote(submission, metadata, quota_slot=used + 1)
            )
            if isinstance(inserted, Inserted):
                return inserted
            if not inserted.quota_slot_taken:
                # Lost a race with a concurrent identical submission
                return RejectedDuplicate(layer=RejectionLayer.DUPLICATE_CONFLICT)

        return RejectedQuotaExceeded(layer=RejectionLayer.DAILY_QUOTA_CONFLICT)

    @staticmethod
    def _build_quote(submission: QuoteSubmission, metadata: RequestMetadata, quota_slot: int) -> QuoteRequest:
        return QuoteRequest(
            name=submission.name,
            company=submission.company,
            phone=submission.phone,
            whatsapp=submission.whatsapp,
            email=submission.email,
            product_name=submission.product_name,
            quantity=submission.quantity,
            project_details=submission.project_details,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            created_at=metadata.received_at,
            quota_slot=quota_slot,
        )

    @staticmethod
    def _log_unavailable(error: ServiceUnavailableError, context: str, metadata: RequestMetadata) -> None:
        logger.log_error_with_context(
            error, context, client_ip=metadata.ip_address, dependency=error.details.get("dependency")
        )

    # ==================== ADMIN INBOX ====================

    async def get_quote(self, db: AsyncSession, quote_id: str) -> QuoteRequest:
        quote = await self.repository.get_by_id(db, quote_id)
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    async def list_quotes(
        self,
        db: AsyncSession,
        status: Optional[QuoteStatus] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> Dict[str, Any]:
        return await self.repository.list_quotes(db, status, page, page_size, sort_by, order)

    async def update_quote(
        self,
        db: AsyncSession,
        quote_id: str,
        update: QuoteUpdate,
        admin_email: Optional[str] = None,
    ) -> QuoteRequest:
        """Change workflow status and/or notes"""
        quote = await self.get_quote(db, quote_id)
        changes = update.model_dump(exclude_unset=True)
        if "status" in changes and changes["status"] is not None:
            changes["status"] = QuoteStatus(changes["status"])
        elif "status" in changes:
            del changes["status"]

        previous_status = quote.status
        quote = await self.repository.update(db, quote, changes)
        logger.info(
            f"[Quotes] {quote.reference_number} updated by {admin_email or 'unknown'}"
            + (f" ({previous_status.value} -> {quote.status.value})" if quote.status != previous_status else "")
        )
        return quote

    async def resend_notification(self, db: AsyncSession, quote_id: str) -> Tuple[QuoteRequest, bool]:
        """Re-send the staff notification synchronously so the admin sees the outcome"""
        quote = await self.get_quote(db, quote_id)
        sent = await self.notifier.notify(
            QuoteNotification.from_quote(quote),
            targets=(NotificationTarget.STAFF,),
        )
        return quote, sent

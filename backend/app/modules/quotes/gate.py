"""
Quote Intake Gate - ordered anti-abuse checks in front of persistence.

Layers run cheapest first and stop at the first rejection:

    1. per-IP rate limit        (counter store)
    2. captcha, when configured (provider call)
    3. honeypot decoy fields    (pure)
    4. form fill timing         (pure)
    5. per-email daily quota    (database read)
    6. duplicate suppression    (database read)

Layers 1-4 form the screening stage. They only need the request metadata and
the raw body's BotSignals, so the HTTP layer runs them before field
validation: malformed posts still count against the IP, and a bot that fills
a decoy gets the generic rejection however broken the rest of its payload is.
Layers 5-6 need the validated submission.

Every rejection is logged as a security event. Infrastructure failures
(counter store or database unavailable) propagate as ServiceUnavailableError
so the submission is refused rather than waved through.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import CaptchaProviderError
from app.core.logging_config import logger
from app.core.rate_limiter import RateLimitStore
from app.core.types import start_of_submission_day
from app.modules.quotes.captcha import CaptchaVerifier
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.results import (
    BotSignals,
    QuoteSubmission,
    RequestMetadata,
    Rejection,
    RejectionLayer,
    RejectedBot,
    RejectedCaptcha,
    RejectedDuplicate,
    RejectedQuotaExceeded,
    RejectedRateLimited,
)


_EPOCH = datetime(1970, 1, 1)


def epoch_ms(moment: datetime) -> int:
    """Naive UTC datetime -> integer epoch milliseconds"""
    return (moment - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class QuoteGateConfig:
    """Thresholds for every gate layer"""
    rate_limit_window_seconds: int = 3600
    rate_limit_max: int = 5
    quota_per_day_max: int = 5
    min_elapsed_seconds: float = 1.5
    max_elapsed_seconds: float = 3600.0
    duplicate_window_seconds: int = 600
    honeypot_fields: Tuple[str, ...] = ("honeypot", "website")
    require_form_timestamp: bool = False

    @classmethod
    def from_settings(cls, s=settings) -> "QuoteGateConfig":
        return cls(
            rate_limit_window_seconds=s.QUOTE_RATE_LIMIT_WINDOW_SECONDS,
            rate_limit_max=s.QUOTE_RATE_LIMIT_MAX_REQUESTS,
            quota_per_day_max=s.QUOTE_MAX_PER_EMAIL_PER_DAY,
            min_elapsed_seconds=s.QUOTE_MIN_ELAPSED_SECONDS,
            max_elapsed_seconds=s.QUOTE_MAX_ELAPSED_SECONDS,
            duplicate_window_seconds=s.QUOTE_DEDUP_WINDOW_SECONDS,
            honeypot_fields=tuple(s.QUOTE_HONEYPOT_FIELDS),
            require_form_timestamp=s.QUOTE_REQUIRE_FORM_TIMESTAMP,
        )


class IntakeGate:
    """Decides whether a quote submission may proceed to persistence"""

    def __init__(
        self,
        rate_limit_store: RateLimitStore,
        repository: QuoteRepository,
        config: Optional[QuoteGateConfig] = None,
        captcha: Optional[CaptchaVerifier] = None,
    ):
        self.rate_limit_store = rate_limit_store
        self.repository = repository
        self.config = config or QuoteGateConfig.from_settings()
        self.captcha = captcha

    async def evaluate(
        self,
        db: AsyncSession,
        submission: QuoteSubmission,
        metadata: RequestMetadata,
    ) -> Optional[Rejection]:
        """
        Run every layer in order.

        Returns the first rejection, or None when the submission may be stored.
        Raises ServiceUnavailableError subclasses when a layer cannot decide.
        """
        rejection = await self.screen(submission.signals, metadata, email=submission.email)
        if rejection is None:
            rejection = await self.check_history(db, submission, metadata)
        return rejection

    async def screen(
        self,
        signals: BotSignals,
        metadata: RequestMetadata,
        email: Optional[str] = None,
    ) -> Optional[Rejection]:
        """Rate limit, captcha, honeypot and timing; no validated fields needed"""
        rejection = await self.check_rate_limit(metadata)
        if rejection is None:
            rejection = await self.check_captcha(signals, metadata)
        if rejection is None:
            rejection = self.check_honeypot(signals)
        if rejection is None:
            rejection = self.check_timing(signals, metadata)

        if rejection is not None:
            self.log_rejection(rejection, metadata, email)
        return rejection

    async def check_history(
        self,
        db: AsyncSession,
        submission: QuoteSubmission,
        metadata: RequestMetadata,
    ) -> Optional[Rejection]:
        """Daily quota and duplicate suppression against stored quotes"""
        rejection = await self.check_daily_quota(db, submission, metadata)
        if rejection is None:
            rejection = await self.check_duplicate(db, submission, metadata)

        if rejection is not None:
            self.log_rejection(rejection, metadata, submission.email)
        return rejection

    # ---------- layers ----------

    async def check_rate_limit(self, metadata: RequestMetadata) -> Optional[Rejection]:
        allowed = await self.rate_limit_store.increment_and_check(
            f"quote:{metadata.ip_address}",
            self.config.rate_limit_window_seconds,
            self.config.rate_limit_max,
        )
        return None if allowed else RejectedRateLimited()

    async def check_captcha(self, signals: BotSignals, metadata: RequestMetadata) -> Optional[Rejection]:
        if self.captcha is None:
            return None
        if not signals.captcha_token:
            return RejectedCaptcha(layer=RejectionLayer.CAPTCHA_MISSING)

        try:
            verified = await self.captcha.verify(signals.captcha_token, metadata.ip_address)
        except CaptchaProviderError as e:
            # Provider down: the remaining layers still decide
            logger.log_error_with_context(
                e, "captcha_verify", client_ip=metadata.ip_address, provider=e.details.get("provider")
            )
            return None
        return None if verified else RejectedCaptcha(layer=RejectionLayer.CAPTCHA_FAILED)

    def check_honeypot(self, signals: BotSignals) -> Optional[Rejection]:
        for field_name in self.config.honeypot_fields:
            value = signals.decoy_fields.get(field_name)
            # Any non-blank value counts, whatever its JSON type
            if value is not None and str(value).strip():
                return RejectedBot(layer=RejectionLayer.HONEYPOT)
        return None

    def check_timing(self, signals: BotSignals, metadata: RequestMetadata) -> Optional[Rejection]:
        started = signals.form_started_at_ms
        if started is None:
            if self.config.require_form_timestamp:
                return RejectedBot(layer=RejectionLayer.MISSING_TIMESTAMP)
            return None

        elapsed_ms = epoch_ms(metadata.received_at) - started
        if elapsed_ms < 0:
            # Client clock ahead of ours; not evidence of a bot
            return None
        if elapsed_ms < self.config.min_elapsed_seconds * 1000:
            return RejectedBot(layer=RejectionLayer.TOO_FAST)
        if elapsed_ms > self.config.max_elapsed_seconds * 1000:
            return RejectedBot(layer=RejectionLayer.STALE)
        return None

    async def check_daily_quota(
        self, db: AsyncSession, submission: QuoteSubmission, metadata: RequestMetadata
    ) -> Optional[Rejection]:
        since = start_of_submission_day(metadata.received_at)
        count = await self.repository.count_by_email_since(db, submission.email, since)
        if count >= self.config.quota_per_day_max:
            return RejectedQuotaExceeded()
        return None

    async def check_duplicate(
        self, db: AsyncSession, submission: QuoteSubmission, metadata: RequestMetadata
    ) -> Optional[Rejection]:
        # Whichever is earlier: duplicate window start or the submission day start
        since = min(
            metadata.received_at - timedelta(seconds=self.config.duplicate_window_seconds),
            start_of_submission_day(metadata.received_at),
        )
        existing = await self.repository.find_recent_by_email_phone(
            db, submission.email, submission.phone, since
        )
        if existing is not None:
            return RejectedDuplicate()
        return None

    # ---------- logging ----------

    def log_rejection(
        self, rejection: Rejection, metadata: RequestMetadata, email: Optional[str] = None
    ) -> None:
        logger.log_security_event(
            "quote_intake",
            f"blocked_{rejection.layer.value}",
            ip_address=metadata.ip_address,
            email=email,
            layer=rejection.layer.value,
            user_agent=metadata.user_agent,
        )

"""
Wiring for the quote intake service (FastAPI dependency).
"""
from typing import Optional

from app.core.config import settings
from app.core.rate_limiter import build_rate_limit_store
from app.modules.quotes.captcha import build_captcha_verifier
from app.modules.quotes.gate import IntakeGate, QuoteGateConfig
from app.modules.quotes.notifier import QuoteNotifier
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.service import QuoteIntakeService

_quote_service: Optional[QuoteIntakeService] = None


def build_quote_service() -> QuoteIntakeService:
    """Assemble the service from current settings"""
    from app.services.email_service import email_service

    repository = QuoteRepository()
    gate = IntakeGate(
        build_rate_limit_store(),
        repository,
        QuoteGateConfig.from_settings(),
        captcha=build_captcha_verifier(),
    )
    notifier = QuoteNotifier(email_service, timeout_seconds=settings.QUOTE_NOTIFY_TIMEOUT_SECONDS)
    return QuoteIntakeService(gate, repository, notifier)


def get_quote_service() -> QuoteIntakeService:
    """Process-wide service instance (created on first use)"""
    global _quote_service
    if _quote_service is None:
        _quote_service = build_quote_service()
    return _quote_service

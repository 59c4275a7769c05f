"""
Quote Notifier - best-effort emails after a quote is stored.

The notifier runs outside the request: ``dispatch`` schedules a background
task and returns immediately. Each send is bounded by a timeout, and every
failure is logged and swallowed so the customer-facing result never depends
on the mail provider.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Sequence, Set

from app.core.exceptions import NotificationError, NotificationTimeoutError
from app.core.logging_config import logger
from app.models.quote_request import QuoteRequest


class NotificationTarget(str, Enum):
    STAFF = "staff"
    REQUESTER = "requester"


DEFAULT_TARGETS = (NotificationTarget.STAFF, NotificationTarget.REQUESTER)


@dataclass(frozen=True)
class QuoteNotification:
    """Detached snapshot of a stored quote, safe to use after the session closes"""
    quote_id: str
    reference_number: str
    name: str
    email: str
    phone: str
    created_at: datetime
    company: Optional[str] = None
    whatsapp: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[str] = None
    project_details: Optional[str] = None

    @classmethod
    def from_quote(cls, quote: QuoteRequest) -> "QuoteNotification":
        return cls(
            quote_id=quote.id,
            reference_number=quote.reference_number,
            name=quote.name,
            email=quote.email,
            phone=quote.phone,
            created_at=quote.created_at,
            company=quote.company,
            whatsapp=quote.whatsapp,
            product_name=quote.product_name,
            quantity=quote.quantity,
            project_details=quote.project_details,
        )


class QuoteMailer(Protocol):
    async def send_quote_notification(self, notification: QuoteNotification) -> bool:
        ...

    async def send_quote_confirmation(self, notification: QuoteNotification) -> bool:
        ...


class QuoteNotifier:
    """Sends quote emails with a per-send timeout; never raises to callers"""

    def __init__(self, mailer: QuoteMailer, timeout_seconds: float = 12.0):
        self.mailer = mailer
        self.timeout_seconds = timeout_seconds
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def notify(
        self,
        notification: QuoteNotification,
        targets: Sequence[NotificationTarget] = DEFAULT_TARGETS,
    ) -> bool:
        """Send to each target; True only when every send succeeded"""
        all_sent = True
        for target in targets:
            try:
                await self._send(notification, target)
            except NotificationError as e:
                all_sent = False
                logger.error(
                    f"[Notifier] {target.value} email for {notification.reference_number} failed: {e.message}",
                    extra={"event_type": "notification", "quote_id": notification.quote_id,
                           "target": target.value, "recipient": e.details.get("recipient"),
                           "error_code": e.code},
                )
            except Exception as e:
                all_sent = False
                logger.error(
                    f"[Notifier] Unexpected error sending {target.value} email for "
                    f"{notification.reference_number}: {type(e).__name__}: {e}",
                    exc_info=True,
                    extra={"event_type": "notification", "quote_id": notification.quote_id,
                           "target": target.value},
                )
        return all_sent

    async def _send(self, notification: QuoteNotification, target: NotificationTarget) -> None:
        if target == NotificationTarget.STAFF:
            send = self.mailer.send_quote_notification(notification)
            recipient = "staff"
        else:
            send = self.mailer.send_quote_confirmation(notification)
            recipient = notification.email

        try:
            sent = await asyncio.wait_for(send, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise NotificationTimeoutError(self.timeout_seconds, recipient) from e

        if not sent:
            raise NotificationError("Mailer reported failure", recipient)
        logger.info(f"[Notifier] Sent {target.value} email for {notification.reference_number}")

    def dispatch(
        self,
        notification: QuoteNotification,
        targets: Sequence[NotificationTarget] = DEFAULT_TARGETS,
    ) -> asyncio.Task:
        """Fire-and-forget; the task is tracked until it finishes"""
        task = asyncio.create_task(
            self.notify(notification, targets),
            name=f"quote-notify-{notification.quote_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[Notifier] Notification task {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[Notifier] Notification task {task.get_name()} crashed: {error}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight notifications (shutdown and tests)"""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"[Notifier] Cancelled {len(pending)} notification(s) still running at shutdown")

"""
Quote request model - the record every public quote submission creates.

Two unique constraints back the intake gate:

- (email, phone, submission_day): two racing identical submissions cannot
  both be stored; the duplicate pre-check only gives a friendlier answer.
- (email, submission_day, quota_slot): each accepted quote claims one of the
  numbered daily slots for its email, so a concurrent burst cannot exceed the
  per-email quota. Rows created outside the intake path leave the slot NULL.
"""

from sqlalchemy import Column, String, Integer, DateTime, Date, Text, Enum as SQLEnum, Index, UniqueConstraint
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import generate_uuid, submission_day


QUOTE_UNIQUE_CONSTRAINT = "uq_quote_requests_email_phone_day"
QUOTA_SLOT_CONSTRAINT = "uq_quote_requests_email_day_slot"


class QuoteStatus(str, enum.Enum):
    """Workflow status: new -> contacted -> quoted -> closed, needs_info on the side"""
    NEW = "new"
    CONTACTED = "contacted"
    QUOTED = "quoted"
    CLOSED = "closed"
    NEEDS_INFO = "needs_info"


class QuoteRequest(Base):
    """Customer quote request submitted from the public website"""
    __tablename__ = "quote_requests"
    __table_args__ = (
        UniqueConstraint("email", "phone", "submission_day", name=QUOTE_UNIQUE_CONSTRAINT),
        UniqueConstraint("email", "submission_day", "quota_slot", name=QUOTA_SLOT_CONSTRAINT),
        Index("ix_quote_requests_status_created_at", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Contact details
    name = Column(String(100), nullable=False)
    company = Column(String(150), nullable=True)
    phone = Column(String(30), nullable=False)
    whatsapp = Column(String(30), nullable=True)
    email = Column(String(255), nullable=False, index=True)

    # Request details
    product_name = Column(String(255), nullable=True)
    quantity = Column(String(50), nullable=True)  # free text, e.g. "100-200 units"
    project_details = Column(Text, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Admin workflow
    status = Column(
        SQLEnum(QuoteStatus, values_callable=lambda e: [m.value for m in e], name="quotestatus"),
        default=QuoteStatus.NEW,
        nullable=False,
        index=True,
    )
    notes = Column(Text, nullable=True)

    # Timestamps (naive UTC)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    submission_day = Column(Date, nullable=False)
    quota_slot = Column(Integer, nullable=True)  # 1..daily quota, set by the intake service

    def __init__(self, **kwargs):
        kwargs.setdefault("id", generate_uuid())
        created_at = kwargs.setdefault("created_at", datetime.utcnow())
        kwargs.setdefault("updated_at", created_at)
        kwargs.setdefault("submission_day", submission_day(created_at))
        kwargs.setdefault("status", QuoteStatus.NEW)
        super().__init__(**kwargs)

    @property
    def reference_number(self) -> str:
        """Human-readable reference, e.g. QR-20260203-A1B2C3"""
        return f"QR-{self.submission_day.strftime('%Y%m%d')}-{str(self.id)[:6].upper()}"

    def __repr__(self):
        return f"<QuoteRequest {self.id} {self.email} {self.status}>"

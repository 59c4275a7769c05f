"""
Quote Schemas - Request/Response models for the quote intake and admin inbox
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum


# International formats: +91 9876543210, (123) 456-7890, 0300 1234567
PHONE_PATTERN = r'^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$'


# ============== Enums ==============

class QuoteStatusEnum(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUOTED = "quoted"
    CLOSED = "closed"
    NEEDS_INFO = "needs_info"


class QuoteSortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    STATUS = "status"
    NAME = "name"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ============== Public submission ==============

class QuoteSubmitRequest(BaseModel):
    """
    Customer fields of the public quote form.

    The anti-bot fields (honeypot, website, formStartTs, captchaToken) are
    read from the raw body by the screening stage and are not part of this
    model.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(..., min_length=2, max_length=100, description="Customer name")
    company: Optional[str] = Field(None, max_length=150)
    phone: str = Field(..., min_length=1, max_length=30, pattern=PHONE_PATTERN)
    whatsapp: Optional[str] = Field(None, max_length=30, pattern=PHONE_PATTERN)
    email: EmailStr
    product_name: Optional[str] = Field(
        None, max_length=255, validation_alias=AliasChoices("product_name", "productName")
    )
    quantity: Optional[str] = Field(None, max_length=50, description="Free text, e.g. '500 units'")
    project_details: Optional[str] = Field(
        None, max_length=1000, validation_alias=AliasChoices("project_details", "projectDetails")
    )

    @field_validator('company', 'whatsapp', 'product_name', 'quantity', 'project_details', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('email', mode='after')
    @classmethod
    def normalize_email(cls, v):
        # Case differences must not bypass duplicate and quota checks
        return v.strip().lower()


class QuoteSubmitResponse(BaseModel):
    """Returned to the website when a quote request is recorded"""
    success: bool = True
    message: str = "Quote request submitted successfully. We will contact you soon."
    id: str
    reference_number: str


# ============== Admin inbox ==============

class QuoteResponse(BaseModel):
    """Full quote request as shown to admins"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_number: str
    name: str
    company: Optional[str] = None
    phone: str
    whatsapp: Optional[str] = None
    email: str
    product_name: Optional[str] = None
    quantity: Optional[str] = None
    project_details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    status: QuoteStatusEnum
    notes: Optional[str] = None
    submission_day: date
    created_at: datetime
    updated_at: datetime


class QuoteUpdate(BaseModel):
    """Admin update - only workflow status and internal notes can change"""
    status: Optional[QuoteStatusEnum] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator('notes', mode='before')
    @classmethod
    def strip_notes(cls, v):
        return v.strip() if isinstance(v, str) else v


class QuoteListResponse(BaseModel):
    """Paginated quote inbox"""
    items: List[QuoteResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class ResendNotificationResponse(BaseModel):
    quote_id: str
    reference_number: str
    sent: bool
    message: str

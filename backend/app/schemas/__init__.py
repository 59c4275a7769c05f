# Pydantic schemas
from app.schemas.quote import (
    QuoteSubmitRequest,
    QuoteSubmitResponse,
    QuoteResponse,
    QuoteUpdate,
    QuoteListResponse,
    QuoteStatusEnum,
    QuoteSortField,
    SortOrder,
    ResendNotificationResponse,
)
from app.schemas.auth import AdminLogin, AdminResponse, LoginResponse

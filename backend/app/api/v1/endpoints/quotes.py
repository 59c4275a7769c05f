"""
Quote API Endpoints

Public:
- POST /quotes - Submit a quote request from the website form (screened before validation)

Admin (Bearer token):
- GET  /quotes - Paginated inbox with status filter and sorting
- GET  /quotes/{quote_id} - Quote detail
- PUT  /quotes/{quote_id} - Update status / internal notes
- POST /quotes/{quote_id}/resend-notification - Re-send the staff email
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import get_client_ip
from app.models.admin_user import AdminUser
from app.models.quote_request import QuoteStatus
from app.modules.auth.dependencies import get_current_admin, require_quote_editor
from app.modules.quotes.dependencies import get_quote_service
from app.modules.quotes.results import (
    Accepted,
    BotSignals,
    QuoteSubmission,
    RejectedBot,
    RejectedCaptcha,
    RejectedDuplicate,
    RejectedQuotaExceeded,
    RejectedRateLimited,
    RequestMetadata,
    SubmissionResult,
)
from app.modules.quotes.service import QuoteIntakeService
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

router = APIRouter(prefix="/quotes", tags=["Quotes"])


# Rejection type -> (HTTP status, error code)
REJECTION_RESPONSES = {
    RejectedRateLimited: (status.HTTP_429_TOO_MANY_REQUESTS, "RATE_LIMITED"),
    RejectedCaptcha: (status.HTTP_400_BAD_REQUEST, "CAPTCHA_FAILED"),
    RejectedBot: (status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST"),
    RejectedQuotaExceeded: (status.HTTP_429_TOO_MANY_REQUESTS, "QUOTA_EXCEEDED"),
    RejectedDuplicate: (status.HTTP_429_TOO_MANY_REQUESTS, "DUPLICATE_SUBMISSION"),
}

# Documents the body for OpenAPI; the route parses it itself
QUOTE_FORM_OPENAPI = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": QuoteSubmitRequest.model_json_schema()}},
    }
}


def rejection_response(result: SubmissionResult, retry_after: Optional[int] = None) -> JSONResponse:
    status_code, code = REJECTION_RESPONSES[type(result)]
    headers = {"Retry-After": str(retry_after)} if retry_after and status_code == 429 else None
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": result.message}},
        headers=headers,
    )


async def read_json_body(request: Request) -> Any:
    """Decoded JSON body, or None when it is missing or not JSON"""
    try:
        return await request.json()
    except ValueError:
        return None


def parse_quote_form(body: Any) -> QuoteSubmitRequest:
    """Validate the customer fields; failures surface as the usual 422"""
    try:
        return QuoteSubmitRequest.model_validate(body)
    except ValidationError as e:
        errors = [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)]
        raise RequestValidationError(errors, body=body)


@router.post(
    "",
    response_model=QuoteSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    openapi_extra=QUOTE_FORM_OPENAPI,
)
async def submit_quote(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: QuoteIntakeService = Depends(get_quote_service),
):
    """
    Submit a quote request.

    The rate limit, captcha, honeypot and timing layers run on the raw body
    before field validation, so every post counts against the IP and bots
    never see validation details. Returns 201 with a reference number when
    stored, 400/429 with a generic message for rejections, 422 for invalid
    fields and 503 when the rate-limit store or database is unavailable.
    """
    metadata = RequestMetadata(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        received_at=datetime.utcnow(),
    )
    body = await read_json_body(request)
    signals = BotSignals.from_body(body, service.gate.config.honeypot_fields)

    rejection = await service.screen_request(signals, metadata)
    if rejection is None:
        payload = parse_quote_form(body)
        submission = QuoteSubmission(
            name=payload.name,
            phone=payload.phone,
            email=payload.email,
            company=payload.company,
            whatsapp=payload.whatsapp,
            product_name=payload.product_name,
            quantity=payload.quantity,
            project_details=payload.project_details,
            decoy_fields=signals.decoy_fields,
            form_started_at_ms=signals.form_started_at_ms,
            captcha_token=signals.captcha_token,
        )
        result = await service.submit_screened(db, submission, metadata)
    else:
        result = rejection

    if isinstance(result, Accepted):
        return QuoteSubmitResponse(
            message=result.message,
            id=result.quote_id,
            reference_number=result.reference_number,
        )

    retry_after = None
    if isinstance(result, RejectedRateLimited):
        retry_after = service.gate.config.rate_limit_window_seconds
    return rejection_response(result, retry_after)


@router.get("", response_model=QuoteListResponse)
async def list_quotes(
    status_filter: Optional[QuoteStatusEnum] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: QuoteSortField = Query(QuoteSortField.CREATED_AT),
    order: SortOrder = Query(SortOrder.DESC),
    admin: AdminUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    service: QuoteIntakeService = Depends(get_quote_service),
):
    """List quote requests, newest first by default"""
    return await service.list_quotes(
        db,
        status=QuoteStatus(status_filter.value) if status_filter else None,
        page=page,
        page_size=page_size,
        sort_by=sort_by.value,
        order=order.value,
    )


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: str,
    admin: AdminUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    service: QuoteIntakeService = Depends(get_quote_service),
):
    return await service.get_quote(db, quote_id)


@router.put("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: str,
    update: QuoteUpdate,
    admin: AdminUser = Depends(require_quote_editor),
    db: AsyncSession = Depends(get_db),
    service: QuoteIntakeService = Depends(get_quote_service),
):
    """Update workflow status and/or internal notes"""
    return await service.update_quote(db, quote_id, update, admin_email=admin.email)


@router.post("/{quote_id}/resend-notification", response_model=ResendNotificationResponse)
async def resend_notification(
    quote_id: str,
    admin: AdminUser = Depends(require_quote_editor),
    db: AsyncSession = Depends(get_db),
    service: QuoteIntakeService = Depends(get_quote_service),
):
    """Re-send the staff notification email and report whether it went out"""
    quote, sent = await service.resend_notification(db, quote_id)
    return ResendNotificationResponse(
        quote_id=quote.id,
        reference_number=quote.reference_number,
        sent=sent,
        message="Notification sent" if sent else "Notification could not be sent; check the mail configuration and logs",
    )

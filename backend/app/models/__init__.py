# Re-export all models for convenient imports
from app.models.quote_request import QuoteRequest, QuoteStatus, QUOTE_UNIQUE_CONSTRAINT
from app.models.admin_user import AdminUser, AdminRole, QUOTE_EDITOR_ROLES

__all__ = [
    # Quotes
    "QuoteRequest",
    "QuoteStatus",
    "QUOTE_UNIQUE_CONSTRAINT",
    # Admin
    "AdminUser",
    "AdminRole",
    "QUOTE_EDITOR_ROLES",
]

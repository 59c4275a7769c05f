"""
Custom Exceptions for the Electrical Supplier backend
=====================================================

Abuse and policy rejections of a quote submission (rate limit, honeypot,
timing, quota, duplicate) are NOT exceptions: they are returned as typed
results from the intake service. Exceptions here cover the cases the
caller cannot recover from locally.

Usage:
    from app.core.exceptions import QuoteNotFoundError, PersistenceError

    if not quote:
        raise QuoteNotFoundError(quote_id)
"""

from typing import Optional, Any, Dict


class SupplierError(Exception):
    """Base exception for all application errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(SupplierError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class QuoteNotFoundError(ResourceNotFoundError):
    """Quote request not found"""

    def __init__(self, quote_id: str):
        super().__init__("Quote", quote_id)


# ============================================
# Infrastructure Errors (503-type, fail closed)
# ============================================

class ServiceUnavailableError(SupplierError):
    """
    A dependency needed to evaluate or record a submission is unavailable.

    The request must not be let through; the API answers with a generic
    "try again later" and the detail stays in the logs.
    """

    status_code = 503
    public_message = "Service temporarily unavailable. Please try again later."

    def __init__(self, message: str, dependency: str):
        super().__init__(message, code="SERVICE_UNAVAILABLE", details={"dependency": dependency})


class RateLimitStoreUnavailableError(ServiceUnavailableError):
    """Rate-limit counter store could not be reached"""

    def __init__(self, message: str = "Rate limit store unavailable"):
        super().__init__(message, dependency="rate_limit_store")
        self.code = "RATE_LIMIT_STORE_UNAVAILABLE"


class PersistenceError(ServiceUnavailableError):
    """Database read or write failed for a reason other than a uniqueness conflict"""

    def __init__(self, message: str = "Database operation failed", operation: Optional[str] = None):
        super().__init__(message, dependency="database")
        self.code = "PERSISTENCE_ERROR"
        if operation:
            self.details["operation"] = operation


# ============================================
# Notification Errors (never surfaced to the submitter)
# ============================================

class NotificationError(SupplierError):
    """Outbound notification could not be delivered"""

    def __init__(self, message: str, recipient: Optional[str] = None):
        super().__init__(message, code="NOTIFICATION_FAILED")
        if recipient:
            self.details["recipient"] = recipient


class NotificationTimeoutError(NotificationError):
    """Mail provider did not answer within the notify timeout"""

    def __init__(self, timeout_seconds: float, recipient: Optional[str] = None):
        super().__init__(f"Notification timed out after {timeout_seconds}s", recipient)
        self.code = "NOTIFICATION_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


# ============================================
# Captcha Errors (logged; the submission continues)
# ============================================

class CaptchaProviderError(SupplierError):
    """Captcha provider unreachable or answered with something unusable"""

    def __init__(self, message: str, provider: str):
        super().__init__(message, code="CAPTCHA_PROVIDER_ERROR", details={"provider": provider})


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: SupplierError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }

from pydantic_settings import BaseSettings
from typing import List, Any
import json


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_field_names(v: Any) -> List[str]:
    """Parse a comma-separated list of form field names"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        return [name.strip() for name in v.split(',') if name.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Electrical Supplier API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Honour X-Forwarded-For when running behind a reverse proxy
    TRUST_PROXY_HEADERS: bool = False

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_ECHO: bool = False

    # ==========================================
    # Redis (empty = in-memory rate limiting, single instance only)
    # ==========================================
    REDIS_URL: str = ""

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # 8 hours - one admin working day
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_START_TLS: bool = True
    EMAIL_FROM: str = "noreply@electrical-supplier.local"
    EMAIL_FROM_NAME: str = "Electrical Supplier"
    ADMIN_EMAIL: str = ""

    # Company details used in customer-facing emails
    COMPANY_NAME: str = "Electrical Supplier"
    COMPANY_PHONE: str = ""
    COMPANY_WHATSAPP: str = ""
    COMPANY_ADDRESS: str = ""

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting (general API, slowapi)
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60

    # ==========================================
    # Quote Intake Gate
    # ==========================================
    QUOTE_RATE_LIMIT_WINDOW_SECONDS: int = 3600  # 1 hour
    QUOTE_RATE_LIMIT_MAX_REQUESTS: int = 5
    QUOTE_MAX_PER_EMAIL_PER_DAY: int = 5
    QUOTE_MIN_ELAPSED_SECONDS: float = 1.5
    QUOTE_MAX_ELAPSED_SECONDS: float = 3600.0  # forms older than 1 hour are stale
    QUOTE_DEDUP_WINDOW_SECONDS: int = 600  # 10 minutes
    QUOTE_REQUIRE_FORM_TIMESTAMP: bool = False
    QUOTE_HONEYPOT_FIELDS_STR: str = "honeypot,website"
    QUOTE_NOTIFY_TIMEOUT_SECONDS: float = 12.0

    @property
    def QUOTE_HONEYPOT_FIELDS(self) -> List[str]:
        return parse_field_names(self.QUOTE_HONEYPOT_FIELDS_STR)

    # ==========================================
    # Captcha (optional; Turnstile or hCaptcha)
    # ==========================================
    CAPTCHA_SITE_KEY: str = ""  # Turnstile site keys start with 0x
    CAPTCHA_SECRET_KEY: str = ""
    CAPTCHA_TIMEOUT_SECONDS: float = 5.0

    @property
    def captcha_configured(self) -> bool:
        return bool(self.CAPTCHA_SITE_KEY and self.CAPTCHA_SECRET_KEY)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty = console only

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def email_configured(self) -> bool:
        """SMTP is usable only with a host and real (non-placeholder) credentials"""
        def looks_like_placeholder(value: str) -> bool:
            v = (value or "").strip().lower()
            return "your-email" in v or "your-app-password" in v

        if not (self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD):
            return False
        return not (looks_like_placeholder(self.SMTP_USER) or looks_like_placeholder(self.SMTP_PASSWORD))


# Create settings instance
settings = Settings()

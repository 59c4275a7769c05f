"""Optional captcha verification (Cloudflare Turnstile or hCaptcha)."""

from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import CaptchaProviderError
from app.core.logging_config import logger


class CaptchaVerifier:
    """Verify a widget token with the provider matching the site key."""

    TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    HCAPTCHA_VERIFY_URL = "https://hcaptcha.com/siteverify"

    def __init__(
        self,
        site_key: str,
        secret_key: str,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.site_key = site_key
        self.secret_key = secret_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def provider(self) -> str:
        # Turnstile site keys start with 0x
        return "turnstile" if self.site_key.startswith("0x") else "hcaptcha"

    @property
    def verify_url(self) -> str:
        return self.TURNSTILE_VERIFY_URL if self.provider == "turnstile" else self.HCAPTCHA_VERIFY_URL

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """
        Ask the provider whether ``token`` is valid.

        Returns the provider's verdict. Raises CaptchaProviderError when the
        provider cannot be reached or answers with something unusable.
        """
        form = {"secret": self.secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.verify_url, data=form)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CaptchaProviderError(f"Captcha verification request failed: {e}", self.provider) from e
        if not isinstance(data, dict):
            raise CaptchaProviderError("Unexpected captcha verification response", self.provider)

        if not data.get("success"):
            logger.info(
                f"[Captcha] {self.provider} refused token",
                extra={"event_type": "captcha_refused", "errors": data.get("error-codes")},
            )
            return False
        return True


def build_captcha_verifier() -> Optional[CaptchaVerifier]:
    """Verifier from settings, or None when captcha is not configured"""
    if not settings.captcha_configured:
        return None
    return CaptchaVerifier(
        settings.CAPTCHA_SITE_KEY,
        settings.CAPTCHA_SECRET_KEY,
        timeout_seconds=settings.CAPTCHA_TIMEOUT_SECONDS,
    )

"""
Google reCAPTCHA v3 verification
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import IS_PRODUCTION, RECAPTCHA_MIN_SCORE, RECAPTCHA_SECRET_KEY, RECAPTCHA_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    score: Optional[float] = None
    action: Optional[str] = None
    hostname: Optional[str] = None
    error_codes: list[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, body: dict) -> "VerificationResult":
        score = body.get("score")
        # Anything but a real number is treated as no score
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
            score = None
        return cls(
            success=body.get("success") is True,
            score=score,
            action=body.get("action"),
            hostname=body.get("hostname"),
            error_codes=list(body.get("error-codes") or []),
        )


class RecaptchaVerifier:
    """
    Verifies client tokens against the reCAPTCHA siteverify endpoint.

    Missing token, missing secret or a non-production environment skip the
    check (the request passes). Once a call is attempted, any failure to get a
    clean answer (network error, timeout, non-2xx, bad JSON) counts as a
    failed verification.
    """

    def __init__(
        self,
        secret_key: Optional[str] = RECAPTCHA_SECRET_KEY,
        production: bool = IS_PRODUCTION,
        min_score: Optional[float] = RECAPTCHA_MIN_SCORE,
        timeout: float = RECAPTCHA_TIMEOUT_SECONDS,
        verify_url: str = RECAPTCHA_VERIFY_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.production = production
        self.min_score = min_score
        self.timeout = timeout
        self.verify_url = verify_url
        self._transport = transport

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        """
        Verify a reCAPTCHA token

        Args:
            token: Token from the client widget (optional)
            remote_ip: Client IP address (optional)

        Returns:
            True if the request may proceed, False otherwise
        """
        if not self.production or not token:
            return True

        if not self.secret_key:
            logger.warning("⚠️ RECAPTCHA_SECRET_KEY not configured - skipping reCAPTCHA verification")
            return True

        data = {"secret": self.secret_key, "response": token}
        if remote_ip and remote_ip != "unknown":
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(self.verify_url, data=data)
                response.raise_for_status()
                result = VerificationResult.from_response(response.json())
        except Exception as e:
            logger.error(f"❌ reCAPTCHA verification error for IP {remote_ip}: {type(e).__name__}: {e}")
            return False

        if not result.success:
            logger.warning(
                f"❌ reCAPTCHA verification failed for IP: {remote_ip} - Errors: {result.error_codes}"
            )
            return False

        if self.min_score is not None and (result.score is None or result.score < self.min_score):
            logger.warning(
                f"❌ reCAPTCHA score {result.score} below threshold {self.min_score} for IP: {remote_ip}"
            )
            return False

        logger.info(f"✅ reCAPTCHA verification successful for IP: {remote_ip} (score: {result.score})")
        return True

"""
Anti-abuse checks applied after schema validation
"""

from typing import Any, Optional

from .recaptcha import RecaptchaVerifier


def check_honeypot(value: Any) -> bool:
    """True when the hidden field is absent or empty, as it always is for real browsers"""
    return value is None or value == ""


class AbuseGuard:
    """Honeypot trap plus bot-score verification"""

    def __init__(self, verifier: Optional[RecaptchaVerifier] = None):
        self.verifier = verifier or RecaptchaVerifier()

    def check_honeypot(self, value: Any) -> bool:
        return check_honeypot(value)

    async def verify_bot_score(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        return await self.verifier.verify(token, remote_ip)

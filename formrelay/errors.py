"""
Submission pipeline failures

Every subclass carries the HTTP status and the message that is safe to show
the visitor. Internal detail goes to the log, never into ``public_message``.
"""

from typing import Any, Optional

from .config import SUPPORT_EMAIL
from .schemas import FieldError

TECHNICAL_DIFFICULTIES = (
    "We're experiencing technical difficulties. "
    f"Please try again later or contact support directly at {SUPPORT_EMAIL}"
)


class SubmissionError(Exception):
    status_code = 500
    public_message = TECHNICAL_DIFFICULTIES
    event = "Form Submission Error"

    def __init__(self, detail: Optional[str] = None, **log_fields: Any):
        super().__init__(detail or self.public_message)
        self.log_fields = log_fields


class RateLimitExceeded(SubmissionError):
    status_code = 429
    public_message = "Too many requests. Please try again in a few minutes."
    event = "Rate Limit Exceeded"

    def __init__(self, retry_after: int = 0):
        super().__init__(f"retry after {retry_after}s", retryAfter=retry_after)
        self.retry_after = retry_after


class ValidationFailed(SubmissionError):
    status_code = 400
    public_message = "Please check your input and try again"
    event = "Form Validation Failed"

    def __init__(self, errors: list[FieldError]):
        super().__init__(
            f"{len(errors)} invalid field(s)",
            validationErrors=[error.to_dict() for error in errors],
        )
        self.errors = errors


class AbuseDetected(SubmissionError):
    status_code = 400


class HoneypotTriggered(AbuseDetected):
    public_message = "Form submission rejected"
    event = "Honeypot Triggered"


class VerificationFailed(AbuseDetected):
    public_message = "Security verification failed. Please refresh the page and try again."
    event = "reCAPTCHA Verification Failed"


class DispatchFailed(SubmissionError):
    event = "Email Sending Failed"

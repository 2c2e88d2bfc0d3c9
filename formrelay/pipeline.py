"""
Form submission pipeline

One pass per request, strictly in order:

    rate limit -> validation -> honeypot -> bot score (contact only)
      -> render -> dispatch -> log

Any stage can end the pass. Whatever happens, ``process`` returns a
``SubmissionOutcome``; nothing escapes to the HTTP layer.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from .abuse_guard import AbuseGuard
from .config import NOTIFICATION_EMAIL
from .diagnostics import DiagnosticContext, log_error, log_info
from .email_service import EmailOptions, EmailService
from .email_templates import template_for
from .errors import (
    TECHNICAL_DIFFICULTIES,
    DispatchFailed,
    HoneypotTriggered,
    RateLimitExceeded,
    SubmissionError,
    ValidationFailed,
    VerificationFailed,
)
from .rate_limiter import RateLimiter
from .schemas import ApplicationSubmission, ContactSubmission, FormKind, Submission, validate_submission

SUCCESS_MESSAGES = {
    FormKind.CONTACT: "Message sent successfully",
    FormKind.APPLICATION: "Application submitted successfully",
}


@dataclass(frozen=True)
class SubmissionOutcome:
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status_code == 200

    @classmethod
    def from_error(cls, error: SubmissionError) -> "SubmissionOutcome":
        body: dict[str, Any] = {"error": error.public_message}
        headers = {}
        if isinstance(error, ValidationFailed):
            body["details"] = [e.to_dict() for e in error.errors]
        if isinstance(error, RateLimitExceeded):
            headers["Retry-After"] = str(error.retry_after)
        return cls(status_code=error.status_code, body=body, headers=headers)


def _single_line(value: str) -> str:
    return " ".join(value.split())


class SubmissionPipeline:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        abuse_guard: AbuseGuard,
        email_service: EmailService,
        notification_to: str = NOTIFICATION_EMAIL,
    ):
        self.rate_limiter = rate_limiter
        self.abuse_guard = abuse_guard
        self.email_service = email_service
        self.notification_to = notification_to

    async def process(self, kind: FormKind, payload: Any, context: DiagnosticContext) -> SubmissionOutcome:
        """Run one submission through every stage and describe the result"""
        try:
            submission = await self._run(kind, payload, context)
        except (RateLimitExceeded, ValidationFailed, HoneypotTriggered, VerificationFailed) as e:
            # Expected rejections - no traceback needed
            log_error(e.event, None, context, form=kind.value, **e.log_fields)
            return SubmissionOutcome.from_error(e)
        except SubmissionError as e:
            log_error(e.event, e, context, form=kind.value, **e.log_fields)
            return SubmissionOutcome.from_error(e)
        except Exception as e:
            log_error("Unexpected Form Error", e, context, form=kind.value)
            return SubmissionOutcome(status_code=500, body={"error": TECHNICAL_DIFFICULTIES})

        log_info(
            "Form Submission Success",
            f"{kind.value.capitalize()} form submitted successfully",
            context,
            form=kind.value,
            email=submission.email,
        )
        return SubmissionOutcome(
            status_code=200,
            body={"success": True, "message": SUCCESS_MESSAGES[kind]},
        )

    async def _run(self, kind: FormKind, payload: Any, context: DiagnosticContext) -> Submission:
        decision = await asyncio.to_thread(self.rate_limiter.check, context.client_ip)
        if not decision.allowed:
            raise RateLimitExceeded(decision.retry_after)

        result = validate_submission(kind, payload)
        if not result.ok:
            raise ValidationFailed(result.errors)
        submission = result.submission

        if not self.abuse_guard.check_honeypot(submission.honeypot):
            raise HoneypotTriggered()

        if kind is FormKind.CONTACT:
            if not await self.abuse_guard.verify_bot_score(submission.token, context.client_ip):
                raise VerificationFailed()

        options = self.build_notification(kind, submission, context)

        outcome = await self.email_service.send_email(options)
        if not outcome:
            raise DispatchFailed(outcome.error or "Failed to send email notification", email=submission.email)

        return submission

    def template_data(self, submission: Submission, context: DiagnosticContext) -> dict[str, Any]:
        data = submission.template_data()
        data["timestamp"] = data.get("timestamp") or context.timestamp
        data["ip"] = context.client_ip
        data["userAgent"] = context.user_agent
        return data

    def build_notification(
        self, kind: FormKind, submission: Submission, context: DiagnosticContext
    ) -> EmailOptions:
        """Render the notification for a validated submission"""
        rendered = template_for(kind).render(self.template_data(submission, context))

        if isinstance(submission, ContactSubmission):
            subject = f"Contact Form: {submission.subject}"
            reply_to = submission.email
        elif isinstance(submission, ApplicationSubmission):
            subject = f"New Application: {submission.first_name} {submission.last_name}"
            reply_to = None
        else:
            raise TypeError(f"Unsupported submission type: {type(submission).__name__}")

        return EmailOptions(
            to=self.notification_to,
            subject=_single_line(subject),
            html=rendered.html,
            text=rendered.text,
            reply_to=reply_to,
        )

import logging
from typing import Callable, Optional

import pytest

from formrelay.abuse_guard import AbuseGuard
from formrelay.diagnostics import DiagnosticContext
from formrelay.email_service import EmailService
from formrelay.pipeline import SubmissionPipeline
from formrelay.rate_limiter import RateLimiter
from formrelay.recaptcha import RecaptchaVerifier

from .fakes import FakeSmtpTransport


@pytest.fixture()
def context() -> DiagnosticContext:
    return DiagnosticContext(
        timestamp="2024-05-01T12:00:00.000Z",
        client_ip="203.0.113.7",
        user_agent="pytest-agent/1.0",
    )


@pytest.fixture()
def contact_payload() -> dict:
    return {
        "name": "Jane Doe",
        "email": "JANE@EX.com",
        "subject": "Hello!",
        "message": "Hi there, yo",
    }


@pytest.fixture()
def application_payload() -> dict:
    return {
        "firstName": "John",
        "lastName": "Smith",
        "email": "John.Smith@Example.com",
        "phone": "+15551234567",
        "street": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "servicePackage": "Business Strategy",
        "consultationGoals": "Grow revenue by entering new markets",
        "businessStage": "Growth",
        "primaryAreaOfExpertise": "Marketing",
        "yearsOfExperience": 5,
        "challenges": "Limited brand awareness in new regions",
        "businessObjectives": "Double the customer base in two years",
        "successMetrics": "Monthly recurring revenue and churn",
        "budget": "$10k-$25k",
        "projectDuration": "4-6 months",
    }


@pytest.fixture()
def smtp_transport() -> FakeSmtpTransport:
    return FakeSmtpTransport()


@pytest.fixture()
def make_pipeline(smtp_transport) -> Callable[..., SubmissionPipeline]:
    """Factory for pipelines wired to in-memory fakes"""

    def _make(
        email_service: Optional[EmailService] = None,
        verifier: Optional[RecaptchaVerifier] = None,
        limit: int = 10,
    ) -> SubmissionPipeline:
        return SubmissionPipeline(
            rate_limiter=RateLimiter(limit=limit, window_seconds=60),
            abuse_guard=AbuseGuard(verifier or RecaptchaVerifier(secret_key=None, production=True)),
            email_service=email_service
            or EmailService(transport=smtp_transport, default_from="site@carlora.com", production=True),
            notification_to="inbox@carlora.com",
        )

    return _make


@pytest.fixture()
def event_log(caplog):
    caplog.set_level(logging.INFO, logger="formrelay.events")

    def _events(name: Optional[str] = None) -> list[logging.LogRecord]:
        return [r for r in caplog.records if hasattr(r, "event") and (name is None or r.event == name)]

    return _events

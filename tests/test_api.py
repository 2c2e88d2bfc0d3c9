"""End-to-end tests through the HTTP layer"""

import pytest
from fastapi.testclient import TestClient

from formrelay import pipeline as pipeline_module
from formrelay.config import RECAPTCHA_SITE_KEY
from formrelay.email_service import EmailService
from formrelay.main import create_app


@pytest.fixture()
def client(make_pipeline):
    with TestClient(create_app(pipeline=make_pipeline())) as test_client:
        yield test_client


def test_contact_submission_with_unconfigured_email(make_pipeline, contact_payload, event_log):
    app = create_app(pipeline=make_pipeline(email_service=EmailService(transport=None, production=True)))

    with TestClient(app) as client:
        response = client.post("/api/contact", json=contact_payload, headers={"User-Agent": "browser/2.0"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Message sent successfully"}
    [record] = event_log("Form Submission Success")
    assert record.context["email"] == "jane@ex.com"
    assert record.context["user_agent"] == "browser/2.0"


def test_application_missing_consultation_goals(client, application_payload, smtp_transport):
    del application_payload["consultationGoals"]

    response = client.post("/api/applications", json=application_payload)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Please check your input and try again"
    assert [d["field"] for d in body["details"]] == ["consultationGoals"]
    assert smtp_transport.sent_messages == []


def test_application_success(client, application_payload, smtp_transport):
    response = client.post("/api/applications", json=application_payload)

    assert response.status_code == 200
    assert response.json()["message"] == "Application submitted successfully"
    assert smtp_transport.sent_messages[0]["Subject"] == "New Application: John Smith"


def test_eleventh_request_from_same_ip_is_throttled(client, contact_payload, monkeypatch):
    validated = []
    real_validate = pipeline_module.validate_submission

    def counting_validate(kind, payload):
        validated.append(kind)
        return real_validate(kind, payload)

    monkeypatch.setattr(pipeline_module, "validate_submission", counting_validate)
    headers = {"X-Forwarded-For": "198.51.100.23, 10.0.0.1"}

    responses = [client.post("/api/contact", json=contact_payload, headers=headers) for _ in range(11)]

    assert [r.status_code for r in responses[:10]] == [200] * 10
    throttled = responses[10]
    assert throttled.status_code == 429
    assert throttled.json() == {"error": "Too many requests. Please try again in a few minutes."}
    assert "details" not in throttled.json()
    assert int(throttled.headers["Retry-After"]) > 0
    assert len(validated) == 10


def test_other_addresses_are_not_throttled(client, contact_payload):
    for _ in range(10):
        client.post("/api/contact", json=contact_payload, headers={"X-Forwarded-For": "198.51.100.23"})

    response = client.post("/api/contact", json=contact_payload, headers={"X-Forwarded-For": "198.51.100.24"})

    assert response.status_code == 200


@pytest.mark.parametrize("content", [b"", b"{not json", b"[1, 2, 3]"])
def test_unusable_body_is_a_validation_error(client, content):
    response = client.post("/api/contact", content=content, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["details"] == [{"field": "", "message": "Expected a JSON object"}]


def test_deeply_nested_body_is_a_validation_error(client):
    content = b"[" * 200_000 + b"]" * 200_000

    response = client.post("/api/contact", content=content, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["details"] == [{"field": "", "message": "Expected a JSON object"}]


def test_honeypot_rejection(client, contact_payload):
    contact_payload["honeypot"] = "filled by a bot"

    response = client.post("/api/contact", json=contact_payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Form submission rejected"}


def test_forms_config_exposes_site_key(client):
    response = client.get("/api/forms/config")

    assert response.status_code == 200
    assert response.json() == {"recaptchaSiteKey": RECAPTCHA_SITE_KEY}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["email"] == {"configured": True, "delivers": True}


def test_email_health_check(client, smtp_transport):
    response = client.get("/health/email")

    assert response.json() == {"status": "healthy", "email": {"connected": True}}
    assert smtp_transport.verify_calls == 1


def test_email_health_check_unconfigured(make_pipeline):
    app = create_app(pipeline=make_pipeline(email_service=EmailService(transport=None)))

    with TestClient(app) as client:
        response = client.get("/health/email")

    assert response.json() == {"status": "unconfigured", "email": {"connected": False}}

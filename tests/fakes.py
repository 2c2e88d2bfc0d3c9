"""In-memory stand-ins for the SMTP relay and the reCAPTCHA service"""

from typing import Optional

import httpx


class FakeSmtpTransport:
    """SMTP transport that records messages in memory for test assertions"""

    host = "smtp.test"

    def __init__(self):
        self.sent_messages: list = []
        self.error: Optional[Exception] = None
        self.verify_calls = 0

    def fail_with(self, error: Exception):
        self.error = error

    def send_mail(self, message) -> str:
        if self.error is not None:
            raise self.error
        self.sent_messages.append(message)
        return message["Message-ID"]

    def verify(self):
        self.verify_calls += 1
        if self.error is not None:
            raise self.error


class ExplodingTransport(FakeSmtpTransport):
    """Fails the test if any network call is attempted"""

    def send_mail(self, message) -> str:
        raise AssertionError("send_mail must not be called")


def recaptcha_transport(body: Optional[dict] = None, status_code: int = 200, error: Optional[Exception] = None):
    """httpx MockTransport standing in for the siteverify endpoint; records requests"""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if error is not None:
            raise error
        return httpx.Response(status_code, json=body if body is not None else {"success": True, "score": 0.9})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport

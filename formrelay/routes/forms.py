"""
Public website form endpoints (contact, application)
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..config import RECAPTCHA_SITE_KEY
from ..diagnostics import DiagnosticContext
from ..pipeline import SubmissionPipeline
from ..schemas import FormKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Forms"])


def get_pipeline(request: Request) -> SubmissionPipeline:
    return request.app.state.pipeline


async def read_json_body(request: Request) -> Any:
    """Decoded JSON body, or None when it is missing or malformed"""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, RecursionError) as e:
        logger.warning(f"Malformed JSON body for {request.url.path}: {type(e).__name__}")
        return None


async def handle_submission(kind: FormKind, request: Request) -> JSONResponse:
    context = DiagnosticContext.from_request(request)
    payload = await read_json_body(request)
    outcome = await get_pipeline(request).process(kind, payload, context)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body, headers=outcome.headers)


@router.post("/contact")
async def submit_contact_form(request: Request):
    """Contact form - rate limited, honeypot and reCAPTCHA protected"""
    return await handle_submission(FormKind.CONTACT, request)


@router.post("/applications")
async def submit_application_form(request: Request):
    """Consulting application form - rate limited and honeypot protected"""
    return await handle_submission(FormKind.APPLICATION, request)


@router.get("/forms/config")
def forms_config():
    """Public settings the frontend needs to render the forms"""
    return {"recaptchaSiteKey": RECAPTCHA_SITE_KEY}

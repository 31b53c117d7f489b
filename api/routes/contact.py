"""
api/routes/contact.py -- Contact-form submission endpoints.

Routes:
  POST /api/contact_form_submissions  -- public; landing-page visitors submit here
  GET  /api/contact_form_submissions  -- admin only
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request

from api import paths
from api.models import ContactSubmissionCreate, ContactSubmissionResponse
from auth.dependencies import require_admin
from auth.models import SessionClaims
from contact.models import ContactSubmission
from contact.store import ContactStore

logger = logging.getLogger("storm.api.contact")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

router = APIRouter()


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "validation_error", "message": message})


def _to_response(submission: ContactSubmission) -> ContactSubmissionResponse:
    return ContactSubmissionResponse(
        id=submission.id,
        name=submission.name,
        email=submission.email,
        message=submission.message,
    )


@router.post(paths.CONTACT_SUBMISSIONS, response_model=ContactSubmissionResponse, status_code=201)
def create_submission(request: Request, body: ContactSubmissionCreate) -> ContactSubmissionResponse:
    if not body.name:
        raise _bad_request("Name is required")
    if not body.email:
        raise _bad_request("Email is required")
    if not body.message:
        raise _bad_request("Message is required")
    if not _EMAIL_RE.match(body.email):
        logger.warning("Contact form submission with invalid email format")
        raise _bad_request("Invalid email format")

    store: ContactStore = request.app.state.contact_store
    created = store.create(ContactSubmission(name=body.name, email=body.email, message=body.message))
    logger.info("Contact form submission created with ID: %s", created.id)
    return _to_response(created)


@router.get(paths.CONTACT_SUBMISSIONS, response_model=list[ContactSubmissionResponse])
def list_submissions(
    request: Request,
    current: SessionClaims = Depends(require_admin),
) -> list[ContactSubmissionResponse]:
    store: ContactStore = request.app.state.contact_store
    return [_to_response(s) for s in store.list_all()]

"""
api/responses.py -- Turn a core.errors.Failure into an HTTP error.

Every error leaves the API in the same ErrorResponse envelope:
    {"error": {"code": ..., "message": ...}}
plus "redirect" when the session gate rejects a request.
"""

from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from core.errors import Failure


def error_response(
    status_code: int,
    code: str,
    message: str,
    redirect: Optional[str] = None,
) -> JSONResponse:
    content = ErrorResponse(error=ErrorDetail(code=code, message=message), redirect=redirect)
    return JSONResponse(status_code=status_code, content=content.model_dump(exclude_none=True))


def failure_response(failure: Failure, redirect: Optional[str] = None) -> JSONResponse:
    return error_response(failure.status_code, failure.error_code, failure.message, redirect=redirect)


def raise_failure(failure: Failure) -> NoReturn:
    """Raise the HTTPException matching failure; the app's handler renders the envelope."""
    raise HTTPException(
        status_code=failure.status_code,
        detail={"code": failure.error_code, "message": failure.message},
    )

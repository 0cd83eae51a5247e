"""
Epic Notes Backend - Signup Route Handlers
============================================

What:  GET /signup hands out a CSRF token; POST /signup checks the token and
       the honeypot field before accepting the form.

Account creation itself is out of scope here; an accepted form simply
redirects home.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from epicnotes.config import settings
from epicnotes.schemas.note import ErrorResponse
from epicnotes.services.form_protection import (
    check_honeypot,
    generate_csrf_token,
    verify_csrf,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.get("/signup", summary="Start a signup form")
async def signup_form() -> JSONResponse:
    """Issue a fresh token: once in a cookie, once in the body for the form field."""
    token = generate_csrf_token()
    response = JSONResponse(
        content={
            "csrf": token,
            "csrf_field": settings.csrf_field_name,
            "honeypot_field": settings.honeypot_field_name,
        }
    )
    response.set_cookie(
        settings.csrf_cookie_name,
        token,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return response


@router.post(
    "/signup",
    status_code=303,
    responses={
        303: {"description": "Accepted; redirect home"},
        400: {"description": "Honeypot field filled in", "model": ErrorResponse},
        403: {"description": "CSRF token missing or mismatched", "model": ErrorResponse},
    },
    summary="Submit the signup form",
)
async def signup(request: Request) -> RedirectResponse:
    form = await request.form()
    form_token = form.get(settings.csrf_field_name)
    verify_csrf(
        request.cookies.get(settings.csrf_cookie_name),
        form_token if isinstance(form_token, str) else None,
    )

    honeypot = form.get(settings.honeypot_field_name)
    check_honeypot(honeypot if isinstance(honeypot, str) else None)

    logger.info("Signup form accepted")
    return RedirectResponse(url="/", status_code=303)

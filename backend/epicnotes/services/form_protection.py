"""
Epic Notes Backend - Form Protection
======================================

What:  CSRF double-submit tokens and the honeypot anti-spam check for
       public forms (signup).

CSRF (double submit):
    GET hands out a random token twice: in a cookie and in the response
    body. The form echoes the body copy back in a field. A cross-site page
    can make the browser send the cookie but cannot read it, so it cannot
    fill in the matching field.

Honeypot:
    The form carries a visually hidden field (`name__confirm`). People leave
    it empty; naive bots fill every input.
"""

import hmac
import logging
import secrets
from typing import Optional

from epicnotes.exceptions import BadRequestError, CSRFError

logger = logging.getLogger(__name__)

CSRF_TOKEN_BYTES = 32


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


def verify_csrf(cookie_token: Optional[str], form_token: Optional[str]) -> None:
    """
    Raises:
        CSRFError if either token is missing or they differ.
    """
    if not cookie_token or not form_token:
        logger.warning("CSRF check failed: token missing")
        raise CSRFError()
    if not hmac.compare_digest(cookie_token.encode(), form_token.encode()):
        logger.warning("CSRF check failed: token mismatch")
        raise CSRFError()


def check_honeypot(value: Optional[str]) -> None:
    """
    Raises:
        BadRequestError if the hidden field was filled in.
    """
    if value:
        logger.info("Honeypot field was filled in")
        raise BadRequestError(message="Form not submitted properly")

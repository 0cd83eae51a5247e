"""
Epic Notes Backend - Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the note pipeline
       and its surrounding routes can report.
How:   Each exception carries a user-safe `message` and a `context` dict
       that is logged but never returned verbatim for server-side errors.
       Global handlers in main.py translate them into JSON responses.

Exception Hierarchy:
    EpicNotesError (base)
    ├── BadRequestError               → 400 Bad Request
    │   ├── MalformedFormError        → 400 (body is not valid multipart)
    │   ├── PayloadTooLargeError      → 400 (one part exceeds the byte limit)
    │   └── SubmissionValidationError → 400 (aggregated field errors)
    ├── CSRFError                     → 403 Forbidden
    ├── NotFoundError                 → 404 Not Found
    └── PersistenceError              → 500 Internal Server Error

Decoder and validator errors are always raised before any mutation, so a
caller can safely re-submit after fixing the input.
"""

from typing import Any, Dict, List, Optional


class EpicNotesError(Exception):
    """
    Base exception for all Epic Notes application errors.

    Attributes:
        message:  User-facing error description
        context:  Additional debug info (logged, not always returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class BadRequestError(EpicNotesError):
    """
    Raised when the client sent something it can correct.

    When:  Unknown form intent, honeypot field filled in, bad query input.
    HTTP:  400 Bad Request
    """

    def __init__(
        self,
        message: str = "Bad request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MalformedFormError(BadRequestError):
    """The request body could not be read as multipart/form-data."""

    def __init__(
        self,
        message: str = "The submitted form could not be read",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PayloadTooLargeError(BadRequestError):
    """
    Raised by the multipart decoder when a single part exceeds the limit.

    The whole request fails; the decoder never truncates a part and carries
    on. `field` names the offending part so the client can point at it.
    """

    def __init__(
        self,
        field: str,
        max_part_size: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        max_mb = max_part_size / (1024 * 1024)
        ctx = context or {}
        ctx.update({"field": field, "max_part_size": max_part_size})
        super().__init__(
            message=f"Part '{field}' exceeds the maximum size of {max_mb:g}MB",
            context=ctx,
        )
        self.field = field
        self.max_part_size = max_part_size


class SubmissionValidationError(BadRequestError):
    """
    Raised when one or more form fields violate the editor schema.

    `errors` maps a field path (e.g. "title", "images[2].file") to every
    message reported for it. The map is complete: validation does not stop
    at the first problem.

    Example response:
        {
            "status": "error",
            "error": "validation_error",
            "message": "2 fields are invalid",
            "errors": {
                "title": ["Required"],
                "content": ["String should have at least 10 characters"]
            }
        }
    """

    def __init__(
        self,
        errors: Dict[str, List[str]],
        context: Optional[Dict[str, Any]] = None,
    ):
        count = len(errors)
        noun = "field is" if count == 1 else "fields are"
        super().__init__(message=f"{count} {noun} invalid", context=context)
        self.errors = errors


class CSRFError(EpicNotesError):
    """
    Raised when the form's CSRF token does not match the CSRF cookie.

    HTTP:  403 Forbidden
    """

    def __init__(
        self,
        message: str = "Form submission could not be verified",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(EpicNotesError):
    """
    Raised when a requested resource does not exist.

    When:  Unknown user, note or image id. The Persistence Applier raises it
           before attempting any mutation.
    HTTP:  404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PersistenceError(EpicNotesError):
    """
    Raised when a transactional commit could not complete.

    The transaction is rolled back before this is raised, so no partial
    note update is ever visible. Not retried; the client may re-submit.
    HTTP:  500 Internal Server Error (generic message, details only logged)
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

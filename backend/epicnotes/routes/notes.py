"""
Epic Notes Backend - Notes Route Handlers
===========================================

What:  Note list, note detail, note deletion and the note editor.
How:   Thin handlers. Ownership checks, validation and persistence live in
       NoteService; handlers only move bytes in and responses out.

Routes:
    GET  /users/{username}/notes                      list (newest first)
    GET  /users/{username}/notes/{note_id}            detail
    POST /users/{username}/notes/{note_id}            intent=delete
    GET  /users/{username}/notes/{note_id}/edit       editor defaults
    POST /users/{username}/notes/{note_id}/edit       editing pipeline

Form submissions answer with 303 See Other so the browser follows up with a
GET instead of re-posting.
"""

import logging

from fastapi import APIRouter, Depends, Form, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from epicnotes.config import settings
from epicnotes.database import get_db_session
from epicnotes.exceptions import BadRequestError
from epicnotes.schemas.note import ErrorResponse, NoteListResponse, NoteResponse
from epicnotes.schemas.note_editor import NoteEditorResponse, ValidationErrorResponse
from epicnotes.services.multipart import decode_multipart
from epicnotes.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users/{username}/notes", tags=["Notes"])

DELETE_INTENT = "delete"


def note_path(username: str, note_id: str) -> str:
    return f"/users/{username}/notes/{note_id}"


@router.get(
    "",
    response_model=NoteListResponse,
    responses={404: {"description": "Unknown user", "model": ErrorResponse}},
    summary="List a user's notes",
)
async def list_notes(
    username: str,
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    return await note_service.list_notes(db, username)


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    response_model_by_alias=True,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get a single note",
)
async def get_note(
    username: str,
    note_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    result = await note_service.get_note(db, username, note_id)
    # Notes change on every edit; image URLs carry their own caching
    response.headers["Cache-Control"] = "private, no-cache"
    return result


@router.post(
    "/{note_id}",
    status_code=303,
    responses={
        303: {"description": "Deleted; redirect to the note list"},
        400: {"description": "Unknown intent", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Note form actions (delete)",
)
async def note_action(
    username: str,
    note_id: str,
    intent: str = Form(default=""),
    db: AsyncSession = Depends(get_db_session),
) -> RedirectResponse:
    """
    Form action on a note. The only supported intent is `delete`, which
    removes the note with all of its images and redirects to the list.
    """
    if intent != DELETE_INTENT:
        raise BadRequestError(message="Invalid intent", context={"intent": intent})

    await note_service.delete_note(db, username, note_id)
    return RedirectResponse(url=f"/users/{username}/notes", status_code=303)


@router.get(
    "/{note_id}/edit",
    response_model=NoteEditorResponse,
    response_model_by_alias=True,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Current values for the note editor",
)
async def get_note_editor(
    username: str,
    note_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> NoteEditorResponse:
    return await note_service.get_editor_defaults(db, username, note_id)


@router.post(
    "/{note_id}/edit",
    status_code=303,
    responses={
        303: {"description": "Saved; redirect to the note"},
        400: {"description": "Invalid or oversized form", "model": ValidationErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        500: {"description": "Could not save", "model": ErrorResponse},
    },
    summary="Submit a note edit",
    description=(
        "multipart/form-data with `title`, `content` and any number of "
        "`images[i].id`, `images[i].file`, `images[i].altText` fields. Every "
        "part is limited to the configured upload size."
    ),
)
async def submit_note_edit(
    username: str,
    note_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> RedirectResponse:
    """
    Editing pipeline entry point.

    The body is streamed straight into the multipart decoder, so an
    oversized part fails the request as soon as it crosses the limit.
    Every error maps to a response through the global handlers; nothing is
    written unless validation passed.
    """
    await note_service.get_owned_note(db, username, note_id)

    form = await decode_multipart(
        request.stream(),
        request.headers.get("content-type"),
        max_part_size=settings.max_upload_size,
    )
    logger.info("Edit submitted for note %s with %d parts", note_id, len(form))

    await note_service.submit_edit(db, note_id, form)
    return RedirectResponse(url=note_path(username, note_id), status_code=303)

"""
Epic Notes Backend - Note Service (Business Logic Orchestrator)
================================================================

What:  Read-side note queries, note deletion, and the note editing pipeline.
Who:   Called by the note routes; receives the request's AsyncSession.

Editing Pipeline (POST /users/{username}/notes/{note_id}/edit):
    ┌───────────┐    ┌───────────┐    ┌──────────────┐    ┌─────────────┐
    │ Multipart │───▶│  Schema   │───▶│  Image Diff  │───▶│ Persistence │
    │  Decoder  │    │ Validator │    │   Resolver   │    │   Applier   │
    └───────────┘    └───────────┘    └──────────────┘    └─────────────┘
     (route)          validation.py    image_diff.py       update_note

    Strictly sequential. Decoder and validator errors happen before any
    database write. The applier is one transaction: it either commits the
    title, content and the whole image diff, or rolls everything back.

Concurrency:
    Two edits of the same note are not coordinated; the last commit wins.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import delete, desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from epicnotes.config import Settings, settings as default_settings
from epicnotes.exceptions import NotFoundError, PersistenceError
from epicnotes.models import Note, NoteImage, User, UserImage
from epicnotes.models.note import utcnow
from epicnotes.schemas.note import (
    NoteImageResponse,
    NoteListItem,
    NoteListResponse,
    NoteOwner,
    NoteResponse,
    image_url,
)
from epicnotes.schemas.note_editor import (
    EditorImage,
    NoteEditorResponse,
    Submission,
)
from epicnotes.services.image_diff import build_submission
from epicnotes.services.multipart import DecodedForm
from epicnotes.services.validation import validate_note_editor_form

logger = logging.getLogger(__name__)


class NoteService:
    """
    Business logic for notes.

    Stateless apart from configuration: the datastore is always the session
    passed in, never a module-level handle.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    # ── Lookups ───────────────────────────────────────────────────────────

    async def find_note(self, db: AsyncSession, note_id: str) -> Optional[Note]:
        """Note row by id (images not loaded), or None."""
        try:
            result = await db.execute(select(Note).where(Note.id == note_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise PersistenceError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": note_id},
            )

    async def get_owned_note(
        self,
        db: AsyncSession,
        username: str,
        note_id: str,
        with_images: bool = False,
    ) -> Note:
        """
        The note `note_id` if it belongs to `username`.

        Raises:
            NotFoundError when the note is missing or owned by someone else.
        """
        query = (
            select(Note)
            .join(User, Note.owner_id == User.id)
            .where(Note.id == note_id, User.username == username)
            .options(selectinload(Note.owner))
        )
        if with_images:
            query = query.options(selectinload(Note.images))
        try:
            result = await db.execute(query)
            note = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise PersistenceError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": note_id},
            )
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    # ── Read side ─────────────────────────────────────────────────────────

    async def get_note(self, db: AsyncSession, username: str, note_id: str) -> NoteResponse:
        note = await self.get_owned_note(db, username, note_id, with_images=True)
        return NoteResponse(
            id=note.id,
            title=note.title,
            content=note.content,
            owner_username=note.owner.username,
            images=[
                NoteImageResponse(id=image.id, alt_text=image.alt_text, url=image_url(image.id))
                for image in note.images
            ],
            created_at=note.created_at,
            updated_at=note.updated_at,
        )

    async def get_editor_defaults(
        self, db: AsyncSession, username: str, note_id: str
    ) -> NoteEditorResponse:
        """Current title, content and image ids/alt texts for the edit form."""
        note = await self.get_owned_note(db, username, note_id, with_images=True)
        return NoteEditorResponse(
            title=note.title,
            content=note.content,
            images=[EditorImage(id=image.id, alt_text=image.alt_text) for image in note.images],
        )

    async def list_notes(self, db: AsyncSession, username: str) -> NoteListResponse:
        """A user's notes, most recently updated first."""
        user = (
            await db.execute(select(User).where(User.username == username))
        ).scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=username)

        rows = await db.execute(
            select(Note.id, Note.title)
            .where(Note.owner_id == user.id)
            .order_by(desc(Note.updated_at))
        )
        return NoteListResponse(
            owner=NoteOwner(username=user.username, name=user.name),
            notes=[NoteListItem(id=row.id, title=row.title) for row in rows],
        )

    async def get_image(self, db: AsyncSession, image_id: str) -> Tuple[str, bytes]:
        """
        (content_type, blob) of a note image or a user image.

        Raises:
            NotFoundError if neither table has `image_id`.
        """
        for model in (NoteImage, UserImage):
            row = (
                await db.execute(
                    select(model.content_type, model.blob).where(model.id == image_id)
                )
            ).first()
            if row is not None:
                return row.content_type, row.blob
        raise NotFoundError(resource="image", resource_id=image_id)

    # ── Deletion ──────────────────────────────────────────────────────────

    async def delete_note(self, db: AsyncSession, username: str, note_id: str) -> None:
        """Delete a note and all of its images in one transaction."""
        await self.get_owned_note(db, username, note_id)
        try:
            await db.execute(delete(NoteImage).where(NoteImage.note_id == note_id))
            await db.execute(delete(Note).where(Note.id == note_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to delete note %s: %s", note_id, str(e), exc_info=True)
            raise PersistenceError(
                message="Could not delete the note. Please try again.",
                context={"note_id": note_id, "error_type": type(e).__name__},
            )
        logger.info("Note %s deleted by %s", note_id, username)

    # ── Editing pipeline ──────────────────────────────────────────────────

    async def submit_edit(
        self,
        db: AsyncSession,
        note_id: str,
        form: DecodedForm,
    ) -> Submission:
        """
        Validate, classify and persist one decoded edit request.

        Raises:
            SubmissionValidationError: one or more field rules failed (no write)
            NotFoundError: the note does not exist (no write)
            PersistenceError: the commit failed and was rolled back
        """
        validated = validate_note_editor_form(form, self.config)
        submission = build_submission(validated)
        await self.update_note(db, note_id, submission)
        return submission

    async def update_note(
        self,
        db: AsyncSession,
        note_id: str,
        submission: Submission,
    ) -> None:
        """
        Persistence Applier: commit title, content and the image diff atomically.

        Steps (single transaction):
            1. Look the note up; missing → NotFoundError before any write
            2. Update title and content
            3. Delete attached images whose id is not in image_updates
            4. Update each image_updates row (matched by its current id and
               this note), setting the possibly regenerated id; a stale id
               matches no row and is ignored
            5. Insert new_images

        Afterwards the note's image set is exactly image_updates ∪ new_images.
        """
        note = await self.find_note(db, note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)

        kept_ids = [image.id for image in submission.image_updates]
        now = utcnow()

        try:
            note.title = submission.title
            note.content = submission.content
            note.updated_at = now

            deleted = await db.execute(
                delete(NoteImage)
                .where(NoteImage.note_id == note_id, NoteImage.id.not_in(kept_ids))
                .execution_options(synchronize_session=False)
            )

            for image in submission.image_updates:
                values = {
                    "id": image.new_id,
                    "alt_text": image.alt_text,
                    "position": image.position,
                    "updated_at": now,
                }
                if image.replaces_content:
                    values["blob"] = image.blob
                    values["content_type"] = image.content_type
                await db.execute(
                    update(NoteImage)
                    .where(NoteImage.id == image.id, NoteImage.note_id == note_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )

            for image in submission.new_images:
                db.add(
                    NoteImage(
                        id=image.id,
                        note_id=note_id,
                        alt_text=image.alt_text,
                        content_type=image.content_type,
                        blob=image.blob,
                        position=image.position,
                        created_at=now,
                        updated_at=now,
                    )
                )

            await db.commit()

        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to apply edit to note %s: %s", note_id, str(e), exc_info=True)
            raise PersistenceError(
                message="Could not save the note. Please try again.",
                context={"note_id": note_id, "error_type": type(e).__name__},
            )

        logger.info(
            "Note %s updated: %d kept, %d replaced, %d created, %d deleted",
            note_id,
            len(submission.image_updates),
            sum(1 for image in submission.image_updates if image.replaces_content),
            len(submission.new_images),
            deleted.rowcount,
        )


note_service = NoteService()

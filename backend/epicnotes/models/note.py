"""
Epic Notes Backend - Note and NoteImage Models
================================================

What:  ORM models for the `notes` and `note_images` tables.
How:   SQLAlchemy 2.0 declarative mapping; Alembic revision 001 mirrors it.

Table Design:
    - String ids generated in Python (epicnotes.core.ids), portable between
      PostgreSQL and SQLite.
    - Image bytes live in the row (`blob`). Images are small (3MB cap, 5 per
      note) and served by id from /resources/images/{id}.
    - A NoteImage id is content-addressed by convention: replacing the blob
      always assigns a new id, so an image URL never changes meaning.
    - Deleting a note cascades to its images (ORM and FK level).
    - Images are ordered by an explicit `position`, written from the editor
      entry order, not by insertion time.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from epicnotes.core.ids import generate_id
from epicnotes.database import Base

if TYPE_CHECKING:
    from epicnotes.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A user's note: title, content and up to five images.

    Lifecycle:
        1. Created with an owner
        2. Mutated only by the note editor pipeline (NoteService.update_note)
        3. Destroyed by explicit deletion, together with its images
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)

    # 1-100 chars, enforced by the editor schema
    title: Mapped[str] = mapped_column(String(100), nullable=False)

    # 10-10000 chars, enforced by the editor schema
    content: Mapped[str] = mapped_column(Text, nullable=False)

    owner_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    owner: Mapped["User"] = relationship(back_populates="notes")
    images: Mapped[List["NoteImage"]] = relationship(
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="[NoteImage.position, NoteImage.created_at, NoteImage.id]",
    )

    __table_args__ = (
        Index("idx_notes_owner_updated", "owner_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}')>"


class NoteImage(Base):
    """One image attached to a note."""

    __tablename__ = "note_images"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    alt_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    blob: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    # Zero-based place in the note's image list, rewritten on every edit
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    note_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    note: Mapped[Note] = relationship(back_populates="images")

    def __repr__(self) -> str:
        return f"<NoteImage(id={self.id}, note_id={self.note_id})>"

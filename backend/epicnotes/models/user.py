"""
Epic Notes Backend - User Model
=================================

What:  ORM models for `users` and their optional profile image.
Who:   Read by the user search, profile and note list routes; owns notes.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from epicnotes.core.ids import generate_id
from epicnotes.database import Base
from epicnotes.models.note import utcnow

if TYPE_CHECKING:
    from epicnotes.models.note import Note


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    notes: Mapped[List["Note"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
    )
    image: Mapped[Optional["UserImage"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class UserImage(Base):
    """Profile picture; at most one per user."""

    __tablename__ = "user_images"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    alt_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    blob: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    user_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped[User] = relationship(back_populates="image")

"""
ORM models. Importing this package registers every table with
`Base.metadata` (needed by Alembic and `Database.create_all`).
"""

from epicnotes.models.note import Note, NoteImage
from epicnotes.models.user import User, UserImage

__all__ = ["Note", "NoteImage", "User", "UserImage"]

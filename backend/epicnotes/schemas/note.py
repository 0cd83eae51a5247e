"""
Epic Notes Backend - Note Response Schemas
============================================

What:  Pydantic models for what the read-side note routes return.
How:   Built explicitly by NoteService from ORM rows; never from raw request
       data. JSON keys follow the web client's camelCase where it reads them
       (`altText`, `imageId`) via serialization aliases.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def image_url(image_id: str) -> str:
    """Public URL of a note or user image."""
    return f"/resources/images/{image_id}"


class NoteImageResponse(BaseModel):
    """
    What:  One image of a note as the client sees it.
    Note:  `url` changes whenever the image content changes (new id).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Image id (regenerated when the content changes)")
    alt_text: Optional[str] = Field(default=None, serialization_alias="altText")
    url: str = Field(description="Path of the immutable image resource")


class NoteResponse(BaseModel):
    """Full note, returned by GET /users/{username}/notes/{note_id}."""

    id: str
    title: str
    content: str
    owner_username: str = Field(serialization_alias="ownerUsername")
    images: List[NoteImageResponse] = Field(default_factory=list)
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class NoteListItem(BaseModel):
    id: str
    title: str


class NoteOwner(BaseModel):
    username: str
    name: Optional[str] = None


class NoteListResponse(BaseModel):
    """A user's notes, most recently updated first."""

    owner: NoteOwner
    notes: List[NoteListItem]


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-validation failure.

    Example:
        {
            "error": "not_found",
            "message": "note with ID 'abc' was not found",
            "request_id": "1f3c9a2e"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float

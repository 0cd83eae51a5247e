"""
Epic Notes Backend - Note Editor Schemas
==========================================

What:  Pydantic models for the note editing pipeline.
How:   Three layers, each consumed by the next step:

    NoteEditorForm  ← Schema Validator output (typed, size-checked fields)
        │
        ▼
    Submission      ← Image Diff Resolver output: title, content,
                      image_updates (existing images kept/changed) and
                      new_images (images to create)
        │
        ▼
    NoteService.update_note() persists it and throws it away.

Pydantic reports every failing field in one pass, which is what lets the
editor show all problems at once instead of the first one.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from epicnotes.core.ids import generate_id
from epicnotes.services.multipart import FileField, TextField

TITLE_MIN_LENGTH = 1
TITLE_MAX_LENGTH = 100
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 10000


# ══════════════════════════════════════════════════════════════════════════
# Validated form
# ══════════════════════════════════════════════════════════════════════════


class ImageFieldset(BaseModel):
    """
    One `images[i]` entry of the editor form.

    All three fields are optional. An entry with neither `id` nor `file` is
    an unused "add image" slot and is dropped later by the diff resolver.

    The file size limit comes from the validation context
    (`{"max_upload_size": <bytes>}`), so it follows configuration.
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[str] = None
    file: Optional[FileField] = None
    alt_text: Optional[str] = Field(default=None, alias="altText")

    @field_validator("file", mode="before")
    @classmethod
    def normalize_file(cls, v):
        # The browser sends an empty part with filename="" when no file is chosen
        if v is None or v == "":
            return None
        if isinstance(v, TextField):
            if v.value == "":
                return None
            raise PydanticCustomError("file_type", "Expected a file upload")
        if isinstance(v, FileField) and v.size == 0:
            return None
        return v

    @field_validator("file")
    @classmethod
    def check_file_size(cls, v: Optional[FileField], info: ValidationInfo) -> Optional[FileField]:
        if v is None:
            return v
        max_size = (info.context or {}).get("max_upload_size")
        if max_size is not None and v.size > max_size:
            raise PydanticCustomError(
                "file_too_large",
                "File size must be at most {max_mb}MB",
                {"max_mb": f"{max_size / (1024 * 1024):g}"},
            )
        return v


class NoteEditorForm(BaseModel):
    """What a valid edit request contains, before image classification."""

    title: str = Field(min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    content: str = Field(min_length=CONTENT_MIN_LENGTH, max_length=CONTENT_MAX_LENGTH)
    images: List[ImageFieldset] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Classified submission
# ══════════════════════════════════════════════════════════════════════════


class ImageUpdate(BaseModel):
    """
    An existing image the note keeps.

    `id` is the id currently stored (used to find the row); `new_id` is the
    id it has after commit. They differ exactly when a new blob is supplied.
    """

    id: str
    new_id: str
    alt_text: Optional[str] = None
    content_type: Optional[str] = None
    blob: Optional[bytes] = None
    position: int = 0

    @property
    def replaces_content(self) -> bool:
        return self.blob is not None


class NewImage(BaseModel):
    """An image to create and attach to the note."""

    id: str = Field(default_factory=generate_id)
    alt_text: Optional[str] = None
    content_type: str
    blob: bytes
    position: int = 0


class Submission(BaseModel):
    """Validated, classified result of one edit request."""

    title: str
    content: str
    image_updates: List[ImageUpdate] = Field(default_factory=list)
    new_images: List[NewImage] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Editor responses
# ══════════════════════════════════════════════════════════════════════════


class EditorImage(BaseModel):
    id: str
    alt_text: Optional[str] = Field(default=None, serialization_alias="altText")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class NoteEditorResponse(BaseModel):
    """Default values for the edit form (GET .../edit)."""

    title: str
    content: str
    images: List[EditorImage] = Field(default_factory=list)


class ValidationErrorResponse(BaseModel):
    """Body of a 400 response for a rejected submission."""

    status: str = "error"
    error: str = "validation_error"
    message: str
    errors: dict
    request_id: Optional[str] = None

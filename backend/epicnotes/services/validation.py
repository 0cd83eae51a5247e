"""
Epic Notes Backend - Note Editor Schema Validator
===================================================

What:  Validates a DecodedForm against the editor schema and returns a typed
       NoteEditorForm, or raises SubmissionValidationError with the full
       map of field path → messages.
How:   1. Flatten the form into a plain payload: `title`, `content` and the
          `images[i].<key>` fields grouped per index (ordered by i).
       2. Run pydantic over the whole payload; pydantic does not stop at
          the first failing field.
       3. Add the image-count rule and translate pydantic error locations
          back into the field names the client used (images[3].file keeps
          its 3 even if images[1] and [2] were never sent).

Pure function: no I/O, no database, no logging of field contents.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from epicnotes.config import Settings, settings as default_settings
from epicnotes.exceptions import SubmissionValidationError
from epicnotes.schemas.note_editor import NoteEditorForm
from epicnotes.services.multipart import DecodedForm, FieldValue, FileField, TextField

logger = logging.getLogger(__name__)

# images[0].id, images[12].altText, images[3].file
IMAGE_FIELD_PATTERN = re.compile(r"^images\[(\d+)\]\.([A-Za-z_][A-Za-z0-9_]*)$")

FORM_ERROR_KEY = "form"


def _plain(value: FieldValue) -> Union[str, FileField, None]:
    """Text values become str ('' becomes absent); files pass through for pydantic to reject."""
    if isinstance(value, TextField):
        return value.value if value.value != "" else None
    return value


def build_payload(form: DecodedForm) -> Tuple[dict, List[int]]:
    """
    Flatten a decoded form into the dict NoteEditorForm validates.

    Returns:
        (payload, image_indexes) where image_indexes[pos] is the index the
        client used for payload["images"][pos].
    """
    payload: dict = {}
    for name in ("title", "content"):
        value = form.get(name)
        if value is not None:
            plain = _plain(value)
            if plain is not None:
                payload[name] = plain

    entries: Dict[int, dict] = {}
    for name, value in form.items():
        match = IMAGE_FIELD_PATTERN.match(name)
        if not match:
            continue
        index, key = int(match.group(1)), match.group(2)
        entry = entries.setdefault(index, {})
        if key == "file":
            # Empty and text values are normalized by ImageFieldset
            entry["file"] = value
            continue
        plain = _plain(value)
        if plain is None:
            entry.pop(key, None)
        else:
            entry[key] = plain

    image_indexes = sorted(entries)
    payload["images"] = [entries[i] for i in image_indexes]
    return payload, image_indexes


def format_error_path(loc: Sequence[Union[str, int]], image_indexes: List[int]) -> str:
    """('images', 1, 'file') → 'images[<client index>].file'."""
    path = ""
    for position, item in enumerate(loc):
        if isinstance(item, int):
            parent = loc[position - 1] if position > 0 else None
            if parent == "images" and item < len(image_indexes):
                item = image_indexes[item]
            path += f"[{item}]"
        else:
            path = f"{path}.{item}" if path else str(item)
    return path or FORM_ERROR_KEY


def _message(error: dict) -> str:
    if error.get("type") == "missing":
        return "Required"
    return error.get("msg", "Invalid value")


def validate_note_editor_form(
    form: DecodedForm,
    config: Optional[Settings] = None,
) -> NoteEditorForm:
    """
    Validate every editor field in one pass.

    Args:
        form: Output of the multipart decoder
        config: Limits source (max upload size, max images); defaults to settings

    Returns:
        NoteEditorForm with typed title, content and image entries.

    Raises:
        SubmissionValidationError listing every violated rule by field path.
    """
    config = config or default_settings
    payload, image_indexes = build_payload(form)
    errors: Dict[str, List[str]] = {}

    image_count = len(payload["images"])
    if image_count > config.max_images_per_note:
        errors.setdefault("images", []).append(
            f"You can attach at most {config.max_images_per_note} images"
        )

    validated: Optional[NoteEditorForm] = None
    try:
        validated = NoteEditorForm.model_validate(
            payload,
            context={"max_upload_size": config.max_upload_size},
        )
    except PydanticValidationError as exc:
        for error in exc.errors():
            path = format_error_path(error.get("loc", ()), image_indexes)
            errors.setdefault(path, []).append(_message(error))

    if errors:
        logger.info("Note editor submission rejected: %s", sorted(errors))
        raise SubmissionValidationError(errors=errors)

    return validated

"""
Epic Notes Backend - Image Diff Resolver
==========================================

What:  Splits the validated image entries into `image_updates` and
       `new_images`, and builds the Submission the Persistence Applier
       consumes.

Classification (per entry, order preserved):

    has id │ has file │ result
    ───────┼──────────┼──────────────────────────────────────────────────
      yes  │   yes    │ ImageUpdate, new_id = fresh id, new blob/type/alt
      yes  │   no     │ ImageUpdate, new_id = id, alt text only
      no   │   yes    │ NewImage
      no   │   no     │ dropped (empty "add image" slot)

Identity rule: replacing an image's bytes ALWAYS gives it a new id. Image
URLs (/resources/images/{id}) are served as immutable, so the id doubles as
the cache key and must change whenever the content does.

Every kept or added image gets `position`, its index among the non-dropped
entries, so the note lists images in the order they were submitted.

An id that no longer exists in the database is not detected here; the
applier's UPDATE simply matches nothing.
"""

from typing import Callable, List, Sequence, Tuple

from epicnotes.core.ids import generate_id
from epicnotes.schemas.note_editor import (
    ImageFieldset,
    ImageUpdate,
    NewImage,
    NoteEditorForm,
    Submission,
)


def resolve_image_diff(
    images: Sequence[ImageFieldset],
    id_factory: Callable[[], str] = generate_id,
) -> Tuple[List[ImageUpdate], List[NewImage]]:
    image_updates: List[ImageUpdate] = []
    new_images: List[NewImage] = []
    position = 0

    for entry in images:
        if not entry.id and entry.file is None:
            continue
        if entry.id:
            if entry.file is not None:
                image_updates.append(
                    ImageUpdate(
                        id=entry.id,
                        new_id=id_factory(),
                        alt_text=entry.alt_text,
                        content_type=entry.file.content_type,
                        blob=entry.file.data,
                        position=position,
                    )
                )
            else:
                image_updates.append(
                    ImageUpdate(
                        id=entry.id,
                        new_id=entry.id,
                        alt_text=entry.alt_text,
                        position=position,
                    )
                )
        else:
            new_images.append(
                NewImage(
                    id=id_factory(),
                    alt_text=entry.alt_text,
                    content_type=entry.file.content_type,
                    blob=entry.file.data,
                    position=position,
                )
            )
        position += 1

    return image_updates, new_images


def build_submission(form: NoteEditorForm) -> Submission:
    """Attach the classified images to the validated title and content."""
    image_updates, new_images = resolve_image_diff(form.images)
    return Submission(
        title=form.title,
        content=form.content,
        image_updates=image_updates,
        new_images=new_images,
    )

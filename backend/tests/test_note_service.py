"""
Epic Notes Backend - Note Service Unit Tests
===============================================

What:  NoteService against a real in-memory SQLite database; seeding,
       applying and checking each use their own session so assertions see
       what was committed.

What we test:
    ✅ No-op edits leave image rows and ids untouched
    ✅ Images missing from image_updates are deleted
    ✅ Replacing an image's bytes changes its id
    ✅ Image positions are rewritten from the submission
    ✅ Unknown note raises NotFoundError before any write
    ✅ Database failures roll back and raise PersistenceError
    ✅ Read side: detail, editor defaults, list, images, deletion
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from epicnotes.exceptions import NotFoundError, PersistenceError, SubmissionValidationError
from epicnotes.models import Note, NoteImage
from epicnotes.schemas.note_editor import ImageUpdate, NewImage, Submission
from epicnotes.services.multipart import DecodedForm, FileField, TextField
from epicnotes.services.note_service import NoteService

CONTENT = "Koalas are great at climbing trees."


async def load_images(database, note_id="n1"):
    async with database.session() as session:
        result = await session.execute(
            select(NoteImage).where(NoteImage.note_id == note_id).order_by(NoteImage.id)
        )
        return {image.id: image for image in result.scalars()}


async def load_note(database, note_id="n1"):
    async with database.session() as session:
        return (await session.execute(select(Note).where(Note.id == note_id))).scalar_one_or_none()


class TestUpdateNote:

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    async def test_no_op_edit_is_idempotent(self, database, seeded):
        before = await load_images(database)
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[
                ImageUpdate(id="i1", new_id="i1", alt_text="a koala"),
                ImageUpdate(id="i2", new_id="i2", alt_text="a tree"),
            ],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        after = await load_images(database)
        assert set(after) == {"i1", "i2"}
        for image_id, image in after.items():
            assert image.blob == before[image_id].blob
            assert image.alt_text == before[image_id].alt_text
            assert image.created_at == before[image_id].created_at
        note = await load_note(database)
        assert (note.title, note.content) == ("Koalas", CONTENT)

    @pytest.mark.asyncio
    async def test_orphaned_images_are_deleted(self, database, seeded):
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[ImageUpdate(id="i1", new_id="i1", alt_text="a koala")],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        assert set(await load_images(database)) == {"i1"}

    @pytest.mark.asyncio
    async def test_no_images_deletes_all(self, database, seeded):
        async with database.session() as session:
            await self.service.update_note(
                session, "n1", Submission(title="Empty", content=CONTENT)
            )

        assert await load_images(database) == {}

    @pytest.mark.asyncio
    async def test_replaced_image_gets_new_id(self, database, seeded):
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[
                ImageUpdate(
                    id="i1",
                    new_id="i1new",
                    alt_text="a new koala",
                    content_type="image/jpeg",
                    blob=b"new-bytes",
                ),
                ImageUpdate(id="i2", new_id="i2", alt_text="a tree"),
            ],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        images = await load_images(database)
        assert set(images) == {"i1new", "i2"}
        assert images["i1new"].blob == b"new-bytes"
        assert images["i1new"].content_type == "image/jpeg"
        assert images["i1new"].alt_text == "a new koala"

    @pytest.mark.asyncio
    async def test_images_are_listed_by_position(self, database, seeded):
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[
                ImageUpdate(id="i2", new_id="i2", alt_text="a tree", position=0),
                ImageUpdate(id="i1", new_id="i1", alt_text="a koala", position=2),
            ],
            new_images=[
                NewImage(id="n-b", alt_text="b", content_type="image/png", blob=b"b", position=3),
                NewImage(id="n-a", alt_text="a", content_type="image/png", blob=b"a", position=1),
            ],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        async with database.session() as session:
            editor = await self.service.get_editor_defaults(session, "kody", "n1")

        assert [image.id for image in editor.images] == ["i2", "n-a", "i1", "n-b"]

    @pytest.mark.asyncio
    async def test_alt_text_only_update_keeps_blob(self, database, seeded):
        before = await load_images(database)
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[ImageUpdate(id="i1", new_id="i1", alt_text="sleepy koala")],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        image = (await load_images(database))["i1"]
        assert image.alt_text == "sleepy koala"
        assert image.blob == before["i1"].blob
        assert image.content_type == before["i1"].content_type

    @pytest.mark.asyncio
    async def test_stale_image_id_is_ignored(self, database, seeded):
        submission = Submission(
            title="Koalas",
            content=CONTENT,
            image_updates=[
                ImageUpdate(id="i1", new_id="i1", alt_text="a koala"),
                ImageUpdate(id="gone", new_id="gone", alt_text="?"),
            ],
        )

        async with database.session() as session:
            await self.service.update_note(session, "n1", submission)

        assert set(await load_images(database)) == {"i1"}

    @pytest.mark.asyncio
    async def test_unknown_note_raises_not_found(self, database, seeded):
        async with database.session() as session:
            with pytest.raises(NotFoundError):
                await self.service.update_note(
                    session, "missing", Submission(title="T", content=CONTENT)
                )

        assert set(await load_images(database)) == {"i1", "i2"}

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back(self, database, seeded):
        """A new image whose id is already taken fails the insert; nothing sticks."""
        async with database.session() as session:
            session.add(Note(id="n2", title="Other", content=CONTENT, owner_id="u1"))
            session.add(NoteImage(id="taken", note_id="n2", content_type="image/png", blob=b"x"))
            await session.commit()

        submission = Submission(
            title="Changed",
            content="Changed content",
            image_updates=[ImageUpdate(id="i1", new_id="i1", alt_text="changed")],
            new_images=[NewImage(id="taken", content_type="image/png", blob=b"dup")],
        )

        async with database.session() as session:
            with pytest.raises(PersistenceError):
                await self.service.update_note(session, "n1", submission)

        note = await load_note(database)
        assert note.title == "Koalas"
        images = await load_images(database)
        assert set(images) == {"i1", "i2"}
        assert images["i1"].alt_text == "a koala"

    @pytest.mark.asyncio
    async def test_database_error_rolls_back(self, mock_db_session):
        found = MagicMock()
        found.scalar_one_or_none.return_value = Note(id="n1", title="T", content=CONTENT)
        mock_db_session.execute.side_effect = [
            found,
            OperationalError("DELETE", {}, Exception("disk I/O error")),
        ]

        with pytest.raises(PersistenceError):
            await self.service.update_note(
                mock_db_session, "n1", Submission(title="T", content=CONTENT)
            )

        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()


class TestSubmitEdit:

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    async def test_n1_scenario(self, database, seeded):
        form = DecodedForm([
            ("title", TextField("T")),
            ("content", TextField("0123456789")),
            ("images[0].id", TextField("i1")),
            ("images[0].altText", TextField("cat")),
            ("images[1].file", FileField(filename="dog.png", content_type="image/png", data=b"dog")),
            ("images[1].altText", TextField("dog")),
        ])

        async with database.session() as session:
            submission = await self.service.submit_edit(session, "n1", form)

        assert [(u.id, u.alt_text) for u in submission.image_updates] == [("i1", "cat")]
        assert [(n.alt_text, n.blob) for n in submission.new_images] == [("dog", b"dog")]

        images = await load_images(database)
        assert len(images) == 2
        assert images["i1"].alt_text == "cat"
        new_id = submission.new_images[0].id
        assert images[new_id].blob == b"dog"
        assert images[new_id].alt_text == "dog"
        note = await load_note(database)
        assert (note.title, note.content) == ("T", "0123456789")

    @pytest.mark.asyncio
    async def test_invalid_form_writes_nothing(self, database, seeded):
        form = DecodedForm([("title", TextField("")), ("content", TextField("ab"))])

        async with database.session() as session:
            with pytest.raises(SubmissionValidationError) as exc_info:
                await self.service.submit_edit(session, "n1", form)

        assert set(exc_info.value.errors) == {"title", "content"}
        assert (await load_note(database)).title == "Koalas"
        assert set(await load_images(database)) == {"i1", "i2"}


class TestReadSide:

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    async def test_get_note(self, database, seeded):
        async with database.session() as session:
            note = await self.service.get_note(session, "kody", "n1")

        assert note.title == "Koalas"
        assert note.owner_username == "kody"
        assert {image.id for image in note.images} == {"i1", "i2"}
        assert all(image.url == f"/resources/images/{image.id}" for image in note.images)

    @pytest.mark.asyncio
    async def test_get_note_of_other_user_is_not_found(self, database, seeded):
        async with database.session() as session:
            with pytest.raises(NotFoundError):
                await self.service.get_note(session, "alex", "n1")

    @pytest.mark.asyncio
    async def test_editor_defaults(self, database, seeded):
        async with database.session() as session:
            editor = await self.service.get_editor_defaults(session, "kody", "n1")

        assert editor.title == "Koalas"
        assert {(image.id, image.alt_text) for image in editor.images} == {
            ("i1", "a koala"),
            ("i2", "a tree"),
        }

    @pytest.mark.asyncio
    async def test_list_notes(self, database, seeded):
        async with database.session() as session:
            listing = await self.service.list_notes(session, "kody")

        assert listing.owner.username == "kody"
        assert [(n.id, n.title) for n in listing.notes] == [("n1", "Koalas")]

    @pytest.mark.asyncio
    async def test_list_notes_unknown_user(self, database, seeded):
        async with database.session() as session:
            with pytest.raises(NotFoundError):
                await self.service.list_notes(session, "nobody")

    @pytest.mark.asyncio
    async def test_get_image_note_and_user(self, database, seeded):
        async with database.session() as session:
            note_image = await self.service.get_image(session, "i1")
            user_image = await self.service.get_image(session, "avatar1")
            with pytest.raises(NotFoundError):
                await self.service.get_image(session, "nope")

        assert note_image[0] == "image/png"
        assert user_image[0] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_delete_note(self, database, seeded):
        async with database.session() as session:
            await self.service.delete_note(session, "kody", "n1")

        assert await load_note(database) is None
        assert await load_images(database) == {}

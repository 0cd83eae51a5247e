"""
Epic Notes Backend - Multipart Decoder Unit Tests
===================================================

What we test:
    ✅ Text and file parts decode into TextField / FileField
    ✅ Duplicate names keep every value; get() returns the last
    ✅ Per-part size limit: exactly the limit passes, one byte more fails
    ✅ Streaming in small chunks gives the same result
    ✅ Non-multipart requests and broken bodies raise MalformedFormError
    ✅ Bodies cut off before the closing boundary are rejected
    ✅ Oversized part headers are rejected
"""

import pytest

from epicnotes.config import MEBIBYTE
from epicnotes.exceptions import MalformedFormError, PayloadTooLargeError
from epicnotes.services.multipart import (
    DEFAULT_FILE_CONTENT_TYPE,
    MAX_PART_HEADER_BYTES,
    DecodedForm,
    FileField,
    TextField,
    decode_multipart,
    decode_multipart_bytes,
    parse_boundary,
)

LIMIT = 3 * MEBIBYTE


class TestDecodeParts:

    @pytest.mark.asyncio
    async def test_text_and_file_parts(self, build_multipart):
        body, content_type = build_multipart([
            ("title", "Koalas"),
            ("images[0].file", ("koala.png", b"\x89PNG-bytes", "image/png")),
            ("images[0].altText", "a koala"),
        ])

        form = await decode_multipart_bytes(body, content_type, LIMIT)

        assert form.get("title") == TextField("Koalas")
        upload = form.get("images[0].file")
        assert isinstance(upload, FileField)
        assert upload.filename == "koala.png"
        assert upload.content_type == "image/png"
        assert upload.data == b"\x89PNG-bytes"
        assert form.get_text("images[0].altText") == "a koala"
        assert len(form) == 3

    @pytest.mark.asyncio
    async def test_file_without_content_type_gets_default(self, build_multipart):
        body, content_type = build_multipart([("doc", ("blob.bin", b"abc", ""))])

        form = await decode_multipart_bytes(body, content_type, LIMIT)

        assert form.get("doc").content_type == DEFAULT_FILE_CONTENT_TYPE

    @pytest.mark.asyncio
    async def test_empty_file_input_decodes_to_empty_file(self, build_multipart):
        """Browsers send filename="" and no bytes when no file was chosen."""
        body, content_type = build_multipart([
            ("images[0].file", ("", b"", "application/octet-stream")),
        ])

        form = await decode_multipart_bytes(body, content_type, LIMIT)

        upload = form.get("images[0].file")
        assert isinstance(upload, FileField)
        assert upload.size == 0

    @pytest.mark.asyncio
    async def test_duplicate_names_keep_every_value(self, build_multipart):
        body, content_type = build_multipart([("tag", "a"), ("tag", "b")])

        form = await decode_multipart_bytes(body, content_type, LIMIT)

        assert form.getlist("tag") == [TextField("a"), TextField("b")]
        assert form.get("tag") == TextField("b")
        assert form.keys() == ["tag"]

    @pytest.mark.asyncio
    async def test_chunked_stream_matches_single_chunk(self, build_multipart):
        body, content_type = build_multipart([
            ("title", "Chunked"),
            ("images[0].file", ("a.png", b"x" * 5000, "image/png")),
        ])

        async def small_chunks():
            for i in range(0, len(body), 7):
                yield body[i:i + 7]

        form = await decode_multipart(small_chunks(), content_type, LIMIT)

        assert form.get_text("title") == "Chunked"
        assert form.get("images[0].file").data == b"x" * 5000


class TestPartSizeLimit:

    @pytest.mark.asyncio
    async def test_file_of_exactly_the_limit_is_accepted(self, build_multipart):
        body, content_type = build_multipart([
            ("images[0].file", ("big.png", b"a" * LIMIT, "image/png")),
        ])

        form = await decode_multipart_bytes(body, content_type, LIMIT)

        assert form.get("images[0].file").size == LIMIT

    @pytest.mark.asyncio
    async def test_one_byte_over_the_limit_is_rejected(self, build_multipart):
        body, content_type = build_multipart([
            ("title", "ok"),
            ("images[0].file", ("big.png", b"a" * (LIMIT + 1), "image/png")),
        ])

        with pytest.raises(PayloadTooLargeError) as exc_info:
            await decode_multipart_bytes(body, content_type, LIMIT)

        assert exc_info.value.field == "images[0].file"
        assert exc_info.value.max_part_size == LIMIT

    @pytest.mark.asyncio
    async def test_limit_applies_to_text_parts(self, build_multipart):
        body, content_type = build_multipart([("content", "x" * 11)])

        with pytest.raises(PayloadTooLargeError):
            await decode_multipart_bytes(body, content_type, 10)


class TestMalformedInput:

    def test_parse_boundary(self):
        boundary, charset = parse_boundary("multipart/form-data; boundary=abc123")
        assert boundary == b"abc123"
        assert charset == "utf-8"

    @pytest.mark.parametrize(
        "content_type",
        [None, "application/json", "multipart/form-data"],
    )
    def test_parse_boundary_rejects(self, content_type):
        with pytest.raises(MalformedFormError):
            parse_boundary(content_type)

    @pytest.mark.asyncio
    async def test_part_without_name_is_rejected(self):
        body = (
            b"--xyz\r\n"
            b"Content-Disposition: form-data\r\n\r\n"
            b"value\r\n"
            b"--xyz--\r\n"
        )

        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(body, "multipart/form-data; boundary=xyz", LIMIT)

    @pytest.mark.asyncio
    async def test_invalid_header_line_is_rejected(self):
        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(
                b"--xyz\r\nContent Disposition form-data\r\n\r\nvalue\r\n--xyz--\r\n",
                "multipart/form-data; boundary=xyz",
                LIMIT,
            )

    @pytest.mark.asyncio
    async def test_body_cut_off_inside_a_part_is_rejected(self, build_multipart):
        body, content_type = build_multipart(
            [("title", "T"), ("images[0].id", "i1"), ("images[1].id", "i2")],
            boundary="xyz",
        )
        truncated = body[: body.index(b"i2") + 2]

        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(truncated, content_type, LIMIT)

    @pytest.mark.asyncio
    async def test_body_without_closing_boundary_is_rejected(self, build_multipart):
        body, content_type = build_multipart([("title", "T")], boundary="xyz")
        assert body.endswith(b"--xyz--\r\n")
        truncated = body[: -len(b"--xyz--\r\n")] + b"--xyz\r\n"

        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(truncated, content_type, LIMIT)

    @pytest.mark.asyncio
    async def test_empty_body_is_rejected(self):
        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(b"", "multipart/form-data; boundary=xyz", LIMIT)

    @pytest.mark.asyncio
    async def test_closing_boundary_without_trailing_newline_is_accepted(self):
        form = await decode_multipart_bytes(
            b"--xyz\r\nContent-Disposition: form-data; name=\"title\"\r\n\r\nT\r\n--xyz--",
            "multipart/form-data; boundary=xyz",
            LIMIT,
        )

        assert form.get_text("title") == "T"

    @pytest.mark.asyncio
    async def test_oversized_part_headers_are_rejected(self, build_multipart):
        filename = "a" * (MAX_PART_HEADER_BYTES + 1) + ".png"
        body, content_type = build_multipart(
            [("images[0].file", (filename, b"bytes", "image/png"))]
        )

        with pytest.raises(MalformedFormError):
            await decode_multipart_bytes(body, content_type, LIMIT)

    @pytest.mark.asyncio
    async def test_header_limit_is_per_part(self, build_multipart):
        half = "a" * (MAX_PART_HEADER_BYTES // 2)
        form = await decode_multipart_bytes(
            *build_multipart([
                ("images[0].file", (half + ".png", b"1", "image/png")),
                ("images[1].file", (half + ".png", b"2", "image/png")),
            ]),
            LIMIT,
        )

        assert form.get("images[0].file").data == b"1"
        assert form.get("images[1].file").data == b"2"


def test_decoded_form_contains_and_missing_values():
    form = DecodedForm([("title", TextField("T"))])

    assert "title" in form
    assert "content" not in form
    assert form.get("content") is None
    assert form.get_text("content") is None
    assert form.getlist("content") == []

"""
Epic Notes Backend - Multipart Decoder
========================================

What:  Turns a multipart/form-data request body into a `DecodedForm`: a
       multi-valued mapping of field name → `TextField | FileField`.
How:   Feeds the body stream, chunk by chunk, into python-multipart's
       callback-driven `MultipartParser` (the parser Starlette builds its
       own form handling on) and buffers each part in memory.
Who:   Called by the note editor route before schema validation.

Size Policy:
    Every part, text or file, is capped at `max_part_size` bytes (3MB by
    default). A part of exactly the limit is accepted; the first byte past
    it aborts the whole decode with PayloadTooLargeError. Nothing is
    truncated and nothing spills to disk, so one request holds at most
    (number of parts × limit) bytes. Part headers are capped separately at
    MAX_PART_HEADER_BYTES.

Completeness:
    A body must end with its closing boundary. A truncated upload raises
    MalformedFormError instead of decoding into a form missing its tail.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterable, Dict, Iterator, List, Optional, Tuple, Union

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, MultipartState, parse_options_header

from epicnotes.exceptions import MalformedFormError, PayloadTooLargeError

logger = logging.getLogger(__name__)

DEFAULT_FILE_CONTENT_TYPE = "application/octet-stream"

# Header bytes allowed per part (names and values together)
MAX_PART_HEADER_BYTES = 8 * 1024


@dataclass(frozen=True)
class TextField:
    """A plain form value."""

    value: str


@dataclass(frozen=True)
class FileField:
    """An uploaded file part, fully buffered."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


FieldValue = Union[TextField, FileField]


class DecodedForm:
    """
    Decoded multipart body.

    Keeps every value per name in arrival order; `get` returns the last one
    (the browser's behaviour for duplicated inputs), `getlist` all of them.
    """

    def __init__(self, items: Optional[List[Tuple[str, FieldValue]]] = None):
        self._items: List[Tuple[str, FieldValue]] = list(items or [])

    def add(self, name: str, value: FieldValue) -> None:
        self._items.append((name, value))

    def get(self, name: str, default: Optional[FieldValue] = None) -> Optional[FieldValue]:
        for key, value in reversed(self._items):
            if key == name:
                return value
        return default

    def getlist(self, name: str) -> List[FieldValue]:
        return [value for key, value in self._items if key == name]

    def get_text(self, name: str) -> Optional[str]:
        """Value of a text field, or None when absent or not text."""
        value = self.get(name)
        return value.value if isinstance(value, TextField) else None

    def keys(self) -> List[str]:
        seen: Dict[str, None] = {}
        for key, _ in self._items:
            seen.setdefault(key, None)
        return list(seen)

    def items(self) -> Iterator[Tuple[str, FieldValue]]:
        return iter(self._items)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<DecodedForm(fields={self.keys()})>"


@dataclass
class _Part:
    headers: Dict[bytes, bytes] = field(default_factory=dict)
    data: bytearray = field(default_factory=bytearray)
    name: str = ""
    filename: Optional[str] = None
    content_type: Optional[str] = None


class _PartCollector:
    """Callback target for MultipartParser; builds the DecodedForm."""

    def __init__(self, charset: str, max_part_size: int):
        self.charset = charset
        self.max_part_size = max_part_size
        self.form = DecodedForm()
        self._part = _Part()
        self._header_name = b""
        self._header_value = b""
        self._header_bytes = 0
        self.part_open = False

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._part = _Part()
        self._header_name = b""
        self._header_value = b""
        self._header_bytes = 0
        self.part_open = True

    def _count_header_bytes(self, size: int) -> None:
        self._header_bytes += size
        if self._header_bytes > MAX_PART_HEADER_BYTES:
            raise MalformedFormError(
                message="Form part headers are too large",
                context={"max_header_bytes": MAX_PART_HEADER_BYTES},
            )

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._count_header_bytes(end - start)
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._count_header_bytes(end - start)
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._part.headers[self._header_name.strip().lower()] = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._part.headers.get(b"content-disposition"))
        if b"name" not in options:
            raise MalformedFormError(
                message='Every form part needs a Content-Disposition "name"',
            )
        self._part.name = options[b"name"].decode(self.charset, errors="replace")
        if b"filename" in options:
            self._part.filename = options[b"filename"].decode(self.charset, errors="replace")
            raw_type = self._part.headers.get(b"content-type", b"").strip()
            self._part.content_type = (
                raw_type.decode("latin-1") if raw_type else DEFAULT_FILE_CONTENT_TYPE
            )

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        chunk = data[start:end]
        if len(self._part.data) + len(chunk) > self.max_part_size:
            raise PayloadTooLargeError(
                field=self._part.name or "unknown",
                max_part_size=self.max_part_size,
                context={"filename": self._part.filename},
            )
        self._part.data.extend(chunk)

    def on_part_end(self) -> None:
        self.part_open = False
        part = self._part
        if part.filename is not None:
            value: FieldValue = FileField(
                filename=part.filename,
                content_type=part.content_type or DEFAULT_FILE_CONTENT_TYPE,
                data=bytes(part.data),
            )
        else:
            value = TextField(value=part.data.decode(self.charset, errors="replace"))
        self.form.add(part.name, value)


def parse_boundary(content_type: Optional[str]) -> Tuple[bytes, str]:
    """
    Extract (boundary, charset) from a request Content-Type header.

    Raises:
        MalformedFormError if the header is not multipart/form-data or has
        no boundary parameter.
    """
    media_type, params = parse_options_header(content_type)
    if media_type != b"multipart/form-data":
        raise MalformedFormError(
            message="Expected a multipart/form-data request",
            context={"content_type": content_type},
        )
    boundary = params.get(b"boundary")
    if not boundary:
        raise MalformedFormError(message="Missing boundary in multipart request")
    charset = params.get(b"charset", b"utf-8").decode("latin-1")
    return boundary, charset


async def decode_multipart(
    stream: AsyncIterable[bytes],
    content_type: Optional[str],
    max_part_size: int,
) -> DecodedForm:
    """
    Decode a multipart/form-data body.

    Args:
        stream: The raw body, e.g. `request.stream()`
        content_type: The request's Content-Type header (carries the boundary)
        max_part_size: Per-part byte limit; exactly this many bytes is allowed

    Returns:
        DecodedForm with every part in arrival order.

    Raises:
        PayloadTooLargeError: A single part exceeded `max_part_size`
        MalformedFormError: Not multipart, no boundary, oversized part
            headers, a broken body, or no closing boundary
    """
    boundary, charset = parse_boundary(content_type)
    collector = _PartCollector(charset=charset, max_part_size=max_part_size)
    parser = MultipartParser(boundary, collector.callbacks())

    try:
        async for chunk in stream:
            if chunk:
                parser.write(chunk)
        parser.finalize()
    except MultipartParseError as e:
        logger.warning("Malformed multipart body: %s", str(e))
        raise MalformedFormError(context={"error": str(e)})

    # Only a body that reached its closing boundary counts as a complete form
    if collector.part_open or parser.state != MultipartState.END:
        logger.warning("Multipart body ended before the closing boundary")
        raise MalformedFormError(
            message="The submitted form was incomplete",
            context={"parsed_fields": collector.form.keys()},
        )

    logger.debug("Decoded multipart form: %s", collector.form)
    return collector.form


async def decode_multipart_bytes(
    body: bytes,
    content_type: Optional[str],
    max_part_size: int,
) -> DecodedForm:
    """Convenience wrapper around `decode_multipart` for an in-memory body."""

    async def _single_chunk() -> AsyncIterable[bytes]:
        yield body

    return await decode_multipart(_single_chunk(), content_type, max_part_size)

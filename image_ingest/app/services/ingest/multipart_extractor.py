"""Incremental multipart/form-data parsing into ``RawField`` descriptors."""

import logging
from typing import AsyncIterable, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from image_ingest.app.schemas.descriptors import RawField
from image_ingest.app.services.ingest.errors import MalformedRequestError

logger = logging.getLogger(__name__)


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class MultipartExtractor:
    """Collects the ``image/*`` parts of one multipart body.

    Feed body chunks with :meth:`feed` and call :meth:`close` at the end of
    the stream. Non-image parts are skipped without buffering their data.
    """

    def __init__(self, boundary: str):
        if not boundary:
            raise MalformedRequestError("Multipart body has no boundary parameter.")
        self.fields: List[RawField] = []
        self._skipped = 0
        self._finished = False
        self._headers: List[Tuple[bytes, bytes]] = []
        self._header_field = b""
        self._header_value = b""
        self._part_meta: Optional[Tuple[Optional[str], Optional[str], str]] = None
        self._part_data = bytearray()
        callbacks = {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }
        self._parser = MultipartParser(boundary, callbacks)

    def on_part_begin(self) -> None:
        self._headers = []
        self._part_meta = None
        self._part_data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        headers = dict(self._headers)
        content_type, _ = parse_options_header(headers.get(b"content-type"))
        media_type = _decode(content_type).strip().lower()
        _, options = parse_options_header(headers.get(b"content-disposition"))
        field_name = options.get(b"name")
        filename = options.get(b"filename")
        if media_type.startswith("image/"):
            self._part_meta = (
                _decode(field_name) if field_name is not None else None,
                _decode(filename) if filename is not None else None,
                media_type,
            )
        else:
            self._skipped += 1
            logger.debug(
                "Skipping multipart field %r with content type %r",
                field_name,
                media_type or None,
            )

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._part_meta is not None:
            self._part_data.extend(data[start:end])

    def on_part_end(self) -> None:
        if self._part_meta is None:
            return
        field_name, filename, media_type = self._part_meta
        self.fields.append(
            RawField(
                field_name=field_name,
                filename=filename,
                content_type=media_type,
                data=bytes(self._part_data),
            )
        )
        self._part_meta = None
        self._part_data = bytearray()

    def on_end(self) -> None:
        self._finished = True

    def feed(self, chunk: bytes) -> None:
        try:
            self._parser.write(chunk)
        except MultipartParseError as exc:
            raise MalformedRequestError(f"Invalid multipart framing: {exc}") from exc

    def close(self) -> List[RawField]:
        self._parser.finalize()
        if not self._finished:
            raise MalformedRequestError("Multipart body ended before the closing boundary.")
        logger.debug(
            "Extracted %d image field(s), skipped %d other field(s)", len(self.fields), self._skipped
        )
        return self.fields


async def extract_multipart(chunks: AsyncIterable[bytes], boundary: str) -> List[RawField]:
    extractor = MultipartExtractor(boundary)
    async for chunk in chunks:
        if chunk:
            extractor.feed(chunk)
    return extractor.close()

"""Filename sanitizing and extension inference for stored images."""

import logging
import re
from pathlib import PurePosixPath
from typing import Iterator, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

MAX_FILENAME_BYTES = 200
MAX_SUFFIX_BYTES = 16

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SUBTYPE_CHARS = re.compile(r"^[a-z0-9][a-z0-9.+-]*$")
_EXTENSION_OVERRIDES = {
    "jpeg": "jpg",
    "pjpeg": "jpg",
    "svg+xml": "svg",
    "tiff": "tif",
    "vnd.microsoft.icon": "ico",
    "vnd.wap.wbmp": "wbmp",
    "*": "bin",
}


def extension_for(content_type: str) -> str:
    """Infer a file extension from an ``image/*`` media type; ``bin`` otherwise."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    major, _, subtype = media_type.partition("/")
    if major != "image" or not subtype:
        return "bin"
    if subtype in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[subtype]
    if not _SUBTYPE_CHARS.match(subtype):
        return "bin"
    return subtype


def _truncate_utf8(text: str, max_bytes: int) -> str:
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def cap_filename(name: str) -> str:
    """Shorten ``name`` to at most ``MAX_FILENAME_BYTES`` UTF-8 bytes, keeping its suffix.

    Filesystems limit names in bytes (255 on most), and collision handling may
    still append ``-<32 hex>`` to the stem, so the cap leaves room for that.
    """
    if len(name.encode("utf-8")) <= MAX_FILENAME_BYTES:
        return name
    path = PurePosixPath(name)
    suffix = _truncate_utf8(path.suffix, MAX_SUFFIX_BYTES)
    stem = _truncate_utf8(path.stem, MAX_FILENAME_BYTES - len(suffix.encode("utf-8")))
    return stem + suffix


def sanitize_filename(name: Optional[str]) -> str:
    """Reduce a client-supplied name to a bare, safe file name.

    Directory components are dropped (both ``/`` and ``\\`` count as
    separators), control characters removed and leading dots stripped so the
    result can never escape the upload directory or become a hidden file.
    Returns an empty string when nothing usable is left.
    """
    if not name:
        return ""
    cleaned = _CONTROL_CHARS.sub("", name).replace("\\", "/")
    cleaned = cleaned.rsplit("/", 1)[-1].strip().lstrip(".").strip()
    return cap_filename(cleaned)


def normalize_image_filename(suggested: Optional[str], content_type: str) -> str:
    """Return the name an image should be stored under.

    >>> normalize_image_filename("concrete.jpg", "image/jpeg")
    'concrete.jpg'
    >>> normalize_image_filename("partial", "image/jpeg")
    'partial.jpg'
    """
    extension = extension_for(content_type)
    filename = sanitize_filename(suggested)
    if not filename:
        filename = cap_filename(f"untitled-{uuid4().hex}.{extension}")
    elif "." not in filename:
        filename = cap_filename(f"{filename}.{extension}")
    logger.debug("normalize_image_filename(%r, %r) => %r", suggested, content_type, filename)
    return filename


def candidate_names(filename: str, max_attempts: int) -> Iterator[str]:
    """Yield ``name.ext``, ``name-1.ext``, ``name-2.ext`` ... then a unique fallback."""
    path = PurePosixPath(filename)
    stem, suffix = path.stem, path.suffix
    yield filename
    for counter in range(1, max_attempts + 1):
        yield f"{stem}-{counter}{suffix}"
    yield f"{stem}-{uuid4().hex}{suffix}"

import base64
import binascii
import logging
from pathlib import PurePosixPath
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from image_ingest.app.schemas.descriptors import Descriptor, InlineData, RawField, RemoteRef, ResolvedImage
from image_ingest.app.schemas.results import ErrorKind, ItemFailure
from image_ingest.app.services.ingest.remote_fetcher import FetchSession

logger = logging.getLogger(__name__)

Resolution = Union[ResolvedImage, ItemFailure]


def filename_from_url(url: str) -> Optional[str]:
    """Last path segment of a URL, or ``None`` when the path is empty."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or None


def resolve_raw_field(descriptor: RawField) -> Resolution:
    if not descriptor.data:
        return ItemFailure(reason=ErrorKind.EMPTY_PAYLOAD, detail="Image part has no data.")
    return ResolvedImage(
        data=descriptor.data,
        content_type=descriptor.content_type,
        suggested_filename=descriptor.filename,
    )


def resolve_inline_data(descriptor: InlineData) -> Resolution:
    encoded = "".join(descriptor.data.split())
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        return ItemFailure(reason=ErrorKind.INVALID_ENCODING, detail=f"Invalid base64 data: {exc}")
    if not data:
        return ItemFailure(reason=ErrorKind.EMPTY_PAYLOAD, detail="Decoded image data is empty.")
    return ResolvedImage(
        data=data,
        content_type=descriptor.content_type,
        suggested_filename=descriptor.filename,
    )


async def resolve_remote_ref(descriptor: RemoteRef, session: FetchSession) -> Resolution:
    fetched = await session.fetch(descriptor.url)
    if isinstance(fetched, ItemFailure):
        return fetched
    if not fetched.data:
        return ItemFailure(reason=ErrorKind.EMPTY_PAYLOAD, detail="Remote returned an empty body.")
    return ResolvedImage(
        data=fetched.data,
        content_type=fetched.content_type,
        suggested_filename=descriptor.filename or filename_from_url(descriptor.url),
    )


async def resolve_descriptor(descriptor: Descriptor, session: FetchSession) -> Resolution:
    """Turn any descriptor into bytes plus a content type, or a failure value."""
    if isinstance(descriptor, RawField):
        result = resolve_raw_field(descriptor)
    elif isinstance(descriptor, InlineData):
        result = resolve_inline_data(descriptor)
    elif isinstance(descriptor, RemoteRef):
        result = await resolve_remote_ref(descriptor, session)
    else:
        raise TypeError(f"Unknown descriptor type: {type(descriptor).__name__}")
    if isinstance(result, ItemFailure):
        logger.debug("resolve_descriptor(%s) => %s", type(descriptor).__name__, result.reason.value)
    return result

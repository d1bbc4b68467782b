import json
import logging
from typing import Any, List, Union

from pydantic import ValidationError

from image_ingest.app.schemas.descriptors import InlineData, RemoteRef
from image_ingest.app.schemas.results import ErrorKind, ItemFailure
from image_ingest.app.services.ingest.errors import MalformedRequestError

logger = logging.getLogger(__name__)

BatchEntry = Union[RemoteRef, InlineData, ItemFailure]


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part is not None)
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def parse_entry(entry: Any) -> BatchEntry:
    """Validate one array element, returning a failure value on bad shape."""
    if not isinstance(entry, dict):
        return ItemFailure(
            reason=ErrorKind.INVALID_DESCRIPTOR,
            detail=f"Entry must be an object, got {type(entry).__name__}.",
        )
    if "data" in entry:
        model = InlineData
    elif "url" in entry:
        model = RemoteRef
    else:
        return ItemFailure(
            reason=ErrorKind.INVALID_DESCRIPTOR,
            detail="Entry must have either a 'url' or 'content_type' and 'data'.",
        )
    try:
        return model.model_validate(entry)
    except ValidationError as exc:
        return ItemFailure(reason=ErrorKind.INVALID_DESCRIPTOR, detail=_describe_validation_error(exc))


def parse_json_batch(body: bytes) -> List[BatchEntry]:
    """Parse a JSON array body into descriptors.

    Only a body that is not JSON at all, or whose top-level value is not an
    array, fails the whole request. Bad elements keep their position as
    ``invalid_descriptor`` failures.
    """
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
        raise MalformedRequestError(f"Body is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise MalformedRequestError(
            f"Body must be a JSON array of image descriptors, got {type(payload).__name__}."
        )
    entries = [parse_entry(entry) for entry in payload]
    logger.debug(
        "parse_json_batch => %d entries (%d invalid)",
        len(entries),
        sum(1 for entry in entries if isinstance(entry, ItemFailure)),
    )
    return entries

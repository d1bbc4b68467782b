from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    MALFORMED_REQUEST = "malformed_request"
    INVALID_DESCRIPTOR = "invalid_descriptor"
    EMPTY_PAYLOAD = "empty_payload"
    INVALID_ENCODING = "invalid_encoding"
    FETCH_TIMEOUT = "fetch_timeout"
    FETCH_FAILED = "fetch_failed"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    WRITE_FAILED = "write_failed"


class ItemFailure(BaseModel):
    """Why a single item could not be resolved or stored."""

    reason: ErrorKind
    detail: str


class StoredImage(BaseModel):
    path: str
    size: int


class StoredResult(BaseModel):
    status: Literal["stored"] = "stored"
    path: str
    size: int
    content_type: str


class FailedResult(BaseModel):
    status: Literal["failed"] = "failed"
    reason: ErrorKind
    detail: str

    @classmethod
    def from_failure(cls, failure: ItemFailure) -> "FailedResult":
        return cls(reason=failure.reason, detail=failure.detail)


IngestResult = Annotated[Union[StoredResult, FailedResult], Field(discriminator="status")]

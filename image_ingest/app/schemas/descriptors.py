from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class RemoteRef(BaseModel):
    """An image to download from a remote URL."""

    model_config = ConfigDict(frozen=True)

    url: StrictStr = Field(min_length=1)
    filename: Optional[StrictStr] = None


class InlineData(BaseModel):
    """An image submitted inline as base64 text."""

    model_config = ConfigDict(frozen=True)

    filename: Optional[StrictStr] = None
    content_type: StrictStr = Field(min_length=1)
    data: StrictStr


class RawField(BaseModel):
    """An image part already extracted from a multipart body."""

    model_config = ConfigDict(frozen=True)

    field_name: Optional[str] = None
    filename: Optional[str] = None
    content_type: str
    data: bytes


Descriptor = Union[RemoteRef, InlineData, RawField]


class ResolvedImage(BaseModel):
    """Raw image bytes ready to be written to storage."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: str
    suggested_filename: Optional[str] = None

"""Image ingestion pipeline.

Classifies an upload request, turns its body into descriptors (multipart
image parts or JSON batch entries), resolves each descriptor to bytes and
hands the bytes to an ``ImageWriter``. Failures are isolated per item.
"""

from image_ingest.app.services.ingest.coordinator import (
    BodyKind,
    IngestionCoordinator,
    RequestKind,
    classify_content_type,
)
from image_ingest.app.services.ingest.errors import (
    ClientDisconnectedError,
    IngestRequestError,
    MalformedRequestError,
    StorageUnavailableError,
    UnsupportedMediaTypeError,
)
from image_ingest.app.services.ingest.json_batch import parse_entry, parse_json_batch
from image_ingest.app.services.ingest.multipart_extractor import MultipartExtractor, extract_multipart
from image_ingest.app.services.ingest.remote_fetcher import (
    BlockedHostError,
    FetchedImage,
    FetchSession,
    RemoteFetcher,
    is_private_host,
)
from image_ingest.app.services.ingest.resolver import filename_from_url, resolve_descriptor

__all__ = [
    # Coordinator
    "BodyKind",
    "IngestionCoordinator",
    "RequestKind",
    "classify_content_type",
    # Request-level errors
    "ClientDisconnectedError",
    "IngestRequestError",
    "MalformedRequestError",
    "StorageUnavailableError",
    "UnsupportedMediaTypeError",
    # Parsing
    "MultipartExtractor",
    "extract_multipart",
    "parse_entry",
    "parse_json_batch",
    # Resolution
    "BlockedHostError",
    "FetchedImage",
    "FetchSession",
    "RemoteFetcher",
    "filename_from_url",
    "is_private_host",
    "resolve_descriptor",
]

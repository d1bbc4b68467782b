"""Request-level failures.

These abort a request before any per-item processing happens. Everything
that can go wrong with an individual item is reported as an ``ItemFailure``
value instead.
"""

from starlette import status

from image_ingest.app.schemas.results import ErrorKind


class IngestRequestError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = ErrorKind.MALFORMED_REQUEST.value

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedRequestError(IngestRequestError):
    pass


class UnsupportedMediaTypeError(IngestRequestError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    error_code = "unsupported_media_type"


class StorageUnavailableError(IngestRequestError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = ErrorKind.STORAGE_UNAVAILABLE.value


class ClientDisconnectedError(IngestRequestError):
    # Same code nginx uses for "client closed request".
    status_code = 499
    error_code = "client_disconnected"

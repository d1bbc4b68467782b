"""Request classification and per-item orchestration for image uploads."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, Awaitable, Callable, List, Optional, Sequence, Set, Union

from python_multipart.multipart import parse_options_header

from image_ingest.app.schemas.descriptors import Descriptor
from image_ingest.app.schemas.results import ErrorKind, FailedResult, ItemFailure, StoredResult
from image_ingest.app.services.ingest.errors import (
    ClientDisconnectedError,
    MalformedRequestError,
    UnsupportedMediaTypeError,
)
from image_ingest.app.services.ingest.json_batch import parse_json_batch
from image_ingest.app.services.ingest.multipart_extractor import extract_multipart
from image_ingest.app.services.ingest.remote_fetcher import FetchSession, RemoteFetcher
from image_ingest.app.services.ingest.resolver import resolve_descriptor
from image_ingest.app.services.storage.base import ImageWriter

logger = logging.getLogger(__name__)

ItemResult = Union[StoredResult, FailedResult]
DisconnectCheck = Callable[[], Awaitable[bool]]


class BodyKind(str, Enum):
    JSON = "json"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class RequestKind:
    kind: BodyKind
    boundary: Optional[str] = None


def classify_content_type(header: Optional[str]) -> RequestKind:
    """Map a request ``Content-Type`` header to an ingestion mode."""
    if not header:
        raise MalformedRequestError("Content-Type header is required.")
    media_type, options = parse_options_header(header)
    media_type = media_type.decode("latin-1").strip().lower()
    if media_type == "application/json":
        return RequestKind(BodyKind.JSON)
    if media_type == "multipart/form-data":
        boundary = options.get(b"boundary")
        if not boundary:
            raise MalformedRequestError("Multipart Content-Type has no boundary parameter.")
        return RequestKind(BodyKind.MULTIPART, boundary.decode("latin-1"))
    raise UnsupportedMediaTypeError(
        f"Unsupported Content-Type {media_type!r}; use application/json or multipart/form-data."
    )


class IngestionCoordinator:
    def __init__(
        self,
        writer: ImageWriter,
        fetcher: RemoteFetcher,
        batch_timeout: float = 120.0,
        disconnect_poll_interval: float = 0.5,
    ):
        self.writer = writer
        self.fetcher = fetcher
        self.batch_timeout = batch_timeout
        self.disconnect_poll_interval = disconnect_poll_interval

    async def ingest(
        self,
        content_type: Optional[str],
        body: AsyncIterable[bytes],
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> List[ItemResult]:
        """Ingest every image described by one request body.

        Raises an ``IngestRequestError`` only when the request cannot be
        classified or parsed, or when storage is unusable before any item is
        attempted. Otherwise returns one result per item, in input order.
        """
        request_kind = classify_content_type(content_type)
        logger.debug("Received %s request", request_kind.kind.value)

        if request_kind.kind is BodyKind.JSON:
            raw = b"".join([chunk async for chunk in body])
            entries: Sequence[Union[Descriptor, ItemFailure]] = parse_json_batch(raw)
        else:
            entries = await extract_multipart(body, request_kind.boundary or "")

        if not entries:
            logger.debug("Completed empty %s request", request_kind.kind.value)
            return []

        self.writer.ensure_ready()
        logger.debug("Dispatched %d item(s)", len(entries))

        started = time.perf_counter()
        async with self.fetcher.session() as session:
            results = await self._run_items(entries, session, is_disconnected)

        stored = sum(1 for result in results if isinstance(result, StoredResult))
        logger.info(
            "Ingested %s batch of %d item(s) in %.1fms [%d stored, %d failed]",
            request_kind.kind.value,
            len(results),
            (time.perf_counter() - started) * 1000,
            stored,
            len(results) - stored,
        )
        return results

    async def _process_item(
        self,
        index: int,
        entry: Union[Descriptor, ItemFailure],
        session: FetchSession,
        storing: Set[int],
    ) -> ItemResult:
        if isinstance(entry, ItemFailure):
            return FailedResult.from_failure(entry)

        resolved = await resolve_descriptor(entry, session)
        if isinstance(resolved, ItemFailure):
            return FailedResult.from_failure(resolved)

        logger.debug("Item %d resolved (%d bytes); storing", index, len(resolved.data))
        # Once the write is handed to a worker thread the item is awaited, not cancelled.
        storing.add(index)
        outcome = await asyncio.to_thread(self.writer.write, resolved)
        if isinstance(outcome, ItemFailure):
            return FailedResult.from_failure(outcome)
        return StoredResult(path=outcome.path, size=outcome.size, content_type=resolved.content_type)

    async def _run_items(
        self,
        entries: Sequence[Union[Descriptor, ItemFailure]],
        session: FetchSession,
        is_disconnected: Optional[DisconnectCheck],
    ) -> List[ItemResult]:
        storing: Set[int] = set()
        tasks = [
            asyncio.ensure_future(self._process_item(index, entry, session, storing))
            for index, entry in enumerate(entries)
        ]
        indexes = {task: index for index, task in enumerate(tasks)}
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.batch_timeout
        pending = set(tasks)
        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning(
                        "Batch deadline of %.1fs exceeded; cancelling %d item(s)",
                        self.batch_timeout,
                        len(pending),
                    )
                    break
                _, pending = await asyncio.wait(
                    pending, timeout=min(self.disconnect_poll_interval, remaining)
                )
                if pending and is_disconnected is not None and await is_disconnected():
                    logger.info("Client disconnected; cancelling %d in-flight item(s)", len(pending))
                    raise ClientDisconnectedError("Client disconnected before the batch completed.")
        finally:
            for task in pending:
                if indexes[task] not in storing:
                    task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        results: List[ItemResult] = []
        for task in tasks:
            if task.cancelled():
                results.append(
                    FailedResult(
                        reason=ErrorKind.FETCH_TIMEOUT,
                        detail="Batch deadline exceeded before this item completed.",
                    )
                )
            else:
                results.append(task.result())
        return results

from fastapi import Depends

from image_ingest.app.core.config import Settings, get_settings
from image_ingest.app.services.ingest.coordinator import IngestionCoordinator
from image_ingest.app.services.ingest.remote_fetcher import RemoteFetcher
from image_ingest.app.services.storage.base import ImageWriter
from image_ingest.app.services.storage.local import LocalImageWriter


def get_storage_writer(settings: Settings = Depends(get_settings)) -> ImageWriter:
    return LocalImageWriter(settings.upload_dir, max_name_attempts=settings.max_name_attempts)


def get_remote_fetcher(settings: Settings = Depends(get_settings)) -> RemoteFetcher:
    return RemoteFetcher(
        timeout=settings.fetch_timeout_seconds,
        max_bytes=settings.fetch_max_bytes,
        max_concurrency=settings.fetch_max_concurrency,
        user_agent=settings.fetch_user_agent,
        allow_private_hosts=settings.fetch_allow_private_hosts,
    )


def get_coordinator(
    settings: Settings = Depends(get_settings),
    writer: ImageWriter = Depends(get_storage_writer),
    fetcher: RemoteFetcher = Depends(get_remote_fetcher),
) -> IngestionCoordinator:
    return IngestionCoordinator(
        writer,
        fetcher,
        batch_timeout=settings.batch_timeout_seconds,
        disconnect_poll_interval=settings.disconnect_poll_seconds,
    )

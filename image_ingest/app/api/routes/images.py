import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from image_ingest.app.api.deps import get_coordinator, get_storage_writer
from image_ingest.app.schemas.results import IngestResult
from image_ingest.app.services.ingest.coordinator import IngestionCoordinator
from image_ingest.app.services.storage.base import ImageWriter

router = APIRouter(tags=["images"])
logger = logging.getLogger(__name__)


@router.post("/images", response_model=List[IngestResult])
async def upload_images(
    request: Request,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
):
    """
    Store images sent as multipart/form-data parts or as a JSON array of
    ``{"url": ...}`` / ``{"content_type": ..., "data": <base64>}`` objects.

    Responds 200 with one result per item whenever the body could be
    classified, even if every item failed.
    """
    return await coordinator.ingest(
        request.headers.get("content-type"),
        request.stream(),
        is_disconnected=request.is_disconnected,
    )


@router.get("/images", response_model=List[str])
def list_images(writer: ImageWriter = Depends(get_storage_writer)):
    return writer.list_images()

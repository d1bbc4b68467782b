import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from image_ingest.app.api.routes import api_router
from image_ingest.app.core.config import Settings, get_settings
from image_ingest.app.services.ingest.errors import IngestRequestError

logger = logging.getLogger(__name__)


async def ingest_request_exception_handler(request: Request, exc: IngestRequestError):
    logger.info("Rejected upload request with %s: %s", exc.error_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error_code": exc.error_code, "message": exc.message},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="Image Ingest", version="0.1.0")
    app.add_exception_handler(IngestRequestError, ingest_request_exception_handler)
    app.include_router(api_router)
    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

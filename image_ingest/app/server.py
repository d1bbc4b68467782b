"""Command-line entry point for the image ingest server.

Run:
    image-ingest --host 0.0.0.0 --port 8000 --upload ./uploads/
"""
import argparse
import logging
from pathlib import Path
from typing import List, Optional

import uvicorn

from image_ingest.app.core.config import Settings, get_settings
from image_ingest.app.main import create_app

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None, defaults: Optional[Settings] = None) -> argparse.Namespace:
    defaults = defaults or get_settings()
    parser = argparse.ArgumentParser(description="A microservice for images upload.")
    parser.add_argument("--host", default=defaults.host, help="Host address to bind")
    parser.add_argument("--port", type=int, default=defaults.port, help="Port to listen for requests")
    parser.add_argument("--upload", type=Path, default=defaults.upload_dir, help="Upload directory")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_settings(argv: Optional[List[str]] = None) -> Settings:
    base = get_settings()
    args = parse_args(argv, base)
    return base.model_copy(update={"host": args.host, "port": args.port, "upload_dir": args.upload})


def main(argv: Optional[List[str]] = None) -> None:
    settings = build_settings(argv)
    configure_logging(settings.log_level)

    try:
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Can't use specified upload path %s: %s", settings.upload_dir, exc)
        raise SystemExit(f"Can't use specified upload path: {exc}") from exc

    logger.info("Storing uploads in %s", settings.upload_dir.resolve())
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

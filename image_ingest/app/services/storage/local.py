import logging
from pathlib import Path
from typing import List, Union

from image_ingest.app.schemas.descriptors import ResolvedImage
from image_ingest.app.schemas.results import ErrorKind, ItemFailure, StoredImage
from image_ingest.app.services.ingest.errors import StorageUnavailableError
from image_ingest.app.services.storage.base import ImageWriter
from image_ingest.app.services.storage.filenames import candidate_names, normalize_image_filename

logger = logging.getLogger(__name__)


class LocalImageWriter(ImageWriter):
    """Stores images as flat files under ``upload_dir``.

    Every candidate name is claimed with an exclusive-create open, so
    concurrent writers (threads, requests or processes) never share a final
    path; a taken name moves on to the next candidate instead of overwriting.
    """

    def __init__(self, upload_dir: Path, max_name_attempts: int = 1000):
        self.upload_dir = Path(upload_dir)
        self.max_name_attempts = max_name_attempts

    def _prepare_dir(self) -> str | None:
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return f"Upload directory {self.upload_dir} is unavailable: {exc}"
        if not self.upload_dir.is_dir():
            return f"Upload path {self.upload_dir} is not a directory"
        return None

    def ensure_ready(self) -> None:
        problem = self._prepare_dir()
        if problem:
            logger.error(problem)
            raise StorageUnavailableError(problem)

    def write(self, image: ResolvedImage) -> Union[StoredImage, ItemFailure]:
        problem = self._prepare_dir()
        if problem:
            logger.warning(problem)
            return ItemFailure(reason=ErrorKind.STORAGE_UNAVAILABLE, detail=problem)

        filename = normalize_image_filename(image.suggested_filename, image.content_type)
        for candidate in candidate_names(filename, self.max_name_attempts):
            destination = self.upload_dir / candidate
            try:
                buffer = destination.open("xb")
            except FileExistsError:
                continue
            except FileNotFoundError as exc:
                logger.warning("Upload directory vanished while writing %s: %s", destination, exc)
                return ItemFailure(
                    reason=ErrorKind.STORAGE_UNAVAILABLE,
                    detail=f"Upload directory {self.upload_dir} is unavailable: {exc}",
                )
            except OSError as exc:
                logger.warning("I/O error opening %s for write: %s", destination, exc)
                return ItemFailure(reason=ErrorKind.WRITE_FAILED, detail=f"I/O error: {exc}")

            try:
                with buffer:
                    buffer.write(image.data)
            except OSError as exc:
                logger.warning("I/O error saving image data to %s: %s", destination, exc)
                destination.unlink(missing_ok=True)
                return ItemFailure(reason=ErrorKind.WRITE_FAILED, detail=f"I/O error: {exc}")

            logger.debug("Stored %d bytes at %s", len(image.data), destination)
            return StoredImage(path=candidate, size=len(image.data))

        return ItemFailure(
            reason=ErrorKind.WRITE_FAILED,
            detail=f"No free file name found for {filename}",
        )

    def list_images(self) -> List[str]:
        if not self.upload_dir.is_dir():
            return []
        names = []
        for entry in self.upload_dir.iterdir():
            if not entry.is_file():
                continue
            try:
                entry.name.encode("utf-8")
            except UnicodeEncodeError:
                logger.warning("UTF-8 incompatible file name %r is ignored", entry.name)
                continue
            names.append(entry.name)
        return sorted(names)

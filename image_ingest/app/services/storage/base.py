from abc import ABC, abstractmethod
from typing import List, Union

from image_ingest.app.schemas.descriptors import ResolvedImage
from image_ingest.app.schemas.results import ItemFailure, StoredImage


class ImageWriter(ABC):
    @abstractmethod
    def ensure_ready(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def write(self, image: ResolvedImage) -> Union[StoredImage, ItemFailure]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def list_images(self) -> List[str]:  # pragma: no cover - interface
        raise NotImplementedError

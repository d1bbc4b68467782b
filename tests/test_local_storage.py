from concurrent.futures import ThreadPoolExecutor

import pytest

from image_ingest.app.schemas.descriptors import ResolvedImage
from image_ingest.app.schemas.results import ErrorKind, ItemFailure, StoredImage
from image_ingest.app.services.ingest.errors import StorageUnavailableError
from image_ingest.app.services.storage.local import LocalImageWriter


def _image(data: bytes = b"JPEG IMAGE DATA", name: str | None = "sample.jpg", ctype: str = "image/jpeg"):
    return ResolvedImage(data=data, content_type=ctype, suggested_filename=name)


def test_write_creates_directory_and_stores_bytes(upload_dir):
    writer = LocalImageWriter(upload_dir)
    result = writer.write(_image())
    assert isinstance(result, StoredImage)
    assert result.path == "sample.jpg"
    assert result.size == len(b"JPEG IMAGE DATA")
    assert (upload_dir / "sample.jpg").read_bytes() == b"JPEG IMAGE DATA"


def test_write_never_overwrites_existing_file(upload_dir):
    writer = LocalImageWriter(upload_dir)
    first = writer.write(_image(b"first"))
    second = writer.write(_image(b"second"))
    third = writer.write(_image(b"third"))
    assert [first.path, second.path, third.path] == ["sample.jpg", "sample-1.jpg", "sample-2.jpg"]
    assert (upload_dir / "sample.jpg").read_bytes() == b"first"
    assert (upload_dir / "sample-1.jpg").read_bytes() == b"second"


def test_write_falls_back_to_unique_token_when_counters_exhausted(upload_dir):
    writer = LocalImageWriter(upload_dir, max_name_attempts=1)
    paths = [writer.write(_image(bytes([i]))).path for i in range(3)]
    assert paths[0] == "sample.jpg"
    assert paths[1] == "sample-1.jpg"
    assert paths[2].startswith("sample-") and paths[2] not in paths[:2]


def test_write_stores_long_multibyte_name_under_shortened_name(upload_dir):
    writer = LocalImageWriter(upload_dir)
    result = writer.write(_image(b"cat", name="猫" * 150 + ".png", ctype="image/png"))
    assert isinstance(result, StoredImage)
    assert result.path.endswith(".png")
    assert (upload_dir / result.path).read_bytes() == b"cat"

    again = writer.write(_image(b"cat2", name="猫" * 150 + ".png", ctype="image/png"))
    assert isinstance(again, StoredImage)
    assert again.path != result.path


def test_write_ignores_traversal_in_suggested_name(upload_dir):
    writer = LocalImageWriter(upload_dir)
    result = writer.write(_image(name="../../outside.png", ctype="image/png"))
    assert result.path == "outside.png"
    assert (upload_dir / "outside.png").exists()
    assert not (upload_dir.parent / "outside.png").exists()


def test_concurrent_writers_with_same_name_get_distinct_files(upload_dir):
    writer = LocalImageWriter(upload_dir)
    payloads = [bytes([i]) * (1024 * (i + 1)) for i in range(16)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda data: writer.write(_image(data)), payloads))

    paths = [r.path for r in results]
    assert len(set(paths)) == len(payloads)
    for data, result in zip(payloads, results):
        assert (upload_dir / result.path).read_bytes() == data


def test_write_reports_storage_unavailable_when_dir_cannot_be_created(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")
    writer = LocalImageWriter(blocker / "uploads")
    result = writer.write(_image())
    assert isinstance(result, ItemFailure)
    assert result.reason == ErrorKind.STORAGE_UNAVAILABLE


def test_ensure_ready_raises_when_path_is_a_file(tmp_path):
    blocker = tmp_path / "uploads"
    blocker.write_bytes(b"")
    with pytest.raises(StorageUnavailableError):
        LocalImageWriter(blocker).ensure_ready()


def test_list_images_is_sorted(upload_dir):
    writer = LocalImageWriter(upload_dir)
    assert writer.list_images() == []
    for name in ("b.png", "a.png", "c.png"):
        writer.write(_image(name=name, ctype="image/png"))
    assert writer.list_images() == ["a.png", "b.png", "c.png"]

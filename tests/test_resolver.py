import pytest

from image_ingest.app.schemas.descriptors import InlineData, RawField, RemoteRef, ResolvedImage
from image_ingest.app.schemas.results import ErrorKind, ItemFailure
from image_ingest.app.services.ingest.resolver import filename_from_url, resolve_descriptor


@pytest.mark.asyncio
async def test_raw_field_resolves_directly(make_fetcher):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(
            RawField(filename="a.jpg", content_type="image/jpeg", data=b"JPEG"), session
        )
    assert result == ResolvedImage(data=b"JPEG", content_type="image/jpeg", suggested_filename="a.jpg")


@pytest.mark.asyncio
async def test_empty_raw_field_is_empty_payload(make_fetcher):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(RawField(content_type="image/jpeg", data=b""), session)
    assert isinstance(result, ItemFailure)
    assert result.reason == ErrorKind.EMPTY_PAYLOAD


@pytest.mark.asyncio
async def test_inline_data_is_decoded_and_content_type_kept_verbatim(make_fetcher):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(
            InlineData(content_type="application/octet-stream", data="VEVTVCBKUEVH\nIERBVEE="), session
        )
    assert result.data == b"TEST JPEG DATA"
    assert result.content_type == "application/octet-stream"
    assert result.suggested_filename is None


@pytest.mark.asyncio
@pytest.mark.parametrize("data", ["not base64!", "SGVsbG8", "SGVs*G8=", "ÄÖÜ"])
async def test_invalid_base64_is_invalid_encoding(make_fetcher, data):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(InlineData(content_type="image/png", data=data), session)
    assert isinstance(result, ItemFailure)
    assert result.reason == ErrorKind.INVALID_ENCODING


@pytest.mark.asyncio
async def test_empty_inline_data_is_empty_payload(make_fetcher):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(InlineData(content_type="image/png", data=""), session)
    assert result.reason == ErrorKind.EMPTY_PAYLOAD


@pytest.mark.asyncio
async def test_remote_ref_uses_url_name_unless_overridden(fake_remote, make_fetcher):
    fake_remote.add("http://example/photos/cat%20pic.png", b"PNG", content_type="image/png")
    async with make_fetcher().session() as session:
        from_url = await resolve_descriptor(RemoteRef(url="http://example/photos/cat%20pic.png"), session)
        overridden = await resolve_descriptor(
            RemoteRef(url="http://example/photos/cat%20pic.png", filename="kitty.png"), session
        )
    assert from_url.suggested_filename == "cat pic.png"
    assert from_url.data == b"PNG"
    assert from_url.content_type == "image/png"
    assert overridden.suggested_filename == "kitty.png"


@pytest.mark.asyncio
async def test_remote_failure_passes_through(make_fetcher):
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(RemoteRef(url="http://example/missing.png"), session)
    assert result.reason == ErrorKind.FETCH_FAILED


@pytest.mark.asyncio
async def test_remote_empty_body_is_empty_payload(fake_remote, make_fetcher):
    fake_remote.add("http://example/empty.png", b"", content_type="image/png")
    async with make_fetcher().session() as session:
        result = await resolve_descriptor(RemoteRef(url="http://example/empty.png"), session)
    assert result.reason == ErrorKind.EMPTY_PAYLOAD


def test_filename_from_url():
    assert filename_from_url("http://example/a/b/c.jpg?x=1") == "c.jpg"
    assert filename_from_url("http://example/") is None
    assert filename_from_url("http://example") is None

"""Outbound image downloads for URL descriptors."""

import asyncio
import ipaddress
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from image_ingest.app.schemas.results import ErrorKind, ItemFailure

logger = logging.getLogger(__name__)


class FetchedImage(BaseModel):
    data: bytes
    content_type: str


class BlockedHostError(Exception):
    """Raised when a request (or a redirect hop) targets a private host."""


def is_private_host(hostname: str) -> bool:
    """Check if a host name or IP literal is private/localhost.

    Takes the bare host as returned by ``urlparse(...).hostname`` or
    ``httpx.URL.host``, so IPv6 literals arrive without brackets or port.
    """
    hostname = hostname.strip("[]")
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return hostname.lower().rstrip(".") in {"localhost"}
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified


def _failure(reason: ErrorKind, detail: str, url: str) -> ItemFailure:
    logger.warning("Fetch of %s failed (%s): %s", url, reason.value, detail)
    return ItemFailure(reason=reason, detail=detail)


class FetchSession:
    """One batch's worth of fetches sharing a client and a concurrency cap."""

    def __init__(self, fetcher: "RemoteFetcher", client: httpx.AsyncClient):
        self._fetcher = fetcher
        self._client = client
        self._slots = asyncio.Semaphore(fetcher.max_concurrency)

    async def fetch(self, url: str) -> Union[FetchedImage, ItemFailure]:
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname or ""
        except ValueError as exc:
            return _failure(ErrorKind.FETCH_FAILED, f"Invalid URL: {exc}", url)
        if parsed.scheme not in {"http", "https"} or not hostname:
            return _failure(ErrorKind.FETCH_FAILED, "URL must start with http or https.", url)
        if not self._fetcher.allow_private_hosts and is_private_host(hostname):
            return _failure(ErrorKind.FETCH_FAILED, "Host is blocked (localhost/private).", url)

        async with self._slots:
            try:
                return await asyncio.wait_for(self._download(url), timeout=self._fetcher.timeout)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                return _failure(
                    ErrorKind.FETCH_TIMEOUT,
                    f"Timed out after {self._fetcher.timeout:g}s fetching the image.",
                    url,
                )
            except BlockedHostError as exc:
                return _failure(ErrorKind.FETCH_FAILED, str(exc), url)
            except httpx.InvalidURL as exc:
                return _failure(ErrorKind.FETCH_FAILED, f"Invalid URL: {exc}", url)
            except httpx.HTTPError as exc:
                return _failure(ErrorKind.FETCH_FAILED, f"Network error: {exc}", url)

    async def _download(self, url: str) -> Union[FetchedImage, ItemFailure]:
        max_bytes = self._fetcher.max_bytes
        async with self._client.stream("GET", url) as response:
            if not response.is_success:
                return _failure(
                    ErrorKind.FETCH_FAILED, f"Remote returned status {response.status_code}.", url
                )
            ctype = response.headers.get("content-type", "")
            media_type = ctype.split(";", 1)[0].strip()
            if not media_type.lower().startswith("image/"):
                return _failure(
                    ErrorKind.UNSUPPORTED_CONTENT_TYPE,
                    f"Unsupported content type: {ctype or 'missing'}",
                    url,
                )
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > max_bytes:
                return _failure(
                    ErrorKind.PAYLOAD_TOO_LARGE,
                    f"Declared size {declared} bytes exceeds limit of {max_bytes} bytes.",
                    url,
                )
            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > max_bytes:
                    return _failure(
                        ErrorKind.PAYLOAD_TOO_LARGE,
                        f"Response body exceeds limit of {max_bytes} bytes.",
                        url,
                    )
        logger.debug("Fetched %d bytes (%s) from %s", len(body), media_type, url)
        return FetchedImage(data=bytes(body), content_type=media_type)


class RemoteFetcher:
    def __init__(
        self,
        timeout: float = 10.0,
        max_bytes: int = 20 * 1024 * 1024,
        max_concurrency: int = 8,
        user_agent: str = "image-ingest/0.1",
        allow_private_hosts: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.max_concurrency = max_concurrency
        self.user_agent = user_agent
        self.allow_private_hosts = allow_private_hosts
        self._transport = transport

    async def _check_request_host(self, request: httpx.Request) -> None:
        # Runs for every hop, so redirects into private ranges are refused too.
        if is_private_host(request.url.host):
            raise BlockedHostError(f"Host is blocked (localhost/private): {request.url.host}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[FetchSession]:
        headers = {"User-Agent": self.user_agent, "Accept": "image/*"}
        limits = httpx.Limits(
            max_connections=self.max_concurrency,
            max_keepalive_connections=self.max_concurrency,
        )
        event_hooks = {} if self.allow_private_hosts else {"request": [self._check_request_host]}
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            limits=limits,
            follow_redirects=True,
            headers=headers,
            event_hooks=event_hooks,
            transport=self._transport,
        ) as client:
            yield FetchSession(self, client)

"""Document source backed by an httpx async client.

Probes with ``HEAD`` (falling back to a one-byte ranged ``GET`` for servers
that reject ``HEAD``) and downloads by streaming, so an oversized body is
abandoned as soon as it crosses the byte ceiling instead of being held in
memory.

Failure classification for the fetcher's retry loop:

    Timeout / connection error / 429 / 5xx  →  DownloadError(transient=True)
    Any other 4xx                           →  DownloadError(transient=False)
    Body larger than max_bytes              →  ValidationError
"""

from __future__ import annotations

import re

import httpx
import structlog

from studyrag.interfaces.document_source import IDocumentSource, SourceProbe
from studyrag.utils.errors import DownloadError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_HEADERS = {
    "User-Agent": "StudyRAG/0.1 (+course material ingestion)",
    "Accept": "application/pdf,application/octet-stream;q=0.9,*/*;q=0.5",
}

_HEAD_UNSUPPORTED = frozenset({405, 501})
_CONTENT_RANGE_TOTAL = re.compile(r"/\s*(\d+)\s*$")


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _media_type(headers: httpx.Headers) -> str | None:
    raw = headers.get("content-type")
    if not raw:
        return None
    return raw.split(";", 1)[0].strip().lower() or None


def _declared_length(response: httpx.Response) -> int | None:
    """Return the full resource size advertised by *response*, if any."""
    content_range = response.headers.get("content-range")
    if content_range:
        match = _CONTENT_RANGE_TOTAL.search(content_range)
        if match:
            return int(match.group(1))
    if response.status_code == 206:
        # Content-Length of a ranged reply is the range, not the file.
        return None
    raw = response.headers.get("content-length")
    if raw and raw.strip().isdigit():
        return int(raw.strip())
    return None


class HttpxDocumentSource(IDocumentSource):
    """Fetches course documents over HTTP(S).

    Parameters
    ----------
    http_client:
        Shared client; one is created (and owned) when omitted.
    probe_timeout:
        Timeout in seconds for the probe request.
    download_timeout:
        Timeout in seconds for one download attempt.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        probe_timeout: float = 10.0,
        download_timeout: float = 45.0,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )
        self._probe_timeout = probe_timeout
        self._download_timeout = download_timeout

    # ------------------------------------------------------------------
    # IDocumentSource implementation
    # ------------------------------------------------------------------

    async def probe(self, url: str) -> SourceProbe:
        try:
            response = await self._client.head(url, timeout=self._probe_timeout)
            if response.status_code in _HEAD_UNSUPPORTED:
                logger.debug("head_unsupported_trying_range", url=url)
                async with self._client.stream(
                    "GET",
                    url,
                    headers={"Range": "bytes=0-0"},
                    timeout=self._probe_timeout,
                ) as ranged:
                    response = ranged
        except httpx.TimeoutException as exc:
            raise DownloadError(
                message=f"Timeout probing {url}",
                provider_name=self.get_provider_name(),
                transient=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadError(
                message=f"Could not reach {url}: {exc}",
                provider_name=self.get_provider_name(),
                transient=True,
            ) from exc

        probe = SourceProbe(
            status_code=response.status_code,
            content_type=_media_type(response.headers),
            content_length=_declared_length(response),
        )
        logger.debug(
            "source_probed",
            url=url,
            status=probe.status_code,
            content_type=probe.content_type,
            content_length=probe.content_length,
        )
        return probe

    async def fetch(self, url: str, max_bytes: int | None = None) -> bytes:
        try:
            async with self._client.stream("GET", url, timeout=self._download_timeout) as response:
                if response.status_code >= 400:
                    raise DownloadError(
                        message=f"HTTP {response.status_code} for {url}",
                        provider_name=self.get_provider_name(),
                        transient=_is_transient_status(response.status_code),
                    )

                declared = _declared_length(response)
                if max_bytes is not None and declared is not None and declared > max_bytes:
                    raise ValidationError(
                        message=f"Document is {declared} bytes; the limit is {max_bytes}",
                        provider_name=self.get_provider_name(),
                    )

                body = bytearray()
                async for piece in response.aiter_bytes():
                    body.extend(piece)
                    if max_bytes is not None and len(body) > max_bytes:
                        raise ValidationError(
                            message=f"Document exceeds the {max_bytes} byte limit",
                            provider_name=self.get_provider_name(),
                        )
        except httpx.TimeoutException as exc:
            raise DownloadError(
                message=f"Timeout downloading {url}",
                provider_name=self.get_provider_name(),
                transient=True,
            ) from exc
        except httpx.TransportError as exc:
            raise DownloadError(
                message=f"Connection error downloading {url}: {exc}",
                provider_name=self.get_provider_name(),
                transient=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadError(
                message=f"HTTP error downloading {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("document_downloaded", url=url, size=len(body))
        return bytes(body)

    def get_provider_name(self) -> str:
        return "httpx"

    async def aclose(self) -> None:
        """Close the underlying client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

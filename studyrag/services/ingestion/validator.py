"""Source validation performed before any download.

Checks, in order, that a material's source URL

1. is an absolute ``http``/``https`` URL with a host,
2. answers a probe with a 2xx status,
3. declares an accepted content type, and
4. declares a size within the configured ceiling.

A missing ``Content-Length`` passes step 4; the fetcher enforces the same
ceiling while streaming.  Every failure raises :class:`ValidationError`
with a reason a learner or instructor can act on.
"""

from __future__ import annotations

import httpx

from studyrag.interfaces.document_source import IDocumentSource, SourceProbe
from studyrag.utils.errors import DownloadError, ValidationError
from studyrag.utils.logging import get_logger

_DEFAULT_CONTENT_TYPES = ("application/pdf", "application/octet-stream")
_DEFAULT_MAX_BYTES = 50 * 1024 * 1024


class SourceValidator:
    """Read-only pre-flight checks for a document URL."""

    def __init__(
        self,
        source: IDocumentSource,
        max_bytes: int = _DEFAULT_MAX_BYTES,
        allowed_content_types: list[str] | tuple[str, ...] = _DEFAULT_CONTENT_TYPES,
    ) -> None:
        self._source = source
        self._max_bytes = max_bytes
        self._allowed = frozenset(t.lower() for t in allowed_content_types)
        self._logger = get_logger(__name__)

    async def validate(self, url: str) -> SourceProbe:
        """Validate *url* and return the probe that passed.

        Raises
        ------
        ValidationError
            If any check fails.
        """
        self._check_url(url)

        try:
            probe = await self._source.probe(url)
        except DownloadError as exc:
            raise ValidationError(
                message=f"Source is not reachable: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        if not probe.ok:
            raise ValidationError(f"Source is not reachable (HTTP {probe.status_code})")

        if probe.content_type is None or probe.content_type not in self._allowed:
            raise ValidationError(
                f"Source is not a PDF document (content type: {probe.content_type or 'unknown'})"
            )

        if probe.content_length is not None and probe.content_length > self._max_bytes:
            raise ValidationError(
                f"Source is too large ({_megabytes(probe.content_length)} MB; "
                f"limit {_megabytes(self._max_bytes)} MB)"
            )

        self._logger.info(
            "source_validated",
            url=url,
            content_type=probe.content_type,
            content_length=probe.content_length,
        )
        return probe

    @staticmethod
    def _check_url(url: str) -> None:
        try:
            parsed = httpx.URL(url.strip())
        except (httpx.InvalidURL, TypeError) as exc:
            raise ValidationError(f"Invalid source URL: {url!r}") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValidationError(f"Source URL must be an http(s) address: {url!r}")


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}"

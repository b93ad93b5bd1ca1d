"""Remote document sources (HTTP download and probing)."""

from studyrag.providers.fetch.httpx_document_source import HttpxDocumentSource

__all__ = ["HttpxDocumentSource"]

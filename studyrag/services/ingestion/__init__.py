"""Material ingestion stages, in pipeline order.

    validate → fetch → extract → clean → chunk → embed

1. **Validate** (validator.py / SourceValidator) -- probes the URL for
   reachability, PDF content type and size before anything is downloaded.
2. **Fetch** (fetcher.py / DocumentFetcher) -- downloads the bytes with a
   per-attempt timeout and exponential backoff on transient failures.
3. **Extract** (extractor.py / TextExtractor) -- tries PDF parsing
   strategies in order until one yields text.
4. **Clean** (cleaner.py / TextCleaner) -- normalizes whitespace and strips
   control characters; empty output is an error.
5. **Chunk** (chunker.py / TextChunker) -- packs sentences into ~1000
   character chunks with ~200 characters of overlap.
6. **Embed** (embedder.py / BatchEmbedder) -- embeds chunk texts in
   sequential, paced batches.

Storage and status transitions belong to the orchestrator in
``studyrag/pipeline/orchestrator.py``.
"""

from studyrag.services.ingestion.chunker import TextChunker
from studyrag.services.ingestion.cleaner import TextCleaner
from studyrag.services.ingestion.embedder import BatchEmbedder
from studyrag.services.ingestion.extractor import TextExtractor
from studyrag.services.ingestion.fetcher import DocumentFetcher
from studyrag.services.ingestion.validator import SourceValidator

__all__ = [
    "BatchEmbedder",
    "DocumentFetcher",
    "SourceValidator",
    "TextChunker",
    "TextCleaner",
    "TextExtractor",
]

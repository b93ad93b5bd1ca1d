"""StudyRAG: ingestion and retrieval-augmented question answering for course PDFs."""

__version__ = "0.1.0"

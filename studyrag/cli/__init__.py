"""Command-line tools for StudyRAG (``python -m studyrag.cli``)."""

"""Application services for StudyRAG.

- ``ingestion/`` -- the stages that turn a PDF URL into embedded chunks.
- ``retriever`` -- ranks stored chunks against a question.
- ``answer_generator`` -- grounded LLM answer from ranked chunks.
- ``follow_up_suggester`` -- follow-up questions with a fixed fallback.
"""

from studyrag.services.answer_generator import (
    APOLOGY_MESSAGE,
    NO_MATERIAL_MESSAGE,
    AnswerGenerator,
)
from studyrag.services.follow_up_suggester import FALLBACK_SUGGESTIONS, FollowUpSuggester
from studyrag.services.retriever import Retriever

__all__ = [
    "APOLOGY_MESSAGE",
    "AnswerGenerator",
    "FALLBACK_SUGGESTIONS",
    "FollowUpSuggester",
    "NO_MATERIAL_MESSAGE",
    "Retriever",
]

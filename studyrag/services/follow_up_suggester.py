"""Follow-up question suggestions.

A second, more creative LLM call proposes three follow-up questions.  The
reply is treated as free text: list-looking lines are picked out and
everything else is ignored.  The caller always receives a list; when
nothing usable comes back, generic study prompts are returned instead.
"""

from __future__ import annotations

import re

import structlog

from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.models.rag import SourceCitation
from studyrag.utils.concurrency import with_timeout
from studyrag.utils.errors import LLMError
from studyrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

FALLBACK_SUGGESTIONS: tuple[str, ...] = (
    "Can you explain this concept further?",
    "What are some practical applications?",
    "Are there related topics I should study?",
)

_MAX_SUGGESTIONS = 3
_MIN_SUGGESTION_CHARS = 10
_MAX_TITLES = 2

# "1. ...", "2) ...", "- ...", "* ...", "• ..."
_LIST_MARKER_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


class FollowUpSuggester:
    """Suggests up to three follow-up questions for an answered question."""

    _SYSTEM_PROMPT = (
        "You help learners keep studying. Given a question, its answer and the "
        "course materials it came from, suggest exactly 3 short follow-up "
        "questions the learner could ask next. Return them as a numbered list, "
        "one per line, with no other text."
    )

    def __init__(
        self,
        llm: ILLMProvider,
        temperature: float = 0.7,
        max_tokens: int = 200,
        timeout: float | None = None,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    async def suggest(
        self,
        question: str,
        answer: str,
        sources: list[SourceCitation],
    ) -> list[str]:
        """Return follow-up questions; ``[]`` only when *sources* is empty."""
        if not sources:
            return []

        titles: list[str] = []
        for source in sources:
            if source.material_title not in titles:
                titles.append(source.material_title)
            if len(titles) == _MAX_TITLES:
                break

        user_prompt = (
            f"Question: {question}\n\n"
            f"Answer: {answer}\n\n"
            f"Course materials: {', '.join(titles)}"
        )

        try:
            raw = await with_timeout(
                self._llm.complete(
                    system_prompt=self._SYSTEM_PROMPT,
                    user_prompt=user_prompt,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                ),
                self._timeout,
                lambda message: LLMError(message, provider_name=self._llm.get_provider_name()),
                operation="follow-up suggestion",
            )
        except Exception as exc:
            logger.warning("follow_up_llm_failed", error=str(exc))
            return list(FALLBACK_SUGGESTIONS)

        suggestions = self.parse_suggestions(raw)
        if not suggestions:
            logger.debug("follow_up_parse_empty", raw_length=len(raw or ""))
            return list(FALLBACK_SUGGESTIONS)
        return suggestions

    @staticmethod
    def parse_suggestions(raw: str | None) -> list[str]:
        """Pick numbered/bulleted lines out of *raw*, markers stripped."""
        suggestions: list[str] = []
        for line in (raw or "").splitlines():
            match = _LIST_MARKER_RE.match(line)
            if not match:
                continue
            text = line[match.end() :].strip().strip('"').strip()
            if len(text) <= _MIN_SUGGESTION_CHARS:
                continue
            suggestions.append(text)
            if len(suggestions) == _MAX_SUGGESTIONS:
                break
        return suggestions

"""Grounded answer generation from retrieved chunks.

Builds a bounded context from ranked chunks, adds a short rendering of the
recent conversation, and asks the LLM to answer strictly from that
context.  The learner always receives answer-shaped text:

- no chunks at all → a fixed "no material" message, without calling the LLM;
- any LLM failure or timeout → a fixed apology.
"""

from __future__ import annotations

import structlog

from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.models.material import ChatTurn
from studyrag.models.rag import GeneratedAnswer, RetrievalResult, SourceCitation
from studyrag.utils.concurrency import with_timeout
from studyrag.utils.errors import LLMError
from studyrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_MATERIAL_MESSAGE = (
    "I couldn't find anything about that in your course materials yet. "
    "Try rephrasing the question, or check that the relevant materials "
    "have finished processing."
)
APOLOGY_MESSAGE = (
    "Sorry, I wasn't able to answer that question right now. Please try again in a moment."
)


class AnswerGenerator:
    """Produces an answer grounded in retrieved course material.

    Parameters
    ----------
    llm:
        LLM provider used for generation.
    context_char_budget:
        Maximum characters of chunk context sent to the model (default 8000).
    history_turns:
        Number of most recent chat turns included (default 3).
    temperature, max_tokens:
        Sampling settings for the answer call.
    timeout:
        Seconds allowed for the LLM call.
    """

    _SYSTEM_PROMPT = (
        "You are a study assistant helping a learner with their course materials.\n\n"
        "Guidelines:\n"
        "- Answer ONLY from the course material provided below.\n"
        "- If the material does not contain enough information to answer, say so "
        "explicitly instead of guessing.\n"
        "- Name the source material(s) your answer relies on, using the titles shown "
        "in the [Source: ...] headers.\n"
        "- Be concise and clear; prefer short paragraphs or lists.\n"
    )

    def __init__(
        self,
        llm: ILLMProvider,
        context_char_budget: int = 8000,
        history_turns: int = 3,
        temperature: float = 0.1,
        max_tokens: int = 800,
        timeout: float | None = None,
    ) -> None:
        self._llm = llm
        self._context_char_budget = context_char_budget
        self._history_turns = history_turns
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        question: str,
        results: list[RetrievalResult],
        history: list[ChatTurn] | None = None,
    ) -> GeneratedAnswer:
        """Answer *question* from *results* (already ranked).

        Never raises: provider failures produce :data:`APOLOGY_MESSAGE`.
        """
        if not results:
            logger.info("answer_no_material", question=question[:80])
            return GeneratedAnswer(text=NO_MATERIAL_MESSAGE)

        context, included = self.build_context(results)
        if not included:
            logger.warning("answer_context_over_budget", budget=self._context_char_budget)
            return GeneratedAnswer(text=NO_MATERIAL_MESSAGE)
        sources = [
            SourceCitation(
                material_id=r.chunk.material_id,
                material_title=r.title,
                chunk_index=r.chunk.chunk_index,
                relevance_score=r.relevance_score,
            )
            for r in included
        ]

        system_prompt = f"{self._SYSTEM_PROMPT}\nCourse material:\n{context}"
        history_text = self.render_history(history or [])
        if history_text:
            system_prompt = f"{system_prompt}\n\nRecent conversation:\n{history_text}"

        try:
            text = await with_timeout(
                self._llm.complete(
                    system_prompt=system_prompt,
                    user_prompt=question,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                ),
                self._timeout,
                lambda message: LLMError(message, provider_name=self._llm.get_provider_name()),
                operation="answer generation",
            )
        except Exception as exc:
            logger.error("answer_llm_failed", error=str(exc), question=question[:80])
            return GeneratedAnswer(text=APOLOGY_MESSAGE, sources=sources)

        text = text.strip()
        if not text:
            logger.warning("answer_llm_empty", question=question[:80])
            return GeneratedAnswer(text=APOLOGY_MESSAGE, sources=sources)

        logger.info(
            "answer_generated",
            question=question[:80],
            sources=len(sources),
            context_chars=len(context),
        )
        return GeneratedAnswer(text=text, sources=sources, grounded=True)

    def build_context(self, results: list[RetrievalResult]) -> tuple[str, list[RetrievalResult]]:
        """Join ``[Source: title]`` blocks in ranking order within the budget.

        A block that would push the context past the budget is left out
        whole, and so is everything ranked below it.

        Returns
        -------
        tuple[str, list[RetrievalResult]]
            The context text and the results it contains.
        """
        blocks: list[str] = []
        included: list[RetrievalResult] = []
        length = 0
        for result in results:
            block = f"[Source: {result.title}]\n{result.content}"
            added = len(block) + (2 if blocks else 0)
            if length + added > self._context_char_budget:
                break
            blocks.append(block)
            included.append(result)
            length += added
        return "\n\n".join(blocks), included

    def render_history(self, history: list[ChatTurn]) -> str:
        if self._history_turns <= 0:
            return ""
        lines: list[str] = []
        for turn in history[-self._history_turns :]:
            lines.append(f"Learner: {turn.question}")
            if turn.answer:
                lines.append(f"Assistant: {turn.answer}")
        return "\n".join(lines)

"""Answer generation for due follow-ups."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .errors import CompletionError
from .llm import CompletionClient, CompletionParameters
from .prompts import answer_messages
from .repository import KnowledgeLookup
from .schemas import KnowledgeSnippet, Topic, Urgency

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = (
    "Lass uns das Problem zusammen angehen. "
    "Beschreibe mir nochmal kurz was nicht funktioniert."
)
KNOWLEDGE_LIMIT = 3
EXCERPT_LENGTH = 150


class AnswerGenerator(Protocol):
    def generate(self, summary: str, topic: Topic, urgency: Urgency) -> str: ...


def format_knowledge(snippets: Iterable[KnowledgeSnippet]) -> str:
    """Render snippets as ``**title**: summary`` blocks separated by blank lines."""

    return "\n\n".join(
        f"**{snippet.title}**: {snippet.summary or snippet.content[:EXCERPT_LENGTH]}"
        for snippet in snippets
    )


class StaticAnswerGenerator:
    def generate(self, summary: str, topic: Topic, urgency: Urgency) -> str:
        return FALLBACK_ANSWER


class LLMAnswerGenerator:
    """Ask the language model for a short answer grounded in the knowledge base."""

    def __init__(
        self,
        client: CompletionClient,
        knowledge: KnowledgeLookup,
        parameters: CompletionParameters,
        *,
        persona: str,
        company: str,
    ) -> None:
        self._client = client
        self._knowledge = knowledge
        self._parameters = parameters
        self._persona = persona
        self._company = company

    def _context(self, topic: Topic) -> str:
        try:
            snippets = self._knowledge.find(topic, limit=KNOWLEDGE_LIMIT)
        except Exception as exc:
            logger.warning("Knowledge lookup for topic %s failed: %s", topic.value, exc)
            return ""
        return format_knowledge(snippets[:KNOWLEDGE_LIMIT])

    def generate(self, summary: str, topic: Topic, urgency: Urgency) -> str:
        messages = answer_messages(
            persona=self._persona,
            company=self._company,
            summary=summary,
            topic=topic.value,
            urgency=urgency.value,
            knowledge=self._context(topic),
        )
        answer = self._client.complete(messages, self._parameters).strip()
        if not answer:
            raise CompletionError("Answer generator produced no text.")
        return answer


class FallbackAnswerGenerator:
    """Never raises and never returns an empty answer."""

    def __init__(self, primary: AnswerGenerator, fallback: AnswerGenerator | None = None) -> None:
        self._primary = primary
        self._fallback = fallback or StaticAnswerGenerator()

    def generate(self, summary: str, topic: Topic, urgency: Urgency) -> str:
        try:
            answer = self._primary.generate(summary, topic, urgency)
        except Exception as exc:
            logger.warning("Answer generation failed, using fallback answer: %s", exc)
        else:
            if answer and answer.strip():
                return answer.strip()
            logger.warning("Answer generator returned empty text, using fallback answer")
        try:
            answer = self._fallback.generate(summary, topic, urgency)
        except Exception as exc:
            logger.warning("Fallback answer generator failed: %s", exc)
            return FALLBACK_ANSWER
        return answer.strip() or FALLBACK_ANSWER


__all__ = [
    "FALLBACK_ANSWER",
    "AnswerGenerator",
    "FallbackAnswerGenerator",
    "LLMAnswerGenerator",
    "StaticAnswerGenerator",
    "format_knowledge",
]

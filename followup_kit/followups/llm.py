"""Chat completion client used by the classifier and answer generator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from openai import OpenAI, OpenAIError

from .errors import CompletionError

logger = logging.getLogger(__name__)

ChatMessages = list[dict[str, str]]


@dataclass(frozen=True)
class CompletionParameters:
    """Model parameters for a single completion call."""

    model: str
    temperature: float
    max_tokens: int | None = None


class CompletionClient(Protocol):
    """Anything that turns chat messages into a completion text."""

    def complete(self, messages: ChatMessages, parameters: CompletionParameters) -> str: ...


class OpenAICompletionClient:
    """Completion client backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 20.0,
        client: Any | None = None,
    ) -> None:
        if client is None and not api_key:
            raise CompletionError("OPENAI_API_KEY is not configured.")
        self._client = client or OpenAI(api_key=api_key, timeout=timeout)

    def complete(self, messages: ChatMessages, parameters: CompletionParameters) -> str:
        request: dict[str, Any] = {
            "model": parameters.model,
            "messages": messages,
            "temperature": parameters.temperature,
            "presence_penalty": 0.1,
            "frequency_penalty": 0.1,
        }
        if parameters.max_tokens is not None:
            request["max_tokens"] = parameters.max_tokens
        try:
            completion = self._client.chat.completions.create(**request)
        except OpenAIError as exc:
            logger.warning("OpenAI chat completion failed: %s", exc)
            raise CompletionError(str(exc)) from exc

        if not completion.choices:
            raise CompletionError("Completion returned no choices.")
        content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise CompletionError("Completion returned empty content.")
        return content


__all__ = ["ChatMessages", "CompletionClient", "CompletionParameters", "OpenAICompletionClient"]

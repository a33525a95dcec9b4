"""Classification of user messages into topic, urgency and summary."""

from __future__ import annotations

import json
import logging
import re
from typing import Protocol

from .errors import ClassificationError
from .llm import CompletionClient, CompletionParameters
from .prompts import analysis_messages
from .schemas import MessageAnalysis, Topic, Urgency

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 100

# Evaluated in order; the first match wins.
TOPIC_PATTERNS: tuple[tuple[Topic, re.Pattern[str]], ...] = (
    (Topic.KYC, re.compile(r"kyc|verifizierung|dokument|ausweis|upload.*dokument", re.I)),
    (Topic.TECHNICAL, re.compile(r"funktioniert.*nicht|fehler|problem|lädt.*nicht|technisch", re.I)),
    (Topic.TASK_REJECTION, re.compile(r"aufgabe.*abgelehnt|ablehnung|nicht.*akzeptiert", re.I)),
    (Topic.PAYMENT, re.compile(r"zahlung|vergütung|geld|überweisung|bezahlung", re.I)),
    (Topic.TASK_HELP, re.compile(r"aufgabe|task|schritt|anleitung|wie.*mache", re.I)),
)
URGENT_PATTERN = re.compile(r"hilfe|problem|fehler|dringend|schnell|sofort|wichtig|eilig", re.I)
CASUAL_PATTERN = re.compile(r"danke|bitte|vielleicht|später|gerne|mal", re.I)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


class MessageClassifier(Protocol):
    def classify(self, message: str) -> MessageAnalysis: ...


def summarize(message: str) -> str:
    return message[:SUMMARY_LENGTH]


def detect_topic(message: str) -> Topic:
    for topic, pattern in TOPIC_PATTERNS:
        if pattern.search(message):
            return topic
    return Topic.GENERAL


def detect_urgency(message: str) -> Urgency:
    if URGENT_PATTERN.search(message) or message.count("!") >= 2:
        return Urgency.HIGH
    if CASUAL_PATTERN.search(message) or "?" in message:
        return Urgency.LOW
    return Urgency.NORMAL


class RuleBasedClassifier:
    """Deterministic keyword classifier used when the model is unavailable."""

    def classify(self, message: str) -> MessageAnalysis:
        return MessageAnalysis(
            summary=summarize(message),
            topic=detect_topic(message),
            urgency=detect_urgency(message),
        )


class LLMClassifier:
    """Classifier that asks the language model for a strict JSON verdict."""

    def __init__(self, client: CompletionClient, parameters: CompletionParameters) -> None:
        self._client = client
        self._parameters = parameters

    def classify(self, message: str) -> MessageAnalysis:
        raw = self._client.complete(analysis_messages(message), self._parameters)
        return parse_analysis(raw, message)


def parse_analysis(raw: str, message: str) -> MessageAnalysis:
    """Validate a model response; the summary falls back to the message."""

    cleaned = _CODE_FENCE.sub("", raw.strip())
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        raise ClassificationError(f"Classifier returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClassificationError("Classifier response is not a JSON object.")

    try:
        topic = Topic(payload.get("topic"))
        urgency = Urgency(payload.get("urgency"))
    except ValueError as exc:
        raise ClassificationError(f"Classifier returned an unknown label: {exc}") from exc

    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = summarize(message)
    return MessageAnalysis(summary=summary.strip(), topic=topic, urgency=urgency)


class FallbackClassifier:
    """Return the primary verdict, or the fallback's when the primary fails."""

    def __init__(self, primary: MessageClassifier, fallback: MessageClassifier) -> None:
        self._primary = primary
        self._fallback = fallback

    def classify(self, message: str) -> MessageAnalysis:
        try:
            return self._primary.classify(message)
        except Exception as exc:
            logger.warning("Message classification failed, using rules: %s", exc)
            return self._fallback.classify(message)


__all__ = [
    "FallbackClassifier",
    "LLMClassifier",
    "MessageClassifier",
    "RuleBasedClassifier",
    "detect_topic",
    "detect_urgency",
    "parse_analysis",
]

"""German prompt templates for message analysis and follow-up answers."""

from __future__ import annotations

ANALYSIS_PROMPT = """\
Analysiere die folgende Nachricht eines Nutzers aus dem Support-Chat.

Nachricht: "{message}"

Gib ausschließlich ein JSON-Objekt mit genau diesen Feldern zurück:
{{
  "summary": "Ein Satz, der beschreibt, was der Nutzer braucht",
  "topic": "kyc|technical|task_rejection|payment|task_help|general",
  "urgency": "low|normal|high|urgent"
}}

Beispiel:
Nachricht: "Mein Ausweis wird beim Hochladen nicht angenommen"
Antwort: {{"summary": "Nutzer kann seinen Ausweis nicht hochladen", "topic": "kyc", "urgency": "normal"}}
"""

ANSWER_PROMPT = """\
Du bist {persona}, erfahrener Projektleiter bei {company}. Du meldest dich \
zurück, nachdem du eine Weile nicht erreichbar warst, und gibst eine direkte \
Antwort auf das Anliegen des Nutzers.

Anliegen: "{summary}"
Thema: {topic}
Dringlichkeit: {urgency}

Firmenwissen:
{knowledge}

Regeln:
- Liefere eine konkrete Lösung und wiederhole die Frage nicht.
- Nutze das Firmenwissen, wenn es passt.
- Höchstens drei Sätze.
- Bei technischen Problemen nenne konkrete Schritte.
"""


def analysis_messages(message: str) -> list[dict[str, str]]:
    return [{"role": "system", "content": ANALYSIS_PROMPT.format(message=message)}]


def answer_messages(
    *,
    persona: str,
    company: str,
    summary: str,
    topic: str,
    urgency: str,
    knowledge: str,
) -> list[dict[str, str]]:
    content = ANSWER_PROMPT.format(
        persona=persona,
        company=company,
        summary=summary,
        topic=topic,
        urgency=urgency,
        knowledge=knowledge or "(keine passenden Artikel)",
    )
    return [{"role": "system", "content": content}]

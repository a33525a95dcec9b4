"""Assembly of the follow-up pipeline for one process."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from followup_kit.core.config import Settings, get_settings
from followup_kit.models.session import get_sessionmaker

from .answers import AnswerGenerator, FallbackAnswerGenerator, LLMAnswerGenerator, StaticAnswerGenerator
from .availability import BusinessHours
from .classifier import FallbackClassifier, LLMClassifier, MessageClassifier, RuleBasedClassifier
from .composer import FollowUpComposer
from .dispatcher import FollowUpDispatcher
from .llm import CompletionClient, CompletionParameters, OpenAICompletionClient
from .models import Clock, utcnow
from .repository import SqlAlchemyFollowUpStore, SqlAlchemyKnowledgeLookup
from .scheduler import FollowUpScheduler
from .service import FollowUpService

logger = logging.getLogger(__name__)


@dataclass
class FollowUpRuntime:
    """Everything the HTTP layer needs; the scheduler is the single loop of the process."""

    settings: Settings
    store: SqlAlchemyFollowUpStore
    service: FollowUpService
    dispatcher: FollowUpDispatcher
    scheduler: FollowUpScheduler


def _completion_client(settings: Settings) -> Optional[CompletionClient]:
    if not settings.llm_enabled:
        logger.info("OPENAI_API_KEY not set; using rule-based classification and static answers")
        return None
    return OpenAICompletionClient(settings.openai_api_key, timeout=settings.openai_timeout_seconds)


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker[Session]] = None,
    completion_client: Optional[CompletionClient] = None,
    clock: Clock = utcnow,
) -> FollowUpRuntime:
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = get_sessionmaker(settings.database_url, pool_pre_ping=True)
    client = completion_client or _completion_client(settings)

    store = SqlAlchemyFollowUpStore(session_factory)
    hours = BusinessHours(settings.tz)

    rules = RuleBasedClassifier()
    classifier: MessageClassifier = rules
    answers: AnswerGenerator = StaticAnswerGenerator()
    if client is not None:
        classifier = FallbackClassifier(
            LLMClassifier(
                client,
                CompletionParameters(
                    model=settings.openai_model,
                    temperature=settings.classification_temperature,
                ),
            ),
            rules,
        )
        answers = FallbackAnswerGenerator(
            LLMAnswerGenerator(
                client,
                SqlAlchemyKnowledgeLookup(session_factory),
                CompletionParameters(
                    model=settings.openai_model,
                    temperature=settings.answer_temperature,
                    max_tokens=settings.answer_max_tokens,
                ),
                persona=settings.persona_name,
                company=settings.company_name,
            )
        )

    dispatcher = FollowUpDispatcher(
        store,
        answers,
        FollowUpComposer(settings.tz),
        max_workers=settings.dispatch_concurrency,
        clock=clock,
    )
    return FollowUpRuntime(
        settings=settings,
        store=store,
        service=FollowUpService(store, classifier, hours, clock=clock),
        dispatcher=dispatcher,
        scheduler=FollowUpScheduler(
            dispatcher, settings.scheduler_interval_seconds, clock=clock
        ),
    )


__all__ = ["FollowUpRuntime", "build_runtime"]

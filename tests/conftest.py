import pathlib
import sys
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from followup_kit.app_logging import init_logging
from followup_kit.core.config import Settings
from followup_kit.core.limits import limiter
from followup_kit.followups.errors import CompletionError
from followup_kit.followups.llm import CompletionParameters
from followup_kit.followups.repository import SqlAlchemyFollowUpStore
from followup_kit.followups.runtime import build_runtime
from followup_kit.followups.schemas import FollowUpCreate, MessageAnalysis, Topic, Urgency
from followup_kit.models import KnowledgeArticle, Profile
from followup_kit.models.session import create_schema, get_engine

@dataclass
class FrozenClock:
    """Callable clock that only moves when told to."""

    now: datetime

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@dataclass
class FakeCompletionClient:
    """Completion client returning queued replies; exceptions in the queue are raised."""

    replies: list = field(default_factory=list)
    calls: list = field(default_factory=list)

    def complete(self, messages, parameters: CompletionParameters) -> str:
        self.calls.append((messages, parameters))
        if not self.replies:
            raise CompletionError("no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def session_factory(tmp_path_factory: pytest.TempPathFactory) -> sessionmaker[Session]:
    db_path = tmp_path_factory.mktemp("follow-ups") / "follow_ups.db"
    engine = get_engine(
        f"sqlite+pysqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    create_schema(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False, future=True)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlAlchemyFollowUpStore:
    return SqlAlchemyFollowUpStore(session_factory)


@pytest.fixture
def clock() -> FrozenClock:
    # Tuesday 2024-03-05 10:00 in Berlin.
    return FrozenClock(datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def add_profile(session_factory):
    def _add(first_name: str = "Anna", user_id: uuid.UUID | None = None) -> uuid.UUID:
        user_id = user_id or uuid.uuid4()
        with session_factory.begin() as session:
            session.add(Profile(id=user_id, first_name=first_name, last_name="Muster"))
        return user_id

    return _add


@pytest.fixture
def add_article(session_factory):
    def _add(title: str, content: str, **fields) -> None:
        with session_factory.begin() as session:
            session.add(KnowledgeArticle(title=title, content=content, **fields))

    return _add


@pytest.fixture
def make_follow_up(store, clock):
    """Insert a pending follow-up due at ``promised`` (defaults to one hour ago)."""

    def _make(
        user_id: uuid.UUID | None = None,
        *,
        conversation_id: uuid.UUID | None = None,
        promised: datetime | None = None,
        created: datetime | None = None,
        topic: Topic = Topic.TECHNICAL,
        urgency: Urgency = Urgency.NORMAL,
        summary: str = "Upload funktioniert nicht",
    ):
        payload = FollowUpCreate(
            conversation_id=conversation_id or uuid.uuid4(),
            user_id=user_id or uuid.uuid4(),
            user_message=summary,
        )
        analysis = MessageAnalysis(summary=summary, topic=topic, urgency=urgency)
        return store.create(
            payload,
            analysis,
            promised or clock.now - timedelta(hours=1),
            created or clock.now - timedelta(hours=2),
        )

    return _make


@pytest.fixture
def follow_up_settings() -> Settings:
    return Settings(
        database_url=None,
        scheduler_autostart=False,
        scheduler_interval_seconds=3600,
        dispatch_concurrency=2,
    )


@pytest.fixture
def runtime(follow_up_settings, session_factory, clock):
    runtime = build_runtime(follow_up_settings, session_factory=session_factory, clock=clock)
    yield runtime
    runtime.scheduler.stop()


@pytest.fixture
def api_client(runtime, monkeypatch, tmp_path):
    from starlette.testclient import TestClient

    from followup_kit.main import create_app

    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    limiter.reset()
    with TestClient(create_app(runtime)) as client:
        yield client
    limiter.reset()


@pytest.fixture
def fake_llm():
    def _make(*replies) -> FakeCompletionClient:
        return FakeCompletionClient(replies=list(replies))

    return _make

import json
import logging
import tempfile
import uuid
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from followup_kit.app_logging import APP_LOGGER_NAME, JsonFormatter, init_logging


def _clear_handlers(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    return logger


@pytest.fixture
def log_dir(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("LOG_DIR", tmpdir)
        yield Path(tmpdir)


def test_init_logging_adds_handlers(log_dir):
    app_logger = _clear_handlers(APP_LOGGER_NAME)
    access_logger = _clear_handlers("uvicorn.access")

    init_logging(FastAPI())

    assert any(isinstance(h, TimedRotatingFileHandler) for h in app_logger.handlers)
    assert any(isinstance(h, TimedRotatingFileHandler) for h in access_logger.handlers)

    app_logger.handlers.clear()
    access_logger.handlers.clear()


def test_init_logging_replaces_existing_access_handlers(log_dir):
    access_logger = _clear_handlers("uvicorn.access")

    stream_handler = logging.StreamHandler()
    access_logger.addHandler(stream_handler)

    init_logging()

    assert stream_handler not in access_logger.handlers
    assert any(isinstance(h, TimedRotatingFileHandler) for h in access_logger.handlers)
    access_logger.handlers.clear()
    _clear_handlers(APP_LOGGER_NAME)


def test_timed_rotating_handler_configuration(log_dir, monkeypatch):
    monkeypatch.setenv("LOG_RETENTION_DAYS", "5")
    app_logger = _clear_handlers(APP_LOGGER_NAME)
    access_logger = _clear_handlers("uvicorn.access")

    init_logging()

    app_handler = next(
        h for h in app_logger.handlers if isinstance(h, TimedRotatingFileHandler)
    )
    assert app_handler.when == "MIDNIGHT"
    assert app_handler.backupCount == 5

    access_handler = next(
        h for h in access_logger.handlers if isinstance(h, TimedRotatingFileHandler)
    )
    assert access_handler.backupCount == 5

    app_logger.handlers.clear()
    access_logger.handlers.clear()


def test_pipeline_loggers_write_to_app_log(log_dir, app_factory):
    _clear_handlers(APP_LOGGER_NAME)
    _clear_handlers("uvicorn.access")
    app = app_factory(log_dir, log_request_bodies=True)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    logging.getLogger("followup_kit.followups.dispatcher").info("hello dispatcher")

    with TestClient(app) as client:
        resp = client.post(
            "/echo",
            json={"token": "secret", "value": 1},
            headers={"Authorization": "Bearer secret"},
        )
        assert resp.status_code == 200

    for logger in (app_logger, logging.getLogger("uvicorn.access")):
        for handler in logger.handlers:
            handler.flush()

    app_log = log_dir / "app.log"
    access_log = log_dir / "access.log"

    assert "hello dispatcher" in app_log.read_text()

    access_line = access_log.read_text().splitlines()[-1]
    payload = access_line.split(": ", 1)[1]
    data = json.loads(payload)
    assert data["headers"]["authorization"] == "***"
    assert data["body"]["token"] == "***"

    app_logger.handlers.clear()
    logging.getLogger("uvicorn.access").handlers.clear()


def test_json_formatter_includes_follow_up_context():
    follow_up_id = uuid.uuid4()
    record = logging.makeLogRecord(
        {
            "name": "followup_kit.followups.dispatcher",
            "levelname": "WARNING",
            "msg": "Follow-up delivery failed: %s",
            "args": ("timeout",),
            "follow_up_id": follow_up_id,
            "outcome": "retrying",
        }
    )

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Follow-up delivery failed: timeout"
    assert data["follow_up_id"] == str(follow_up_id)
    assert data["outcome"] == "retrying"
    assert "conversation_id" not in data

"""Utility CLI to create the follow-up tables on the configured database."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from sqlalchemy.engine import make_url

from followup_kit.models.session import create_schema, get_engine

logger = logging.getLogger("tools.init_db")


def _safe_url(db_url: str) -> str:
    """Return ``db_url`` with any password redacted for logging."""

    parsed = make_url(db_url)
    if parsed.password is None:
        return db_url
    return parsed.set(password="***").render_as_string(hide_password=False)


def main() -> None:
    """Script entrypoint: create every missing table."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL environment variable is required")

    logger.info("Ensuring schema on %s", _safe_url(db_url))
    engine = get_engine(db_url)
    try:
        create_schema(engine)
    finally:
        engine.dispose()
    logger.info("Schema ready")


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()

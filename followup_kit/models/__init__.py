"""SQLAlchemy declarative base and follow-up pipeline models.

This package exposes a single declarative ``Base`` class that the session
helpers and ``tools/init_db.py`` use to create tables. Individual models live
in dedicated modules within this package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export the chat models so callers can import them via
# ``from followup_kit.models import FollowUp`` instead of touching private modules.
from .chat import ChatMessage, FollowUp, KnowledgeArticle, Profile


__all__ = [
    "Base",
    "ChatMessage",
    "FollowUp",
    "KnowledgeArticle",
    "Profile",
]

"""Deferred follow-up messaging: availability, classification and dispatch."""

from . import models, schemas

__all__ = ["models", "schemas"]

"""Cross-cutting runtime helpers: configuration and rate limiting."""

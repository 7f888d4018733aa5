"""Semantic search over a user's GitHub stars."""

__version__ = "0.1.0"

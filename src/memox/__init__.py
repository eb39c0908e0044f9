"""Memox: local semantic code retrieval for building LLM prompt context."""

__version__ = "0.1.0"

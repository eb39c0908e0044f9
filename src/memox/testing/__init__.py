"""Test doubles for the retrieval engine (no model downloads, deterministic)."""

from .embedders import FailingEmbedder, HashingEmbedder, TableEmbedder, word_count

__all__ = ["FailingEmbedder", "HashingEmbedder", "TableEmbedder", "word_count"]

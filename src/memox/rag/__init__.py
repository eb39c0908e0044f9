"""RAG (Retrieval-Augmented Generation) engine for prompt context.

Chunks workspace files into semantic units, embeds them into a local
file-backed vector store and assembles token-bounded context for prompts.
"""

from .chunker import Chunk, ChunkMetadata, CodeChunker, split_by_semantic_units
from .context import NO_CONTEXT_MESSAGE, build_context
from .manager import IndexStats, RetrievalManager
from .vectorstore import (
    ChunkEmbedding,
    IncompatibleIndexError,
    IndexCorruptedError,
    IndexFormatError,
    SentenceTransformerEmbedder,
    VectorStore,
)

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "CodeChunker",
    "split_by_semantic_units",
    "NO_CONTEXT_MESSAGE",
    "build_context",
    "IndexStats",
    "RetrievalManager",
    "ChunkEmbedding",
    "IncompatibleIndexError",
    "IndexCorruptedError",
    "IndexFormatError",
    "SentenceTransformerEmbedder",
    "VectorStore",
]

"""File-backed vector store with local sentence-transformers embeddings.

The whole store lives in memory and is rewritten to a single JSON file on
every mutation. Search is a brute-force cosine scan over all records.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import numpy as np
from sentence_transformers import SentenceTransformer

from ..logging_config import get_logger
from .chunker import Chunk

logger = get_logger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
INDEX_VERSION = 1


class IndexFormatError(Exception):
    """The persisted index cannot be used."""


class IndexCorruptedError(IndexFormatError):
    """The index file exists but does not hold a readable record list."""


class IncompatibleIndexError(IndexFormatError):
    """The index file was written by an incompatible format version."""


class EmbeddingDimensionError(ValueError):
    """An embedding does not match the store's dimensionality."""


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]:
        ...


class SentenceTransformerEmbedder:
    """Embed text with a sentence-transformers model, loaded on first use.

    The default all-MiniLM-L6-v2 model:
    - runs on CPU
    - produces 384-dimensional, mean-pooled, L2-normalized vectors
    """

    def __init__(self, model_name: str = DEFAULT_MODEL):
        self.model_name = model_name
        self._model = None

    def _ensure_model_loaded(self):
        if self._model is None:
            logger.info("Loading embedding model %s (first time only)...", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, text: str) -> list[float]:
        model = self._ensure_model_loaded()
        embedding = model.encode(text, normalize_embeddings=True, show_progress_bar=False)
        return embedding.tolist()


@dataclass
class ChunkEmbedding:
    """One chunk paired with its embedding vector."""

    chunk: Chunk
    embedding: list[float]

    def to_dict(self) -> dict:
        return {"chunk": self.chunk.to_dict(), "embedding": self.embedding}

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkEmbedding":
        return cls(
            chunk=Chunk.from_dict(data["chunk"]),
            embedding=[float(x) for x in data["embedding"]],
        )


def cosine_similarity(a, b) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero length."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)


def _load_records(path: Path) -> list[ChunkEmbedding]:
    """Read records from ``path``; a missing file is an empty store."""
    if not path.exists():
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise IndexCorruptedError(
            f"Index file {path} is not valid JSON ({e}); delete it and re-index"
        ) from e

    # Bare arrays are the unversioned legacy format
    if isinstance(raw, list):
        records = raw
    elif isinstance(raw, dict):
        version = raw.get("version")
        if version != INDEX_VERSION:
            raise IncompatibleIndexError(
                f"Incompatible index version {version!r} in {path} "
                f"(expected {INDEX_VERSION}), please re-index"
            )
        records = raw.get("records", [])
    else:
        raise IndexCorruptedError(f"Index file {path} does not contain a record list; delete it and re-index")

    try:
        loaded = [ChunkEmbedding.from_dict(r) for r in records]
    except (KeyError, TypeError, ValueError) as e:
        raise IndexCorruptedError(f"Malformed record in {path}: {e}; delete it and re-index") from e

    dimensions = {len(r.embedding) for r in loaded}
    if len(dimensions) > 1:
        raise IndexCorruptedError(
            f"Index file {path} mixes embedding sizes {sorted(dimensions)}; delete it and re-index"
        )
    return loaded


class VectorStore:
    """Persisted (chunk, embedding) records with cosine similarity search."""

    def __init__(
        self,
        path: str | Path,
        embedder: Optional[Embedder] = None,
        embedder_factory: Optional[Callable[[], Embedder]] = None,
    ):
        """
        Loads existing records from ``path`` if the file exists.

        Args:
            path: Index file location
            embedder: Ready embedder to use
            embedder_factory: Builds the embedder on initialize(); defaults to
                SentenceTransformerEmbedder. Ignored when ``embedder`` is given.

        Raises:
            IndexFormatError: the existing file is unreadable or incompatible
        """
        self.path = Path(path)
        self._embedder = embedder
        self._injected = embedder
        self._embedder_factory = embedder_factory or SentenceTransformerEmbedder
        self._initialized = embedder is not None
        self._records: list[ChunkEmbedding] = _load_records(self.path)
        logger.debug("Loaded %s records from %s", len(self._records), self.path)

    @classmethod
    def open(cls, path: str | Path, embedder: Optional[Embedder] = None) -> "VectorStore":
        return cls(path, embedder=embedder)

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release a factory-built embedder. Records stay on disk; nothing is pending.

        An embedder passed to the constructor is kept for later use.
        """
        self._embedder = self._injected
        self._initialized = self._injected is not None

    @property
    def records(self) -> list[ChunkEmbedding]:
        return list(self._records)

    @property
    def dimension(self) -> Optional[int]:
        if not self._records:
            return None
        return len(self._records[0].embedding)

    def count(self) -> int:
        return len(self._records)

    def files(self) -> set[str]:
        """Source paths (or file names for records without a path) in the store."""
        return {r.chunk.metadata.path or r.chunk.metadata.filename for r in self._records}

    def initialize(self) -> None:
        """Build the embedder once; later calls do nothing."""
        if not self._initialized:
            self._embedder = self._embedder_factory()
            self._initialized = True

    def _embed(self, text: str) -> list[float]:
        self.initialize()
        return [float(x) for x in self._embedder.embed(text)]

    def _embed_chunks(self, chunks: list[Chunk]) -> list[ChunkEmbedding]:
        expected = self.dimension
        embedded = []
        for chunk in chunks:
            embedding = self._embed(chunk.content)
            if expected is None:
                expected = len(embedding)
            elif len(embedding) != expected:
                raise EmbeddingDimensionError(
                    f"Embedding for {chunk.metadata.filename} has {len(embedding)} dimensions, "
                    f"store has {expected}"
                )
            embedded.append(ChunkEmbedding(chunk=chunk, embedding=embedding))
        return embedded

    def add_chunks(self, chunks: list[Chunk]) -> None:
        """Embed chunks, append them and rewrite the index file.

        If embedding fails part way, nothing from this call is kept.
        """
        embedded = self._embed_chunks(chunks)
        self._records.extend(embedded)
        self.save()

    def remove_file(self, path: str | Path) -> int:
        """Drop all records of one source file and rewrite the index.

        Returns:
            Number of records removed
        """
        removed = self._remove_path(str(path))
        if removed:
            self.save()
        return removed

    def _remove_path(self, path: str) -> int:
        before = len(self._records)
        self._records = [r for r in self._records if r.chunk.metadata.path != path]
        return before - len(self._records)

    def replace_file(self, path: str | Path, chunks: list[Chunk]) -> int:
        """Replace one source file's records with ``chunks`` in a single write.

        Embeddings are computed before anything is removed, so a failure leaves
        the previous records in place.

        Returns:
            Number of records removed
        """
        embedded = self._embed_chunks(chunks)
        removed = self._remove_path(str(path))
        self._records.extend(embedded)
        self.save()
        return removed

    def search_scored(self, query: str, k: int = 5) -> list[tuple[Chunk, float]]:
        """Return the ``k`` most similar chunks with their cosine scores.

        Equal scores keep insertion order.
        """
        if k <= 0:
            return []

        query_embedding = np.asarray(self._embed(query), dtype=float)
        if not self._records:
            return []
        if len(query_embedding) != self.dimension:
            raise EmbeddingDimensionError(
                f"Query embedding has {len(query_embedding)} dimensions, index {self.path} has "
                f"{self.dimension}; the embedding model changed, please re-index"
            )

        matrix = np.asarray([r.embedding for r in self._records], dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_embedding)
        dots = matrix @ query_embedding
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        order = np.argsort(-scores, kind="stable")[:k]
        return [(self._records[i].chunk, float(scores[i])) for i in order]

    def search(self, query: str, k: int = 5) -> list[Chunk]:
        """Return the ``k`` chunks most similar to ``query``, best first."""
        return [chunk for chunk, _ in self.search_scored(query, k)]

    def save(self) -> None:
        """Write the full store to disk (pretty-printed UTF-8 JSON)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": INDEX_VERSION,
            "records": [r.to_dict() for r in self._records],
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug("Saved %s records to %s", len(self._records), self.path)

"""Retrieval manager: workspace indexing and prompt context assembly."""

import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config import config
from ..logging_config import get_logger
from .chunker import Chunk, CodeChunker
from .context import build_context
from .tokens import make_token_counter
from .vectorstore import Embedder, SentenceTransformerEmbedder, VectorStore
from .workspace import DEFAULT_EXCLUDE_GLOBS, find_files

logger = get_logger(__name__)

INDEX_FILENAME = "code_index.json"
MAX_FILE_SIZE = 1024 * 1024
CONTEXT_CANDIDATES = 10

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class IndexStats:
    """Outcome of one index_workspace run."""

    files_found: int = 0
    files_processed: int = 0
    files_indexed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_created: int = 0
    cancelled: bool = False
    time_taken: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class RetrievalManager:
    """Owns one vector store and the workspace roots it indexes."""

    def __init__(
        self,
        storage_dir: str | Path,
        roots: Iterable[str | Path] = (),
        chunker: Optional[CodeChunker] = None,
        embedder: Optional[Embedder] = None,
        store: Optional[VectorStore] = None,
        exclude_globs: Iterable[str] = DEFAULT_EXCLUDE_GLOBS,
        max_file_size: int = MAX_FILE_SIZE,
        respect_ignore_files: bool = True,
        index_filename: str = INDEX_FILENAME,
        context_candidates: int = CONTEXT_CANDIDATES,
    ):
        """
        Args:
            storage_dir: Directory holding the index file
            roots: Workspace root directories to index
            chunker: Chunker to use (default settings if omitted)
            embedder: Embedder passed to the store built here
            store: Ready store; overrides storage_dir/index_filename/embedder
            exclude_globs: Globs of files never indexed
            max_file_size: Files larger than this (bytes) are skipped
            respect_ignore_files: Apply .gitignore/.memoxignore at each root
            index_filename: Name of the index file inside storage_dir
            context_candidates: Number of chunks retrieved for context assembly
        """
        self.storage_dir = Path(storage_dir)
        self.roots = [Path(r) for r in roots]
        self.chunker = chunker or CodeChunker()
        self.store = store or VectorStore(self.storage_dir / index_filename, embedder=embedder)
        self.exclude_globs = tuple(exclude_globs)
        self.max_file_size = max_file_size
        self.respect_ignore_files = respect_ignore_files
        self.context_candidates = context_candidates

    @classmethod
    def from_config(cls, roots: Iterable[str | Path], cfg: Optional[dict] = None) -> "RetrievalManager":
        """Build a manager from a config dict shaped like ``memox.config.config``."""
        cfg = cfg or config
        chunking = cfg["chunking"]
        chunker = CodeChunker(
            max_tokens=chunking["max_tokens"],
            overlap_lines=chunking["overlap_lines"],
            count_tokens=make_token_counter(chunking.get("encoding")),
        )
        storage_dir = Path(cfg["storage_dir"])
        store = VectorStore(
            storage_dir / cfg["index_filename"],
            embedder_factory=lambda: SentenceTransformerEmbedder(cfg["embedding"]["model"]),
        )
        return cls(
            storage_dir,
            roots,
            chunker=chunker,
            store=store,
            max_file_size=cfg["indexing"]["max_file_size"],
            respect_ignore_files=cfg["indexing"].get("respect_ignore_files", True),
            context_candidates=cfg["context"].get("candidates", CONTEXT_CANDIDATES),
        )

    def __enter__(self) -> "RetrievalManager":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def initialize(self) -> None:
        """Create the storage directory. The store was already loaded."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        self.store.close()

    def index_workspace(
        self,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> IndexStats:
        """Chunk, embed and store every indexable file under the roots.

        Each file replaces its previous records. Files over the size limit are
        skipped; files that fail to read, chunk or embed are logged and
        skipped. Cancellation is checked before each file.

        Args:
            progress: Called as progress(processed, total, message)
            cancel: Set to stop before the next file

        Returns:
            IndexStats for this run
        """
        stats = IndexStats()
        start_time = time.time()

        if not self.roots:
            logger.info("No workspace folder to index")
            return stats

        files = find_files(
            self.roots,
            exclude_globs=self.exclude_globs,
            respect_ignore_files=self.respect_ignore_files,
            excluded_dirs=[self.storage_dir],
        )
        total = len(files)
        stats.files_found = total
        logger.info("Found %s files to index", total)
        if progress:
            progress(0, total, f"Found {total} text files. Starting indexing...")

        for workspace_file in files:
            if cancel is not None and cancel.is_set():
                logger.info("Workspace indexing cancelled after %s/%s files", stats.files_processed, total)
                stats.cancelled = True
                break

            name = workspace_file.path.name

            if workspace_file.size > self.max_file_size:
                logger.info("Skipping large file %s (%s bytes)", workspace_file.path, workspace_file.size)
                stats.files_processed += 1
                stats.files_skipped += 1
                if progress:
                    progress(stats.files_processed, total, f"Skipping large file: {name}")
                continue

            try:
                chunks = self.chunker.chunk_file(workspace_file.path)
                self.store.replace_file(workspace_file.path, chunks)
            except Exception as e:
                logger.warning("Skipping file due to error: %s (%s)", workspace_file.path, e)
                stats.files_processed += 1
                stats.files_failed += 1
                if progress:
                    progress(stats.files_processed, total, f"Error/Skipped: {name}")
                continue

            stats.files_processed += 1
            stats.files_indexed += 1
            stats.chunks_created += len(chunks)
            if progress:
                progress(stats.files_processed, total, f"Indexing: {name}")

            if total <= 10 or stats.files_indexed % 10 == 0:
                logger.info("Indexed %s/%s files (%s chunks)...", stats.files_processed, total, stats.chunks_created)

        stats.time_taken = time.time() - start_time
        logger.info(
            "Indexing finished: %s indexed, %s skipped, %s failed, %s chunks in %.1fs",
            stats.files_indexed, stats.files_skipped, stats.files_failed, stats.chunks_created, stats.time_taken,
        )
        return stats

    def search(self, query: str, k: int = 5) -> list[Chunk]:
        return self.store.search(query, k)

    def get_relevant_context(self, query: str, max_tokens: int = 1536) -> str:
        """Build a prompt context block for ``query``.

        Never raises: failures (including embedding failures) come back as an
        "Error retrieving code context: ..." string.
        """
        try:
            chunks = self.search(query, self.context_candidates)
            return build_context(chunks, query, max_tokens)
        except Exception as e:
            logger.error("Error in get_relevant_context: %s", e, exc_info=True)
            return f"Error retrieving code context: {e}"

    def get_stats(self) -> dict:
        return {
            "total_files": len(self.store.files()),
            "total_chunks": self.store.count(),
            "index_path": str(self.store.path),
        }

"""Pytest configuration and fixtures for retrieval engine testing."""

from pathlib import Path

import pytest

from memox.rag.chunker import Chunk, ChunkMetadata, CodeChunker
from memox.testing import HashingEmbedder, word_count


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def chunker():
    """Chunker with default budgets and a whitespace tokenizer."""
    return CodeChunker(count_tokens=word_count)


@pytest.fixture
def make_chunk():
    """Factory for chunks with sensible metadata defaults.

    Example:
        >>> chunk = make_chunk("def a(): pass", filename="a.py", start_line=3, end_line=3)
    """
    def _factory(
        content: str,
        filename: str = "app.ts",
        language: str = "typescript",
        start_line: int = 0,
        end_line: int | None = None,
        chunk_type: str = "block",
        path: str | None = None,
    ) -> Chunk:
        if end_line is None:
            end_line = start_line + content.count("\n")
        return Chunk(
            content=content,
            metadata=ChunkMetadata(
                filename=filename,
                language=language,
                start_line=start_line,
                end_line=end_line,
                chunk_type=chunk_type,
                path=path,
            ),
        )
    return _factory


TYPESCRIPT_SAMPLE = "\n".join([
    "import { x } from './x';",
    "",
    "const limit = 10;",
    "function foo() {",
    "  const a = 1;",
    "  const b = 2;",
    "  if (a < b) {",
    "    return a;",
    "  }",
    "  return b;",
    "}",
    "",
    "class Bar {",
    "  private value = 0;",
    "  get() {",
    "    return this.value;",
    "  }",
    "  set(v: number) {",
    "    this.value = v; }",
    "}",
])


@pytest.fixture
def typescript_sample() -> str:
    """20-line TypeScript file: function foo on lines 3-10, class Bar on lines 12-19."""
    return TYPESCRIPT_SAMPLE


@pytest.fixture
def workspace(tmp_path) -> Path:
    """A small workspace with indexable files and files that must be excluded."""
    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.ts").write_text(TYPESCRIPT_SAMPLE, encoding="utf-8")
    (root / "src" / "util.py").write_text(
        "def parse_config(path):\n    return open(path).read()\n\n\ndef helper():\n    return 42\n",
        encoding="utf-8",
    )
    (root / "README.md").write_text("# Demo\n\nA demo project for retrieval.\n", encoding="utf-8")
    (root / "notes.md").write_text("# Notes\n\nRemember the parser.\n", encoding="utf-8")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("function dep() {}\n", encoding="utf-8")
    (root / "package.json").write_text('{"name": "demo"}\n', encoding="utf-8")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n")
    (root / ".env").write_text("SECRET=1\n", encoding="utf-8")
    return root

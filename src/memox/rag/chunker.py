"""Code chunking into semantic units bounded by a token budget."""

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional

from ..logging_config import get_logger
from .languages import (
    CODE_LANGUAGES,
    CONFIG_LANGUAGES,
    MARKDOWN_LANGUAGES,
    SourceText,
    is_recognized,
    read_source,
)
from .tokens import TokenCounter, count_tokens

logger = get_logger(__name__)

MAX_TOKENS = 512
OVERLAP_LINES = 50

CHUNK_TYPES = (
    "function", "class", "block", "markdown", "text", "config", "line-block", "whole-file",
)

# Substrings that may start a new code unit
_BOUNDARY_MARKERS = ("function", "def ", " class ")
_DECLARATION = re.compile(r"^\s*(?:function|class|def|interface|enum)\s+")


@dataclass
class ChunkMetadata:
    """Where a chunk came from.

    Line numbers are zero-based and inclusive.
    """

    filename: str
    language: str
    start_line: int
    end_line: int
    chunk_type: str  # one of CHUNK_TYPES
    path: Optional[str] = None  # full source path, used to replace a file's records

    def to_dict(self) -> dict:
        data = {
            "filename": self.filename,
            "language": self.language,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "type": self.chunk_type,
        }
        if self.path is not None:
            data["path"] = self.path
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkMetadata":
        return cls(
            filename=data["filename"],
            language=data.get("language", ""),
            start_line=int(data["startLine"]),
            end_line=int(data["endLine"]),
            chunk_type=data.get("type", "text"),
            path=data.get("path"),
        )


@dataclass
class Chunk:
    """A contiguous span of a source file."""

    content: str
    metadata: ChunkMetadata = field(repr=False)

    def to_dict(self) -> dict:
        return {"content": self.content, "metadata": self.metadata.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "Chunk":
        return cls(content=data["content"], metadata=ChunkMetadata.from_dict(data["metadata"]))

    def with_lines(self, content: str, start_line: int, end_line: int, chunk_type: Optional[str] = None) -> "Chunk":
        """Copy this chunk's metadata onto new content and a new line range."""
        metadata = replace(
            self.metadata,
            start_line=start_line,
            end_line=end_line,
            chunk_type=chunk_type or self.metadata.chunk_type,
        )
        return Chunk(content=content, metadata=metadata)


SemanticSplitter = Callable[[str, str, str], list[Chunk]]


def filter_empty_chunks(chunks: list[Chunk]) -> list[Chunk]:
    """Drop chunks whose content is only whitespace."""
    return [c for c in chunks if c.content.strip()]


def _brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


def split_by_semantic_units(content: str, language: str, filename: str) -> list[Chunk]:
    """Split code into function, class and block chunks.

    A line-scanning heuristic, not a parser. Any line containing ``function``,
    ``def `` or `` class `` (or starting with a declaration keyword) closes the
    lines buffered before it as a ``block``. A declaration line that mentions
    ``function``/``=>`` or ``class`` opens a unit whose braces are counted; the
    unit is emitted as ``function``/``class`` once its braces balance again.
    Whatever is left at the end becomes a final ``block``.

    Args:
        content: File text
        language: Language id
        filename: Base file name for metadata

    Returns:
        Non-empty chunks in file order
    """
    chunks: list[Chunk] = []
    lines = content.split("\n")

    current: list[str] = []
    start_line = 0
    in_function = False
    in_class = False
    brace_count = 0
    braces_opened = False

    def emit(end_line: int, chunk_type: str, chunk_lines: list[str]) -> None:
        chunks.append(Chunk(
            content="\n".join(chunk_lines),
            metadata=ChunkMetadata(
                filename=filename,
                language=language,
                start_line=start_line,
                end_line=end_line,
                chunk_type=chunk_type,
            ),
        ))

    for i, line in enumerate(lines):
        current.append(line)
        declaration = _DECLARATION.match(line) is not None
        is_boundary = declaration or any(marker in line for marker in _BOUNDARY_MARKERS)

        if is_boundary:
            if len(current) > 1:
                emit(i - 1, "block", current[:-1])
                current = [line]
                start_line = i
                brace_count = 0
                braces_opened = False
                in_function = False
                in_class = False

            if declaration:
                if "function" in line or "=>" in line:
                    in_function = True
                if "class" in line:
                    in_class = True

        if in_function or in_class:
            brace_count += _brace_delta(line)
            if "{" in line:
                braces_opened = True

            if braces_opened and brace_count <= 0:
                emit(i, "function" if in_function else "class", current)
                current = []
                start_line = i + 1
                brace_count = 0
                braces_opened = False
                in_function = False
                in_class = False

    if current:
        emit(len(lines) - 1, "block", current)

    return filter_empty_chunks(chunks)


class CodeChunker:
    """Split source files into chunks ready for embedding."""

    def __init__(
        self,
        max_tokens: int = MAX_TOKENS,
        overlap_lines: int = OVERLAP_LINES,
        count_tokens: Optional[TokenCounter] = None,
        semantic_splitter: Optional[SemanticSplitter] = None,
    ):
        """
        Args:
            max_tokens: Token budget per chunk
            overlap_lines: Number of trailing lines repeated at the start of
                the next piece when a chunk is split (a line count, not tokens)
            count_tokens: Token counter for one line; defaults to tiktoken gpt2
            semantic_splitter: Boundary detector for code languages
        """
        self.max_tokens = max_tokens
        self.overlap_lines = overlap_lines
        self._count_tokens = count_tokens or _default_counter
        self._semantic_splitter = semantic_splitter or split_by_semantic_units

    def chunk_file(self, file_path: str | Path, source: Optional[SourceText] = None) -> list[Chunk]:
        """Chunk a file based on its name and language.

        Args:
            file_path: Path to the file
            source: Already loaded text; read from disk when omitted

        Returns:
            Non-empty chunks. Each carries the full path in ``metadata.path``.

        Raises:
            OSError, UnicodeDecodeError: file cannot be read as text
        """
        file_path = Path(file_path)
        if source is None:
            source = read_source(file_path)

        chunks = self.chunk_text(source.content, file_path.name, source.language)
        for chunk in chunks:
            chunk.metadata.path = str(file_path)
        return chunks

    def chunk_text(self, content: str, filename: str, language: str) -> list[Chunk]:
        """Chunk already-loaded text. See chunk_file."""
        lines = content.split("\n")
        last_line = len(lines) - 1

        if filename.lower() == "readme.md":
            # Kept whole, never split by tokens
            return filter_empty_chunks([Chunk(
                content=content,
                metadata=ChunkMetadata(filename, language, 0, last_line, "whole-file"),
            )])

        if language in CODE_LANGUAGES:
            chunks = self._semantic_splitter(content, language, filename)
        elif (
            language in MARKDOWN_LANGUAGES
            or language in CONFIG_LANGUAGES
            or not is_recognized(language)
        ):
            if language in MARKDOWN_LANGUAGES:
                line_type = "markdown"
            elif language in CONFIG_LANGUAGES:
                line_type = "config"
            else:
                line_type = "text"
            chunks = [
                Chunk(content=line, metadata=ChunkMetadata(filename, language, i, i, line_type))
                for i, line in enumerate(lines)
            ]
        else:
            chunks = [Chunk(
                content=content,
                metadata=ChunkMetadata(filename, language, 0, last_line, "text"),
            )]

        chunks = filter_empty_chunks(chunks)

        result: list[Chunk] = []
        for chunk in chunks:
            if chunk.metadata.chunk_type == "whole-file":
                result.append(chunk)
            else:
                result.extend(self.split_by_token_size(chunk))
        return filter_empty_chunks(result)

    def _line_cost(self, line: str, filename: str, line_number: int) -> int:
        try:
            return self._count_tokens(line)
        except Exception as e:
            logger.debug("Could not tokenize line %s in %s: %s", line_number, filename, e)
            return 1

    def split_by_token_size(self, chunk: Chunk) -> list[Chunk]:
        """Split one chunk into pieces of at most ``max_tokens`` tokens.

        Lines are packed greedily. When a piece is full, the next one starts
        with the last ``overlap_lines`` lines of it; the overlap is shortened
        from the front only when it would push the next piece over the budget. A line that alone exceeds the budget is
        emitted on its own as a ``line-block``.
        """
        pieces: list[Chunk] = []
        meta = chunk.metadata
        lines = chunk.content.split("\n")

        buffer: list[str] = []
        costs: list[int] = []
        tokens = 0
        piece_start = meta.start_line

        def flush() -> None:
            pieces.append(chunk.with_lines(
                "\n".join(buffer), piece_start, piece_start + len(buffer) - 1,
            ))

        for i, line in enumerate(lines):
            line_number = meta.start_line + i
            cost = self._line_cost(line, meta.filename, line_number)

            if cost > self.max_tokens:
                if buffer:
                    flush()
                pieces.append(chunk.with_lines(line, line_number, line_number, "line-block"))
                buffer, costs, tokens = [], [], 0
                piece_start = line_number + 1
                continue

            if tokens + cost > self.max_tokens and buffer:
                flush()
                keep = min(self.overlap_lines, len(buffer)) if self.overlap_lines > 0 else 0
                buffer = buffer[len(buffer) - keep:]
                costs = costs[len(costs) - keep:]
                tokens = sum(costs)
                while buffer and tokens + cost > self.max_tokens:
                    tokens -= costs.pop(0)
                    buffer.pop(0)
                piece_start = line_number - len(buffer)

            buffer.append(line)
            costs.append(cost)
            tokens += cost

        if buffer:
            flush()

        return filter_empty_chunks(pieces)


def _default_counter(text: str) -> int:
    return count_tokens(text)

"""Assemble retrieved chunks into a prompt-ready context block."""

import re
from dataclasses import replace
from typing import Optional

from .chunker import Chunk

NO_CONTEXT_MESSAGE = "No relevant code context found for this query."
OMITTED_NOTE = "\n// Additional code from this file was found but omitted due to token limits\n"

MAX_FILES_FOR_BUDGET = 5
MERGE_DISTANCE = 3
# Rough cost: characters * 4 / 100
TOKENS_PER_100_CHARS = 4

_FILE_INTENT = re.compile(
    r"\b(in|file|path|module)\b.+?([a-zA-Z0-9_\-./]+\.[a-zA-Z0-9]+)",
    re.IGNORECASE,
)


def group_by_file(chunks: list[Chunk]) -> dict[str, list[Chunk]]:
    """Group chunks by file name, keeping first-seen file order."""
    groups: dict[str, list[Chunk]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.metadata.filename, []).append(chunk)
    return groups


def detect_file_intent(query: str) -> Optional[str]:
    """Return the file name a query asks about ("... in utils/parser.py"), if any."""
    match = _FILE_INTENT.search(query)
    return match.group(2) if match else None


def prioritize_files(groups: dict[str, list[Chunk]], specific_file: Optional[str]) -> dict[str, list[Chunk]]:
    """Move files whose name contains ``specific_file`` to the front."""
    if not specific_file:
        return groups

    needle = specific_file.lower()
    matching = [name for name in groups if needle in name.lower()]
    if not matching:
        return groups

    ordered = matching + [name for name in groups if name not in matching]
    return {name: groups[name] for name in ordered}


def merge_adjacent_chunks(chunks: list[Chunk]) -> list[Chunk]:
    """Sort by start line and merge chunks starting within 3 lines of the previous end.

    Input chunks are not modified.
    """
    merged: list[Chunk] = []
    for chunk in sorted(chunks, key=lambda c: c.metadata.start_line):
        if merged and chunk.metadata.start_line <= merged[-1].metadata.end_line + MERGE_DISTANCE:
            prev = merged[-1]
            merged[-1] = Chunk(
                content=prev.content + "\n" + chunk.content,
                metadata=replace(
                    prev.metadata,
                    end_line=max(prev.metadata.end_line, chunk.metadata.end_line),
                ),
            )
        else:
            merged.append(Chunk(content=chunk.content, metadata=replace(chunk.metadata)))
    return merged


def estimate_chunk_tokens(header: str, content: str) -> float:
    return (len(header) + len(content)) * TOKENS_PER_100_CHARS / 100


def _chunk_header(chunk: Chunk) -> str:
    meta = chunk.metadata
    header = f"\n// Lines {meta.start_line}-{meta.end_line}"
    if meta.chunk_type in ("function", "class"):
        header += f" ({meta.chunk_type})"
    return header + ":\n"


def build_context(chunks: list[Chunk], query: str, max_tokens: int = 1536) -> str:
    """Pack retrieved chunks into a context string within a token budget.

    Chunks are grouped per file (a file named in the query goes first), each
    file gets an equal share of the budget (split over at most five files),
    and adjacent chunks are merged before being written out under line-range
    headers. Files that do not fit are left out and counted in the summary.

    Args:
        chunks: Retrieved chunks, most relevant first
        query: The user query, used to detect a file of interest
        max_tokens: Overall budget in estimated tokens

    Returns:
        Summary line(s) followed by the per-file blocks, or NO_CONTEXT_MESSAGE
    """
    if not chunks:
        return NO_CONTEXT_MESSAGE

    groups = prioritize_files(group_by_file(chunks), detect_file_intent(query))
    target_tokens_per_file = max_tokens // min(len(groups), MAX_FILES_FOR_BUDGET)

    context_parts: list[str] = []
    current_tokens = 0.0
    complete_files: list[str] = []
    partial_files: list[str] = []

    for filename, file_chunks in groups.items():
        file_header = f"\n--- File: {filename} ---\n"
        header_tokens = len(re.split(r"\s+", file_header))
        if current_tokens + header_tokens > max_tokens:
            break

        file_parts = [file_header]
        file_tokens = float(header_tokens)
        complete = True

        for chunk in merge_adjacent_chunks(file_chunks):
            header = _chunk_header(chunk)
            content = chunk.content + "\n"
            cost = estimate_chunk_tokens(header, content)
            if file_tokens + cost > target_tokens_per_file:
                complete = False
                file_parts.append(OMITTED_NOTE)
                break
            file_parts.append(header + content)
            file_tokens += cost

        if current_tokens + file_tokens > max_tokens:
            break

        context_parts.append("".join(file_parts))
        current_tokens += file_tokens
        (complete_files if complete else partial_files).append(filename)

    summary = f"Code context from {len(complete_files) + len(partial_files)} files:\n"
    if complete_files:
        summary += f"- Complete context: {', '.join(complete_files)}\n"
    if partial_files:
        summary += f"- Partial context: {', '.join(partial_files)}\n"

    remaining = len(groups) - len(complete_files) - len(partial_files)
    note = (
        f"\nNote: {remaining} more relevant files were found but omitted due to token limits.\n"
        if remaining > 0 else ""
    )

    return summary + note + "".join(context_parts)


def format_chunks(chunks: list[Chunk], scores: Optional[list[float]] = None) -> str:
    """Format search hits as a numbered list for agent or terminal output."""
    if not chunks:
        return NO_CONTEXT_MESSAGE

    lines = [f"Found {len(chunks)} relevant code sections:"]
    for i, chunk in enumerate(chunks, 1):
        meta = chunk.metadata
        score = f" (score: {scores[i - 1]:.3f})" if scores else ""
        lines.append(f"\n--- {i}. {meta.filename}:{meta.start_line}-{meta.end_line} ({meta.chunk_type}){score} ---")
        lines.append(chunk.content)
    return "\n".join(lines)

"""Workspace file enumeration with exclusion globs and ignore files."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ..logging_config import get_logger

logger = get_logger(__name__)

# Dependency/VCS/build directories, binary and media files, lockfiles, env files
DEFAULT_EXCLUDE_GLOBS = (
    "**/node_modules/**", "**/.git/**", "**/.vscode/**", "**/dist/**", "**/out/**",
    "**/.next/**", "**/.cache/**", "**/.DS_Store", "**/*.lock", "**/*.log", "**/.env*",
    "**/.idea/**", "**/.vs/**", "**/.history/**",
    "**/*.png", "**/*.jpg", "**/*.jpeg", "**/*.gif", "**/*.bmp", "**/*.svg", "**/*.pdf",
    "**/*.doc", "**/*.docx", "**/*.xls", "**/*.xlsx", "**/*.ppt", "**/*.pptx",
    "**/*.zip", "**/*.tar", "**/*.gz", "**/*.7z", "**/*.rar",
    "**/*.exe", "**/*.dll", "**/*.so", "**/*.dylib",
    "**/*.mp3", "**/*.mp4", "**/*.avi", "**/*.mov", "**/*.wasm", "**/*.node", "**/*.afdesign",
    "**/package.json", "**/package-lock.json",
)

IGNORE_FILES = (".gitignore", ".memoxignore")

IgnorePattern = tuple[re.Pattern, bool, bool]


@dataclass
class WorkspaceFile:
    """A candidate file for indexing."""

    path: Path
    size: int
    root: Path

    @property
    def relative_path(self) -> str:
        return self.path.relative_to(self.root).as_posix()


def glob_to_regex(glob: str) -> re.Pattern:
    """Compile a workspace glob (``**``, ``*``, ``?``) matched against relative posix paths."""
    pattern = re.escape(glob)
    pattern = pattern.replace(r"\*\*/", "GLOB_ANY_DIRS")
    pattern = pattern.replace(r"/\*\*", "GLOB_ANY_TAIL")
    pattern = pattern.replace(r"\*\*", ".*")
    pattern = pattern.replace(r"\*", r"[^/]*")
    pattern = pattern.replace(r"\?", r"[^/]")
    pattern = pattern.replace("GLOB_ANY_DIRS", r"(?:.*/)?")
    pattern = pattern.replace("GLOB_ANY_TAIL", r"/.*")
    return re.compile(pattern)


def compile_globs(globs: Iterable[str]) -> list[re.Pattern]:
    return [glob_to_regex(g) for g in globs]


def matches_any(rel_path: str, patterns: list[re.Pattern]) -> bool:
    return any(p.fullmatch(rel_path) for p in patterns)


def _parse_ignore_pattern(pattern: str) -> tuple[str | None, bool, bool]:
    """Parse a .gitignore-style line into a regex.

    Returns:
        (regex_pattern, is_directory_pattern, negated) or (None, False, False) if the line is skipped
    """
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None, False, False

    negated = pattern.startswith("!")
    if negated:
        pattern = pattern[1:]

    is_dir = pattern.endswith("/")
    if is_dir:
        pattern = pattern[:-1]

    # A slash anywhere but the end anchors the pattern to the root
    anchored = "/" in pattern
    pattern = pattern.lstrip("/")

    pattern = re.escape(pattern)
    # "**/" also matches zero directories
    pattern = pattern.replace(r"\*\*/", "IGNORE_ANY_DIRS")
    pattern = pattern.replace(r"\*\*", "IGNORE_DOUBLE_STAR")
    pattern = pattern.replace(r"\*", r"[^/]*")
    pattern = pattern.replace(r"\?", r"[^/]")
    pattern = pattern.replace("IGNORE_ANY_DIRS", r"(?:.*/)?")
    pattern = pattern.replace("IGNORE_DOUBLE_STAR", r".*")

    prefix = "^" if anchored else "(^|/)"
    return prefix + pattern + "$", is_dir, negated


def load_ignore_patterns(root: Path) -> list[IgnorePattern]:
    """Load patterns from the ignore files at ``root``.

    Later files override earlier ones through negation (``!``).

    Returns:
        List of (compiled_pattern, is_directory, negated) tuples
    """
    patterns: list[IgnorePattern] = []
    for name in IGNORE_FILES:
        ignore_path = root / name
        if not ignore_path.is_file():
            continue
        try:
            lines = ignore_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", ignore_path, e)
            continue
        for line in lines:
            pattern_str, is_dir, negated = _parse_ignore_pattern(line)
            if not pattern_str:
                continue
            try:
                patterns.append((re.compile(pattern_str), is_dir, negated))
            except re.error:
                logger.debug("Skipping invalid ignore pattern %r in %s", line, ignore_path)
    return patterns


def is_ignored(rel_path: str, is_dir: bool, patterns: list[IgnorePattern]) -> bool:
    """Check a relative posix path against ignore patterns; the last match wins.

    Directories are pruned during the walk, so files below an ignored
    directory are never checked here.
    """
    ignored = False
    for pattern, pattern_is_dir, negated in patterns:
        if pattern_is_dir and not is_dir:
            continue
        if pattern.search(rel_path):
            ignored = not negated
    return ignored


def find_files(
    roots: Iterable[str | Path],
    exclude_globs: Iterable[str] = DEFAULT_EXCLUDE_GLOBS,
    respect_ignore_files: bool = True,
    excluded_dirs: Iterable[str | Path] = (),
) -> list[WorkspaceFile]:
    """List indexable files under each root.

    Args:
        roots: Workspace root directories
        exclude_globs: Globs matched against paths relative to their root
        respect_ignore_files: Also apply .gitignore/.memoxignore at each root
        excluded_dirs: Directories never descended into (e.g. the index storage)

    Returns:
        Files in root order, then sorted path order within each root
    """
    exclude = compile_globs(exclude_globs)
    skip_dirs = {Path(d).resolve() for d in excluded_dirs}
    found: list[WorkspaceFile] = []

    for root in roots:
        root = Path(root).resolve()
        if not root.is_dir():
            logger.warning("Workspace root %s is not a directory, skipping", root)
            continue

        ignore_patterns = load_ignore_patterns(root) if respect_ignore_files else []

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix()
            prefix = "" if rel_dir == "." else rel_dir + "/"

            kept_dirs = []
            for name in sorted(dirnames):
                rel = prefix + name
                if (current / name).resolve() in skip_dirs:
                    continue
                if matches_any(rel + "/", exclude):
                    continue
                if is_ignored(rel, True, ignore_patterns):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                rel = prefix + name
                if matches_any(rel, exclude) or is_ignored(rel, False, ignore_patterns):
                    continue
                file_path = current / name
                try:
                    size = file_path.stat().st_size
                except OSError as e:
                    logger.debug("Could not stat %s: %s", file_path, e)
                    continue
                found.append(WorkspaceFile(path=file_path, size=size, root=root))

    return found

"""Language classification and text loading for source files.

Language ids follow editor conventions ("typescript", "python", "markdown",
...). Classification is by file extension only; it is best effort.
"""

from dataclasses import dataclass
from pathlib import Path

# Languages that go through semantic (function/class) splitting
CODE_LANGUAGES = frozenset({
    "typescript", "javascript", "python", "java", "c", "cpp", "csharp",
    "go", "rust", "php", "ruby", "swift", "kotlin",
})

CONFIG_LANGUAGES = frozenset({"json", "yaml", "yml", "ini", "xml"})

MARKDOWN_LANGUAGES = frozenset({"markdown"})

EXTENSION_LANGUAGES = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".md": "markdown",
    ".markdown": "markdown",
    ".json": "json",
    ".jsonc": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".ini": "ini",
    ".cfg": "ini",
    ".xml": "xml",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".sql": "sql",
    ".sh": "shellscript",
    ".bash": "shellscript",
    ".ps1": "powershell",
    ".bat": "bat",
    ".txt": "plaintext",
    ".lua": "lua",
    ".r": "r",
    ".pl": "perl",
    ".dart": "dart",
    ".vue": "vue",
    ".dockerfile": "dockerfile",
}

FILENAME_LANGUAGES = {
    "dockerfile": "dockerfile",
    "makefile": "makefile",
}

PLAINTEXT = "plaintext"

# Everything the classifier can produce from a known extension or name
RECOGNIZED_LANGUAGES = frozenset(
    set(EXTENSION_LANGUAGES.values()) | set(FILENAME_LANGUAGES.values()) | {PLAINTEXT}
)


@dataclass
class SourceText:
    """Full text of a file plus its language id."""

    content: str
    language: str


def detect_language(path: str | Path) -> str:
    """Classify a file by name.

    Unknown extensions return the bare extension (e.g. "toml"), which is not
    in RECOGNIZED_LANGUAGES. Files without an extension are plain text.
    """
    path = Path(path)
    name = path.name.lower()
    if name in FILENAME_LANGUAGES:
        return FILENAME_LANGUAGES[name]

    suffix = path.suffix.lower()
    if not suffix:
        return PLAINTEXT
    return EXTENSION_LANGUAGES.get(suffix, suffix.lstrip("."))


def is_recognized(language: str) -> bool:
    return language in RECOGNIZED_LANGUAGES


def read_source(path: str | Path) -> SourceText:
    """Read a file as UTF-8 text and classify it.

    Raises:
        OSError: file cannot be opened
        UnicodeDecodeError: file is not valid UTF-8 text
    """
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    return SourceText(content=content, language=detect_language(path))

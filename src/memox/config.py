import copy
import json
import os

from .logging_config import get_logger

logger = get_logger(__name__)
config: dict = None

CONFIG_FILE = "memox.json"

DEFAULTS = {
    "log_level": "INFO",
    "log_file": None,
    "storage_dir": ".memox",
    "index_filename": "code_index.json",
    "embedding": {
        "model": "sentence-transformers/all-MiniLM-L6-v2",
    },
    "chunking": {
        "max_tokens": 512,
        "overlap_lines": 50,
        "encoding": "gpt2",
    },
    "indexing": {
        "max_file_size": 1024 * 1024,
        "respect_ignore_files": True,
    },
    "context": {
        "max_tokens": 1536,
        "candidates": 10,
    },
    "search": {
        "k": 5,
    },
}


def _merge(base: dict, overrides: dict) -> dict:
    """Merge overrides into base; nested sections are merged key by key."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: str = CONFIG_FILE) -> dict:
    """Build the engine configuration.

    Starts from DEFAULTS, applies the JSON file at ``path`` if it can be read,
    then applies environment variable overrides.
    """
    cfg = copy.deepcopy(DEFAULTS)

    # Missing or unreadable config file is not an error
    try:
        with open(path, "r", encoding="utf-8") as f:
            _merge(cfg, json.load(f))
    except Exception as e:
        logger.debug("Could not load %s: %s (using defaults)", path, e)

    if os.getenv("MEMOX_LOG_LEVEL"):
        cfg["log_level"] = os.getenv("MEMOX_LOG_LEVEL").upper()
    if os.getenv("MEMOX_LOG_FILE") is not None:
        cfg["log_file"] = os.getenv("MEMOX_LOG_FILE")
    if os.getenv("MEMOX_STORAGE_DIR"):
        cfg["storage_dir"] = os.getenv("MEMOX_STORAGE_DIR")
    if os.getenv("MEMOX_EMBEDDING_MODEL"):
        cfg["embedding"]["model"] = os.getenv("MEMOX_EMBEDDING_MODEL")

    return cfg


config = load_config()

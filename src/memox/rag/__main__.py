"""CLI tool for building and querying the retrieval index.

Usage:
    python -m memox.rag index [--root DIR ...] [--storage DIR]
    python -m memox.rag search "query" [-k 5]
    python -m memox.rag context "query" [--max-tokens 1536]
    python -m memox.rag stats
"""

import argparse
import sys
from pathlib import Path

from ..config import config
from ..logging_config import setup_logging
from .context import format_chunks
from .manager import RetrievalManager


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        action="append",
        default=None,
        help="Workspace root directory (repeatable, default: current directory)",
    )
    parser.add_argument(
        "--storage",
        type=str,
        default=None,
        help=f"Index storage directory (default: {config['storage_dir']})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memox",
        description="Build and query the local code retrieval index",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    index_parser = subparsers.add_parser("index", help="Index the workspace")
    _add_common_options(index_parser)

    search_parser = subparsers.add_parser("search", help="Show the chunks most similar to a query")
    _add_common_options(search_parser)
    search_parser.add_argument("query", type=str)
    search_parser.add_argument("-k", type=int, default=config["search"]["k"], help="Number of results")

    context_parser = subparsers.add_parser("context", help="Print the prompt context for a query")
    _add_common_options(context_parser)
    context_parser.add_argument("query", type=str)
    context_parser.add_argument(
        "--max-tokens",
        type=int,
        default=config["context"]["max_tokens"],
        help="Context token budget",
    )

    stats_parser = subparsers.add_parser("stats", help="Show index statistics")
    _add_common_options(stats_parser)

    return parser


def _make_manager(args: argparse.Namespace) -> RetrievalManager:
    cfg = dict(config)
    if args.storage:
        cfg["storage_dir"] = args.storage
    roots = [Path(r).resolve() for r in (args.root or ["."])]
    manager = RetrievalManager.from_config(roots, cfg)
    manager.initialize()
    return manager


def _print_progress(processed: int, total: int, message: str) -> None:
    percentage = round(processed / total * 100) if total else 100
    print(f"  [{percentage:3d}%] {message}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the memox CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(config["log_level"], config["log_file"])

    try:
        manager = _make_manager(args)

        if args.command == "index":
            print(f"Indexing: {', '.join(str(r) for r in manager.roots)}")
            stats = manager.index_workspace(progress=_print_progress)
            print("\n✓ Indexing complete!" if not stats.cancelled else "\nIndexing cancelled")
            print(f"  Files indexed: {stats.files_indexed}")
            print(f"  Files skipped: {stats.files_skipped}")
            print(f"  Files failed: {stats.files_failed}")
            print(f"  Chunks created: {stats.chunks_created}")
            print(f"  Time taken: {stats.time_taken:.2f}s")
            return 0

        elif args.command == "search":
            hits = manager.store.search_scored(args.query, args.k)
            print(format_chunks([c for c, _ in hits], [s for _, s in hits]))
            return 0

        elif args.command == "context":
            print(manager.get_relevant_context(args.query, max_tokens=args.max_tokens))
            return 0

        elif args.command == "stats":
            stats = manager.get_stats()
            print("\nIndex Statistics")
            print("=" * 50)
            print(f"  Index: {stats['index_path']}")
            print(f"  Total files: {stats['total_files']}")
            print(f"  Total chunks: {stats['total_chunks']}")
            print("=" * 50)
            return 0

    except KeyboardInterrupt:
        print("\nStopped")
        return 130
    except Exception as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())

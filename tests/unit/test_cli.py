"""Unit tests for the memox command line."""

import pytest

from memox.rag import __main__ as cli
from memox.testing import HashingEmbedder, word_count


@pytest.fixture(autouse=True)
def offline_models(monkeypatch):
    """Replace the real model and tokenizer with deterministic doubles."""
    monkeypatch.setattr("memox.rag.manager.SentenceTransformerEmbedder", lambda model: HashingEmbedder(dim=4096))
    monkeypatch.setattr("memox.rag.manager.make_token_counter", lambda encoding: word_count)
    monkeypatch.setattr(cli, "setup_logging", lambda level, log_file: None)


def _run(argv, workspace, storage):
    return cli.main(argv + ["--root", str(workspace), "--storage", str(storage)])


class TestCli:
    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_index_then_stats(self, workspace, tmp_path, capsys):
        storage = tmp_path / "storage"

        assert _run(["index"], workspace, storage) == 0
        out = capsys.readouterr().out
        assert "Indexing complete" in out
        assert "Files indexed: 4" in out
        assert (storage / "code_index.json").exists()

        assert _run(["stats"], workspace, storage) == 0
        out = capsys.readouterr().out
        assert "Total files: 4" in out
        assert "Total chunks: 8" in out

    def test_search_and_context(self, workspace, tmp_path, capsys):
        storage = tmp_path / "storage"
        _run(["index"], workspace, storage)
        capsys.readouterr()

        assert _run(["search", "parse_config path", "-k", "1"], workspace, storage) == 0
        assert "--- 1. util.py:" in capsys.readouterr().out

        assert _run(["context", "parse_config in util.py"], workspace, storage) == 0
        assert capsys.readouterr().out.startswith("Code context from ")

    def test_errors_return_nonzero(self, workspace, tmp_path, capsys):
        storage = tmp_path / "storage"
        storage.mkdir()
        (storage / "code_index.json").write_text("{broken", encoding="utf-8")

        assert _run(["stats"], workspace, storage) == 1
        assert "Error" in capsys.readouterr().err

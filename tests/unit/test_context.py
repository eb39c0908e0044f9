"""Unit tests for context.py - grouping, merging and budgeted context assembly."""

from memox.rag.context import (
    NO_CONTEXT_MESSAGE,
    OMITTED_NOTE,
    build_context,
    detect_file_intent,
    format_chunks,
    group_by_file,
    merge_adjacent_chunks,
    prioritize_files,
)


class TestGrouping:
    """Test per-file grouping and query intent."""

    def test_group_by_file_keeps_first_seen_order(self, make_chunk):
        chunks = [
            make_chunk("a1", filename="b.ts"),
            make_chunk("b1", filename="a.ts"),
            make_chunk("a2", filename="b.ts"),
        ]

        groups = group_by_file(chunks)

        assert list(groups) == ["b.ts", "a.ts"]
        assert [c.content for c in groups["b.ts"]] == ["a1", "a2"]

    def test_detect_file_intent(self):
        assert detect_file_intent("where is parse defined in utils/parser.py") == "utils/parser.py"
        assert detect_file_intent("show the FILE called config.yaml") == "config.yaml"
        assert detect_file_intent("how does login work") is None

    def test_prioritize_moves_matching_file_first(self, make_chunk):
        groups = group_by_file([
            make_chunk("a", filename="app.ts"),
            make_chunk("b", filename="parser.py"),
        ])

        ordered = prioritize_files(groups, "PARSER.py")

        assert list(ordered) == ["parser.py", "app.ts"]

    def test_prioritize_without_match_keeps_order(self, make_chunk):
        groups = group_by_file([make_chunk("a", filename="app.ts"), make_chunk("b", filename="b.ts")])
        assert list(prioritize_files(groups, "missing.go")) == ["app.ts", "b.ts"]
        assert list(prioritize_files(groups, None)) == ["app.ts", "b.ts"]


class TestMerge:
    """Test merging of nearby chunks."""

    def test_merges_within_three_lines(self, make_chunk):
        chunks = [
            make_chunk("late", start_line=20, end_line=22),
            make_chunk("first", start_line=0, end_line=2),
            make_chunk("second", start_line=5, end_line=6),
        ]

        merged = merge_adjacent_chunks(chunks)

        assert [(c.metadata.start_line, c.metadata.end_line) for c in merged] == [(0, 6), (20, 22)]
        assert merged[0].content == "first\nsecond"

    def test_gap_of_four_is_not_merged(self, make_chunk):
        chunks = [make_chunk("a", start_line=0, end_line=2), make_chunk("b", start_line=6, end_line=7)]
        assert len(merge_adjacent_chunks(chunks)) == 2

    def test_inputs_are_not_modified(self, make_chunk):
        first = make_chunk("first", start_line=0, end_line=2)
        second = make_chunk("second", start_line=3, end_line=9)

        merge_adjacent_chunks([first, second])

        assert first.content == "first"
        assert first.metadata.end_line == 2


class TestBuildContext:
    """Test the budgeted context string."""

    def test_no_chunks_returns_sentinel(self):
        assert build_context([], "anything") == NO_CONTEXT_MESSAGE
        assert NO_CONTEXT_MESSAGE == "No relevant code context found for this query."

    def test_single_complete_file(self, make_chunk):
        chunk = make_chunk("function foo() {}", start_line=3, end_line=3, chunk_type="function")

        context = build_context([chunk], "foo")

        assert context == (
            "Code context from 1 files:\n"
            "- Complete context: app.ts\n"
            "\n--- File: app.ts ---\n"
            "\n// Lines 3-3 (function):\n"
            "function foo() {}\n"
        )

    def test_block_headers_have_no_type_suffix(self, make_chunk):
        context = build_context([make_chunk("const a = 1;", start_line=7)], "a")
        assert "\n// Lines 7-7:\n" in context

    def test_oversized_chunk_makes_file_partial(self, make_chunk):
        context = build_context([make_chunk("x" * 5000)], "x", max_tokens=100)

        assert context.startswith("Code context from 1 files:\n- Partial context: app.ts\n")
        assert OMITTED_NOTE in context
        assert "x" * 100 not in context

    def test_files_over_budget_are_counted_as_omitted(self, make_chunk):
        chunks = [make_chunk("x" * 100, filename=f"f{i}.ts") for i in range(7)]

        context = build_context(chunks, "x", max_tokens=60)

        assert context.startswith(
            "Code context from 5 files:\n"
            "- Complete context: f0.ts, f1.ts, f2.ts, f3.ts, f4.ts\n"
            "\nNote: 2 more relevant files were found but omitted due to token limits.\n"
        )
        assert "--- File: f5.ts ---" not in context

    def test_named_file_comes_first(self, make_chunk):
        chunks = [
            make_chunk("export const a = 1;", filename="app.ts"),
            make_chunk("def parse(): pass", filename="parser.py", language="python"),
        ]

        context = build_context(chunks, "explain parse in parser.py")

        assert "- Complete context: parser.py, app.ts\n" in context
        assert context.index("--- File: parser.py ---") < context.index("--- File: app.ts ---")

    def test_adjacent_chunks_are_merged_in_output(self, make_chunk):
        chunks = [
            make_chunk("line five", start_line=5, end_line=5),
            make_chunk("line one", start_line=1, end_line=3),
        ]

        context = build_context(chunks, "lines")

        assert "\n// Lines 1-5:\nline one\nline five\n" in context


class TestFormatChunks:
    def test_numbered_listing_with_scores(self, make_chunk):
        chunks = [make_chunk("def a(): pass", filename="a.py", start_line=2, end_line=2)]

        text = format_chunks(chunks, [0.87654])

        assert text.startswith("Found 1 relevant code sections:")
        assert "--- 1. a.py:2-2 (block) (score: 0.877) ---" in text
        assert text.endswith("def a(): pass")

    def test_empty_listing(self):
        assert format_chunks([]) == NO_CONTEXT_MESSAGE

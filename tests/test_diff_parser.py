"""Tests for buildmedic.review.parser."""
from __future__ import annotations

import pytest

from buildmedic.review import ChangeKind, DiffParser, Hunk, MalformedDiff, parse_diff


def _diff(*lines: str) -> str:
    return "\n".join(lines) + "\n"


MODIFIED = _diff(
    "diff --git a/src/app.py b/src/app.py",
    "index 1111111..2222222 100644",
    "--- a/src/app.py",
    "+++ b/src/app.py",
    "@@ -10,3 +10,4 @@ def main():",
    " foo",
    "-bar",
    "+baz",
    "+qux",
    " end",
)

MULTI = _diff(
    "diff --git a/a.py b/a.py",
    "index 1111111..2222222 100644",
    "--- a/a.py",
    "+++ b/a.py",
    "@@ -3,0 +4,2 @@",
    "+import os",
    "+import sys",
    "@@ -20,2 +22 @@ def run():",
    "-    x = 1",
    "-    y = 2",
    "+    x, y = 1, 2",
    "@@ -40 +41,0 @@",
    "-    print(x)",
    "diff --git a/b.py b/b.py",
    "index 3333333..4444444 100644",
    "--- a/b.py",
    "+++ b/b.py",
    "@@ -1,4 +1,4 @@",
    " one",
    "-two",
    "+TWO",
    " three",
    " four",
)


class TestFileSections:
    def test_empty_input_yields_no_files(self):
        assert parse_diff("") == []

    def test_whitespace_only_input_yields_no_files(self):
        assert parse_diff("\n\n") == []

    def test_modified_file_paths_and_index(self):
        (file,) = parse_diff(MODIFIED)
        assert file.from_path == "src/app.py"
        assert file.to_path == "src/app.py"
        assert file.index == "1111111..2222222 100644"
        assert not file.is_new
        assert not file.is_deleted
        assert len(file.hunks) == 1

    def test_pure_addition_has_no_from_path(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/new.txt b/new.txt",
                "new file mode 100644",
                "index 0000000..3b18e51",
                "--- /dev/null",
                "+++ b/new.txt",
                "@@ -0,0 +1,2 @@",
                "+hello",
                "+world",
            )
        )
        assert file.from_path is None
        assert file.to_path == "new.txt"
        assert file.is_new
        assert file.new_mode == "100644"
        assert [c.new_line for c in file.hunks[0].changes] == [1, 2]

    def test_pure_deletion_has_no_to_path(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/old.txt b/old.txt",
                "deleted file mode 100644",
                "index 3b18e51..0000000",
                "--- a/old.txt",
                "+++ /dev/null",
                "@@ -1,2 +0,0 @@",
                "-hello",
                "-world",
            )
        )
        assert file.from_path == "old.txt"
        assert file.to_path is None
        assert file.is_deleted
        assert file.old_mode == "100644"
        assert [c.old_line for c in file.hunks[0].changes] == [1, 2]

    def test_binary_file_has_no_hunks(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/logo.png b/logo.png",
                "index 1111111..2222222 100644",
                "Binary files a/logo.png and b/logo.png differ",
            )
        )
        assert file.is_binary
        assert file.hunks == ()
        assert file.path == "logo.png"

    def test_new_binary_file_reads_null_side_from_binary_line(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/logo.png b/logo.png",
                "index 0000000..2222222",
                "Binary files /dev/null and b/logo.png differ",
            )
        )
        assert file.from_path is None
        assert file.to_path == "logo.png"

    def test_git_binary_patch_payload_is_skipped(self):
        files = parse_diff(
            _diff(
                "diff --git a/img.bin b/img.bin",
                "new file mode 100644",
                "index 0000000..1234567",
                "GIT binary patch",
                "literal 12",
                "Tc${NkU|?ZjU|?VdU|;|M0RR91",
                "",
                "literal 0",
                "HcmV?d00001",
                "",
                "diff --git a/b.txt b/b.txt",
                "index 1111111..2222222 100644",
                "--- a/b.txt",
                "+++ b/b.txt",
                "@@ -1 +1 @@",
                "-x",
                "+y",
            )
        )
        assert [f.path for f in files] == ["img.bin", "b.txt"]
        assert files[0].is_binary and files[0].hunks == ()
        assert len(files[1].hunks) == 1

    def test_rename_without_content_change(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/old/name.py b/new/name.py",
                "similarity index 100%",
                "rename from old/name.py",
                "rename to new/name.py",
            )
        )
        assert file.from_path == "old/name.py"
        assert file.to_path == "new/name.py"
        assert file.is_rename
        assert file.similarity == 100
        assert file.hunks == ()

    def test_copy_metadata(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/base.cfg b/copy.cfg",
                "similarity index 90%",
                "copy from base.cfg",
                "copy to copy.cfg",
                "--- a/base.cfg",
                "+++ b/copy.cfg",
                "@@ -2 +2 @@",
                "-debug = false",
                "+debug = true",
            )
        )
        assert file.is_copy
        assert (file.from_path, file.to_path) == ("base.cfg", "copy.cfg")

    def test_mode_change_with_spaces_in_path(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/my script.sh b/my script.sh",
                "old mode 100644",
                "new mode 100755",
            )
        )
        assert file.from_path == "my script.sh"
        assert file.to_path == "my script.sh"
        assert (file.old_mode, file.new_mode) == ("100644", "100755")

    def test_quoted_paths_are_unquoted(self):
        (file,) = parse_diff(
            _diff(
                'diff --git "a/caf\\303\\251 menu.txt" "b/caf\\303\\251 menu.txt"',
                "index 1111111..2222222 100644",
                '--- "a/caf\\303\\251 menu.txt"',
                '+++ "b/caf\\303\\251 menu.txt"',
                "@@ -1 +1 @@",
                "-tea",
                "+coffee",
            )
        )
        assert file.from_path == "café menu.txt"
        assert file.to_path == "café menu.txt"

    def test_plain_unified_diff_without_git_header(self):
        (file,) = parse_diff(
            _diff(
                "--- hello.c\t2024-01-01 00:00:00.000000000 +0000",
                "+++ hello.c\t2024-01-02 00:00:00.000000000 +0000",
                "@@ -1 +1 @@",
                '-printf("hi");',
                '+printf("hello");',
            )
        )
        assert file.from_path == "hello.c"
        assert file.to_path == "hello.c"
        assert file.hunks[0].changes[1].content == 'printf("hello");'

    def test_multiple_plain_sections(self):
        files = parse_diff(
            _diff(
                "--- a/one.txt",
                "+++ b/one.txt",
                "@@ -1 +1 @@",
                "-1",
                "+one",
                "--- a/two.txt",
                "+++ b/two.txt",
                "@@ -1 +1 @@",
                "-2",
                "+two",
            )
        )
        assert [f.path for f in files] == ["one.txt", "two.txt"]

    def test_format_patch_preamble_and_signature_ignored(self):
        files = parse_diff(
            _diff(
                "From 0123456789abcdef Mon Sep 17 00:00:00 2001",
                "From: Dev <dev@example.com>",
                "Subject: [PATCH] fix typo",
                "",
                "---",
                " a.py | 2 +-",
                " 1 file changed, 1 insertion(+), 1 deletion(-)",
                "",
                "diff --git a/a.py b/a.py",
                "index 1111111..2222222 100644",
                "--- a/a.py",
                "+++ b/a.py",
                "@@ -1 +1 @@",
                "-pritn('x')",
                "+print('x')",
                "-- ",
                "2.43.0",
            )
        )
        assert len(files) == 1
        assert len(files[0].hunks[0].changes) == 2

    def test_multiple_files_keep_order(self):
        files = parse_diff(MULTI)
        assert [f.path for f in files] == ["a.py", "b.py"]
        assert [len(f.hunks) for f in files] == [3, 1]
        assert files[0].additions == 3
        assert files[0].deletions == 3


class TestLineNumbers:
    def test_two_cursor_resolution(self):
        (file,) = parse_diff(MODIFIED)
        hunk = file.hunks[0]
        assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (10, 3, 10, 4)
        assert hunk.section == "def main():"

        got = [(c.kind, c.content, c.old_line, c.new_line) for c in hunk.changes]
        assert got == [
            (ChangeKind.CONTEXT, "foo", 10, 10),
            (ChangeKind.DELETION, "bar", 11, None),
            (ChangeKind.ADDITION, "baz", None, 11),
            (ChangeKind.ADDITION, "qux", None, 12),
            (ChangeKind.CONTEXT, "end", 12, 13),
        ]

    def test_omitted_counts_default_to_one(self):
        (file,) = parse_diff(
            _diff("--- a/x", "+++ b/x", "@@ -5 +7 @@", "-a", "+b")
        )
        hunk = file.hunks[0]
        assert (hunk.old_count, hunk.new_count) == (1, 1)
        assert hunk.changes[0].old_line == 5
        assert hunk.changes[1].new_line == 7

    def test_cursors_reset_per_hunk(self):
        (a, _b) = parse_diff(MULTI)
        assert [c.new_line for c in a.hunks[0].changes] == [4, 5]
        assert [(c.old_line, c.new_line) for c in a.hunks[1].changes] == [
            (20, None),
            (21, None),
            (None, 22),
        ]
        assert [c.old_line for c in a.hunks[2].changes] == [40]

    def test_header_lookalike_lines_inside_body_are_changes(self):
        (file,) = parse_diff(
            _diff(
                "diff --git a/notes.md b/notes.md",
                "index 1111111..2222222 100644",
                "--- a/notes.md",
                "+++ b/notes.md",
                "@@ -1 +1 @@",
                "--- a/old",
                "+++ b/new",
            )
        )
        changes = file.hunks[0].changes
        assert [(c.kind, c.content) for c in changes] == [
            (ChangeKind.DELETION, "-- a/old"),
            (ChangeKind.ADDITION, "++ b/new"),
        ]

    def test_no_newline_marker_recorded_on_previous_change(self):
        (file,) = parse_diff(
            _diff(
                "--- a/x",
                "+++ b/x",
                "@@ -1 +1 @@",
                "-old",
                "\\ No newline at end of file",
                "+new",
                "\\ No newline at end of file",
            )
        )
        changes = file.hunks[0].changes
        assert len(changes) == 2
        assert all(c.missing_newline for c in changes)

    def test_zero_start_allowed_when_count_is_zero(self):
        (file,) = parse_diff(_diff("--- /dev/null", "+++ b/x", "@@ -0,0 +1 @@", "+x"))
        assert file.hunks[0].old_start == 0
        assert file.from_path is None


class TestProperties:
    @pytest.mark.parametrize("text", [MODIFIED, MULTI])
    def test_counts_match_header(self, text):
        for file in parse_diff(text):
            for hunk in file.hunks:
                old_side = [c for c in hunk.changes if c.kind is not ChangeKind.ADDITION]
                new_side = [c for c in hunk.changes if c.kind is not ChangeKind.DELETION]
                assert len(old_side) == hunk.old_count
                assert len(new_side) == hunk.new_count

    @pytest.mark.parametrize("text", [MODIFIED, MULTI])
    def test_line_numbers_strictly_increase(self, text):
        for file in parse_diff(text):
            for hunk in file.hunks:
                old = [c.old_line for c in hunk.changes if c.kind is not ChangeKind.ADDITION]
                new = [c.new_line for c in hunk.changes if c.kind is not ChangeKind.DELETION]
                assert old == sorted(set(old))
                assert new == sorted(set(new))

    def test_only_context_has_both_line_numbers(self):
        for file in parse_diff(MULTI):
            for hunk in file.hunks:
                for c in hunk.changes:
                    if c.kind is ChangeKind.CONTEXT:
                        assert c.old_line is not None and c.new_line is not None
                    elif c.kind is ChangeKind.ADDITION:
                        assert c.old_line is None and c.new_line is not None
                    else:
                        assert c.old_line is not None and c.new_line is None

    def test_hunk_render_reproduces_source(self):
        (file,) = parse_diff(MODIFIED)
        hunk_text = MODIFIED.split("+++ b/src/app.py\n", 1)[1]
        assert file.hunks[0].render() == hunk_text

    def test_render_restores_no_newline_marker(self):
        source = "@@ -1,1 +1,1 @@\n-a\n\\ No newline at end of file\n+b\n"
        (file,) = parse_diff("--- a/x\n+++ b/x\n" + source)
        assert file.hunks[0].render() == source

    @pytest.mark.parametrize(
        "header",
        ["@@ -5 +7 @@", "@@ -5,0 +6 @@", "@@ -5 +7 @@ def main():"],
    )
    def test_render_keeps_header_with_omitted_counts(self, header):
        body = "-a\n+b\n" if header.startswith("@@ -5 +7") else "+b\n"
        source = f"{header}\n{body}"
        (file,) = parse_diff("--- a/x\n+++ b/x\n" + source)
        assert file.hunks[0].header == header
        assert file.hunks[0].render() == source

    def test_built_hunk_header_drops_counts_of_one(self):
        assert Hunk(old_start=5, old_count=1, new_start=7, new_count=1).header == "@@ -5 +7 @@"
        assert Hunk(old_start=5, old_count=0, new_start=6, new_count=2).header == "@@ -5,0 +6,2 @@"

    def test_parser_instance_is_reusable(self):
        parser = DiffParser()
        assert parser.parse(MODIFIED) == parser.parse(MODIFIED)
        assert parser.parse("") == []


class TestMalformed:
    def test_unparseable_hunk_header(self):
        text = _diff("diff --git a/x b/x", "--- a/x", "+++ b/x", "@@ bad @@", "+x")
        with pytest.raises(MalformedDiff, match="unparseable hunk header") as excinfo:
            parse_diff(text)
        err = excinfo.value
        assert err.content == "@@ bad @@"
        assert err.line_number == 4
        assert (err.file_index, err.hunk_index, err.line_offset) == (0, 0, None)

    def test_error_position_points_at_later_file_and_hunk(self):
        text = MULTI + _diff("diff --git a/c.py b/c.py", "--- a/c.py", "+++ b/c.py", "@@ -1 +1 @@", "-a", "*b")
        with pytest.raises(MalformedDiff, match="invalid hunk line prefix") as excinfo:
            parse_diff(text)
        err = excinfo.value
        assert err.content == "*b"
        assert (err.file_index, err.hunk_index, err.line_offset) == (2, 0, 1)

    def test_non_positive_start_with_nonzero_count(self):
        with pytest.raises(MalformedDiff, match="non-positive start"):
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -0,1 +1 @@", "-a", "+b"))

    def test_body_shorter_than_counts(self):
        with pytest.raises(MalformedDiff, match="shorter") as excinfo:
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1,2 +1,2 @@", " a"))
        assert excinfo.value.line_offset == 1

    def test_body_cut_by_next_hunk_header(self):
        with pytest.raises(MalformedDiff, match="shorter"):
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1,2 +1 @@", "-a", "@@ -9 +9 @@", "-z", "+z"))

    def test_body_longer_than_counts(self):
        with pytest.raises(MalformedDiff, match="longer") as excinfo:
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1 +1 @@", "-a", "+b", "+c"))
        assert excinfo.value.hunk_index == 0

    def test_too_many_additions_inside_body(self):
        with pytest.raises(MalformedDiff, match="more added lines"):
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1,2 +1 @@", "+a", "+b", "-c"))

    def test_empty_line_inside_hunk_body(self):
        text = _diff("--- a/x", "+++ b/x", "@@ -1,2 +1,2 @@", "-a", "+b", "")
        with pytest.raises(MalformedDiff, match="empty line inside hunk body") as excinfo:
            parse_diff(text)
        err = excinfo.value
        assert err.content == ""
        assert err.line_number == 6
        assert (err.hunk_index, err.line_offset) == (0, 2)

    def test_blank_line_after_complete_hunk_is_ignored(self):
        (file,) = parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1 +1 @@", "-a", "+b", "", ""))
        assert len(file.hunks[0].changes) == 2

    def test_hunk_before_any_file_header(self):
        with pytest.raises(MalformedDiff, match="outside of a file section") as excinfo:
            parse_diff(_diff("@@ -1 +1 @@", "-a", "+b"))
        assert excinfo.value.file_index is None

    def test_message_includes_position(self):
        with pytest.raises(MalformedDiff) as excinfo:
            parse_diff(_diff("--- a/x", "+++ b/x", "@@ -1 +1 @@", "?a"))
        assert "line 4" in str(excinfo.value)
        assert "hunk 0" in str(excinfo.value)

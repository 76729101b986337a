"""Unified diff parsing.

Turns `git diff` (or plain `diff -u`) output into `FileDiff` records whose
line changes carry resolved old/new line numbers. Each hunk body is read
with two cursors: context lines advance both, additions advance only the
new-side cursor, deletions only the old-side cursor.

Hunk bodies are consumed by the counts in their `@@` header, so a body line
that looks like a file header (`--- x`) is still read as a deletion. Any
disagreement between the header counts and the body is a `MalformedDiff`;
the parser never guesses, since one misplaced line shifts every line number
after it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

from .models import NULL_DEVICES, ChangeKind, FileDiff, Hunk, LineChange

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)
_BINARY_RE = re.compile(r"^Binary files (?P<old>.+) and (?P<new>.+) differ$")
_SIMILARITY_RE = re.compile(r"^similarity index (?P<pct>\d+)%$")

_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    '"': '"',
    "\\": "\\",
}


class MalformedDiff(ValueError):
    """The input does not follow the unified diff grammar.

    Positions are 0-based indexes into the parse output (`file_index`,
    `hunk_index`) and into the hunk body (`line_offset`, None when the
    problem is in a header). `line_number` is 1-based within the input.
    """

    def __init__(
        self,
        reason: str,
        *,
        content: str,
        line_number: int,
        file_index: int | None = None,
        hunk_index: int | None = None,
        line_offset: int | None = None,
    ) -> None:
        self.reason = reason
        self.content = content
        self.line_number = line_number
        self.file_index = file_index
        self.hunk_index = hunk_index
        self.line_offset = line_offset
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = [f"line {self.line_number}"]
        if self.file_index is not None:
            where.append(f"file {self.file_index}")
        if self.hunk_index is not None:
            where.append(f"hunk {self.hunk_index}")
        if self.line_offset is not None:
            where.append(f"offset {self.line_offset}")
        return f"{self.reason} ({', '.join(where)}): {self.content!r}"


def _unquote(raw: str) -> str:
    """Decode a git C-style quoted path (surrounding quotes included)."""
    body = raw[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        octal = body[i + 1 : i + 4]
        if len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8))
            i += 4
            continue
        out.extend(_ESCAPES.get(nxt, nxt).encode("utf-8"))
        i += 2
    return out.decode("utf-8", errors="replace")


def _quoted_end(text: str) -> int:
    """Index just past the closing quote of a quoted token at the start of text."""
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i + 1
        i += 1
    return len(text)


def _normalize_path(raw: str, prefix: str) -> str | None:
    path = _unquote(raw) if raw.startswith('"') and raw.endswith('"') and len(raw) > 1 else raw
    if path in NULL_DEVICES:
        return None
    if path.startswith(prefix):
        path = path[len(prefix):]
    return path


def _split_git_paths(text: str) -> tuple[str | None, str | None]:
    """Split the `a/<old> b/<new>` payload of a `diff --git` line."""
    if text.startswith('"'):
        end = _quoted_end(text)
        return _normalize_path(text[:end], "a/"), _normalize_path(text[end:].lstrip(), "b/")
    if text.endswith('"') and ' "' in text:
        cut = text.rindex(' "')
        return _normalize_path(text[:cut], "a/"), _normalize_path(text[cut + 1:], "b/")

    # Same name on both sides is the common case and survives spaces in paths.
    mid = len(text) // 2
    if len(text) % 2 == 1 and text[mid] == " ":
        old, new = text[:mid], text[mid + 1:]
        if old.startswith("a/") and new.startswith("b/") and old[2:] == new[2:]:
            return old[2:], new[2:]

    cut = text.find(" b/")
    if cut == -1:
        parts = text.split(" ", 1)
        if len(parts) == 2:
            return _normalize_path(parts[0], "a/"), _normalize_path(parts[1], "b/")
        return _normalize_path(text, "a/"), _normalize_path(text, "b/")
    return _normalize_path(text[:cut], "a/"), _normalize_path(text[cut + 1:], "b/")


def _path_line(line: str, prefix: str) -> str | None:
    """Path from a `--- ` / `+++ ` line, dropping any tab-separated timestamp."""
    raw = line[4:]
    if raw.startswith('"'):
        raw = raw[: _quoted_end(raw)]
    else:
        raw = raw.split("\t", 1)[0]
    return _normalize_path(raw, prefix)


@dataclass
class _FileBuilder:
    line_number: int
    from_path: str | None = None
    to_path: str | None = None
    hunks: list[Hunk] = field(default_factory=list)
    old_mode: str | None = None
    new_mode: str | None = None
    index: str | None = None
    similarity: int | None = None
    is_binary: bool = False
    is_rename: bool = False
    is_copy: bool = False
    saw_path_lines: bool = False
    skipping: bool = False

    def build(self, file_index: int) -> FileDiff:
        if self.from_path is None and self.to_path is None:
            raise MalformedDiff(
                "file section names no path",
                content="",
                line_number=self.line_number,
                file_index=file_index,
            )
        return FileDiff(
            from_path=self.from_path,
            to_path=self.to_path,
            hunks=tuple(self.hunks),
            old_mode=self.old_mode,
            new_mode=self.new_mode,
            index=self.index,
            similarity=self.similarity,
            is_binary=self.is_binary,
            is_rename=self.is_rename,
            is_copy=self.is_copy,
        )


class DiffParser:
    """Parses unified diff text into `FileDiff` records.

    The parser keeps no state between calls; each `parse` works on its own
    locals, so one instance can be shared freely.
    """

    def parse(self, text: str) -> list[FileDiff]:
        lines = (text or "").split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        builders: list[_FileBuilder] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            current = builders[-1] if builders else None

            if line.startswith("diff --git "):
                builder = _FileBuilder(line_number=i + 1)
                builder.from_path, builder.to_path = _split_git_paths(line[len("diff --git "):])
                builders.append(builder)
                i += 1
                continue

            if current is not None and current.skipping:
                i += 1
                continue

            if (
                line.startswith("--- ")
                and i + 1 < len(lines)
                and lines[i + 1].startswith("+++ ")
            ):
                if current is None or current.hunks or current.saw_path_lines or current.is_binary:
                    current = _FileBuilder(line_number=i + 1)
                    builders.append(current)
                current.from_path = _path_line(line, "a/")
                current.to_path = _path_line(lines[i + 1], "b/")
                current.saw_path_lines = True
                i += 2
                continue

            if line.startswith("@@"):
                if current is None:
                    raise MalformedDiff(
                        "hunk header outside of a file section",
                        content=line,
                        line_number=i + 1,
                    )
                i = self._read_hunk(lines, i, current, len(builders) - 1)
                continue

            if current is not None:
                self._read_metadata(line, i, current, len(builders) - 1)
            i += 1

        return [builder.build(idx) for idx, builder in enumerate(builders)]

    def _read_metadata(self, line: str, i: int, current: _FileBuilder, file_index: int) -> None:
        if line.startswith("old mode "):
            current.old_mode = line[len("old mode "):]
        elif line.startswith("new mode "):
            current.new_mode = line[len("new mode "):]
        elif line.startswith("deleted file mode "):
            current.old_mode = line[len("deleted file mode "):]
            current.to_path = None
        elif line.startswith("new file mode "):
            current.new_mode = line[len("new file mode "):]
            current.from_path = None
        elif line.startswith("rename from "):
            current.from_path = _normalize_path(line[len("rename from "):], "")
            current.is_rename = True
        elif line.startswith("rename to "):
            current.to_path = _normalize_path(line[len("rename to "):], "")
            current.is_rename = True
        elif line.startswith("copy from "):
            current.from_path = _normalize_path(line[len("copy from "):], "")
            current.is_copy = True
        elif line.startswith("copy to "):
            current.to_path = _normalize_path(line[len("copy to "):], "")
            current.is_copy = True
        elif line.startswith("index "):
            current.index = line[len("index "):]
        elif line.startswith("similarity index "):
            match = _SIMILARITY_RE.match(line)
            if match:
                current.similarity = int(match.group("pct"))
        elif line == "GIT binary patch":
            current.is_binary = True
            current.skipping = True
        elif line.startswith("Binary files "):
            current.is_binary = True
            match = _BINARY_RE.match(line)
            if match:
                current.from_path = _normalize_path(match.group("old"), "a/")
                current.to_path = _normalize_path(match.group("new"), "b/")
        elif line == "-- ":
            # format-patch signature; the rest is trailer or the next mail.
            current.skipping = True
        elif current.hunks and line[:1] in ("+", "-", " ", "\\"):
            raise MalformedDiff(
                "hunk body is longer than its header counts",
                content=line,
                line_number=i + 1,
                file_index=file_index,
                hunk_index=len(current.hunks) - 1,
            )

    def _read_hunk(self, lines: list[str], start: int, current: _FileBuilder, file_index: int) -> int:
        """Parse the hunk whose header is at `start`; return the index after its body."""
        header = lines[start]
        hunk_index = len(current.hunks)

        def malformed(reason: str, at: int, line_offset: int | None) -> MalformedDiff:
            content = lines[at] if at < len(lines) else ""
            return MalformedDiff(
                reason,
                content=content,
                line_number=at + 1,
                file_index=file_index,
                hunk_index=hunk_index,
                line_offset=line_offset,
            )

        match = _HUNK_RE.match(header)
        if not match:
            raise malformed("unparseable hunk header", start, None)

        old_start = int(match.group("old_start"))
        new_start = int(match.group("new_start"))
        old_count = int(match.group("old_count")) if match.group("old_count") is not None else 1
        new_count = int(match.group("new_count")) if match.group("new_count") is not None else 1
        if (old_count and old_start < 1) or (new_count and new_start < 1):
            raise malformed("hunk header has a non-positive start line", start, None)

        old_cursor, new_cursor = old_start, new_start
        old_left, new_left = old_count, new_count
        changes: list[LineChange] = []

        i = start + 1
        while old_left or new_left:
            offset = i - start - 1
            if i >= len(lines):
                raise malformed("hunk body is shorter than its header counts", i, offset)

            line = lines[i]
            marker = line[:1]
            if marker == "\\":
                if not changes:
                    raise malformed("no-newline marker before any hunk line", i, offset)
                changes[-1] = replace(changes[-1], missing_newline=True)
                i += 1
                continue

            if line == "":
                # A context line keeps its leading space; an empty line means the body was mangled.
                raise malformed("empty line inside hunk body", i, offset)
            if marker in ("+", "-", " "):
                kind, content = ChangeKind(marker), line[1:]
            elif line.startswith(("@@", "diff --git ")):
                raise malformed("hunk body is shorter than its header counts", i, offset)
            else:
                raise malformed(f"invalid hunk line prefix {marker!r}", i, offset)

            if kind is ChangeKind.CONTEXT:
                if not old_left or not new_left:
                    raise malformed("hunk body is longer than its header counts", i, offset)
                changes.append(LineChange(kind, content, old_line=old_cursor, new_line=new_cursor))
                old_cursor += 1
                new_cursor += 1
                old_left -= 1
                new_left -= 1
            elif kind is ChangeKind.ADDITION:
                if not new_left:
                    raise malformed("more added lines than the hunk header declares", i, offset)
                changes.append(LineChange(kind, content, new_line=new_cursor))
                new_cursor += 1
                new_left -= 1
            else:
                if not old_left:
                    raise malformed("more deleted lines than the hunk header declares", i, offset)
                changes.append(LineChange(kind, content, old_line=old_cursor))
                old_cursor += 1
                old_left -= 1
            i += 1

        # The marker for the hunk's final line follows the counted body.
        while i < len(lines) and lines[i].startswith("\\"):
            if not changes:
                raise malformed("no-newline marker before any hunk line", i, i - start - 1)
            changes[-1] = replace(changes[-1], missing_newline=True)
            i += 1

        current.hunks.append(
            Hunk(
                old_start=old_start,
                old_count=old_count,
                new_start=new_start,
                new_count=new_count,
                changes=tuple(changes),
                section=match.group("section").strip(),
                header_text=header,
            )
        )
        return i


def parse_diff(text: str) -> list[FileDiff]:
    """Parse unified diff text. Empty input yields an empty list."""
    return DiffParser().parse(text)

"""Typed records for parsed unified diffs and the review comments mapped from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Device names diff producers use for "this side does not exist".
NULL_DEVICES = frozenset({"/dev/null", "NUL"})


def _range(start: int, count: int) -> str:
    # git leaves out a count of 1.
    return str(start) if count == 1 else f"{start},{count}"


class ChangeKind(Enum):
    """Kind of a hunk body line; the value is its marker character."""

    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"


class Side(Enum):
    """Which version of the file a review comment annotates."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"


@dataclass(frozen=True)
class LineChange:
    kind: ChangeKind
    content: str
    old_line: int | None = None
    new_line: int | None = None
    missing_newline: bool = False

    @property
    def marker(self) -> str:
        return self.kind.value

    def render(self) -> str:
        """Render the line as it appeared in the hunk body, marker included."""
        return f"{self.marker}{self.content}"


@dataclass(frozen=True)
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    changes: tuple[LineChange, ...] = ()
    section: str = ""
    # The `@@` line as read; empty for hunks built in code.
    header_text: str = field(default="", compare=False)

    @property
    def header(self) -> str:
        if self.header_text:
            return self.header_text
        head = f"@@ -{_range(self.old_start, self.old_count)} +{_range(self.new_start, self.new_count)} @@"
        return f"{head} {self.section}" if self.section else head

    def render(self) -> str:
        """Rebuild the hunk text: header line followed by one line per change."""
        lines = [self.header]
        for change in self.changes:
            lines.append(change.render())
            if change.missing_newline:
                lines.append("\\ No newline at end of file")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class FileDiff:
    """One file's section of a unified diff.

    `from_path` is None for a file that did not exist before, `to_path` is
    None for a file that was deleted. At least one of them is set.
    """

    from_path: str | None
    to_path: str | None
    hunks: tuple[Hunk, ...] = ()
    old_mode: str | None = None
    new_mode: str | None = None
    index: str | None = None
    similarity: int | None = None
    is_binary: bool = False
    is_rename: bool = False
    is_copy: bool = False

    @property
    def path(self) -> str:
        return self.to_path or self.from_path or ""

    @property
    def is_new(self) -> bool:
        return self.from_path is None

    @property
    def is_deleted(self) -> bool:
        return self.to_path is None

    @property
    def additions(self) -> int:
        return sum(
            1 for hunk in self.hunks for c in hunk.changes if c.kind is ChangeKind.ADDITION
        )

    @property
    def deletions(self) -> int:
        return sum(
            1 for hunk in self.hunks for c in hunk.changes if c.kind is ChangeKind.DELETION
        )


@dataclass(frozen=True)
class ReviewComment:
    path: str
    line: int
    side: Side
    body: str

    def to_payload(self) -> dict[str, object]:
        """Shape accepted by the pull request review API."""
        return {"path": self.path, "line": self.line, "side": self.side.value, "body": self.body}


@dataclass(frozen=True)
class SkippedFile:
    """A file section the mapper excluded, with the reason."""

    path: str
    reason: str


@dataclass(frozen=True)
class MappingResult:
    comments: tuple[ReviewComment, ...] = ()
    skipped: tuple[SkippedFile, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to submit."""
        return not self.comments

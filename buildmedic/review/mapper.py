"""Map parsed diffs to inline review comments.

Additions become RIGHT-side suggestions on the new line, deletions become
LEFT-side comments with an empty body on the old line. Context lines never
produce comments.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .models import ChangeKind, FileDiff, LineChange, MappingResult, ReviewComment, Side, SkippedFile
from .parser import parse_diff

BodyPolicy = Callable[[LineChange], str]


def suggestion_body(change: LineChange) -> str:
    """Default body: a suggestion block for additions, nothing for deletions."""
    if change.kind is ChangeKind.ADDITION:
        return f"```suggestion\n{change.content}\n```"
    return ""


def _skip_reason(file: FileDiff) -> str | None:
    if file.to_path is None:
        return "deleted"
    if file.is_binary:
        return "binary"
    if not file.hunks:
        return "no-hunks"
    return None


class CommentMapper:
    """Walks `FileDiff` records in order and emits `ReviewComment`s."""

    def __init__(self, body_for: BodyPolicy | None = None) -> None:
        self._body_for = body_for or suggestion_body

    def _comment(self, path: str, change: LineChange) -> ReviewComment | None:
        if change.kind is ChangeKind.ADDITION and change.new_line is not None:
            return ReviewComment(path, change.new_line, Side.RIGHT, self._body_for(change))
        if change.kind is ChangeKind.DELETION and change.old_line is not None:
            return ReviewComment(path, change.old_line, Side.LEFT, self._body_for(change))
        return None

    def map(self, files: Iterable[FileDiff]) -> MappingResult:
        comments: list[ReviewComment] = []
        skipped: list[SkippedFile] = []
        for file in files:
            reason = _skip_reason(file)
            if reason is not None:
                skipped.append(SkippedFile(file.path, reason))
                continue

            path = file.to_path or file.from_path or ""
            for hunk in file.hunks:
                for change in hunk.changes:
                    comment = self._comment(path, change)
                    if comment is not None:
                        comments.append(comment)
        return MappingResult(comments=tuple(comments), skipped=tuple(skipped))


def parse_and_map(text: str, *, body_for: BodyPolicy | None = None) -> MappingResult:
    """Parse unified diff text and map it to review comments.

    Raises:
        MalformedDiff: the text is not a well-formed unified diff.
    """
    return CommentMapper(body_for).map(parse_diff(text))

"""Unified diff parsing and review comment mapping."""

from .mapper import BodyPolicy, CommentMapper, parse_and_map, suggestion_body
from .models import (
    NULL_DEVICES,
    ChangeKind,
    FileDiff,
    Hunk,
    LineChange,
    MappingResult,
    ReviewComment,
    Side,
    SkippedFile,
)
from .parser import DiffParser, MalformedDiff, parse_diff

__all__ = [
    "BodyPolicy",
    "ChangeKind",
    "CommentMapper",
    "DiffParser",
    "FileDiff",
    "Hunk",
    "LineChange",
    "MalformedDiff",
    "MappingResult",
    "NULL_DEVICES",
    "ReviewComment",
    "Side",
    "SkippedFile",
    "parse_and_map",
    "parse_diff",
    "suggestion_body",
]

"""GitHub Actions run context: event type, repository and pull request data."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})


class ContextError(RuntimeError):
    """The run context lacks data BuildMedic needs."""


@dataclass(frozen=True)
class PullRequestContext:
    repo: str
    number: int
    base_sha: str


def load_event(env: Mapping[str, str]) -> dict:
    """Read the webhook payload at GITHUB_EVENT_PATH; {} when absent or unreadable."""
    raw_path = (env.get("GITHUB_EVENT_PATH") or "").strip()
    if not raw_path:
        return {}
    try:
        data = json.loads(Path(raw_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def is_pull_request_event(env: Mapping[str, str], event: Mapping | None = None) -> bool:
    if (env.get("GITHUB_EVENT_NAME") or "").strip() in PULL_REQUEST_EVENTS:
        return True
    # Reusable workflows can rename the event; the payload still carries the PR.
    payload = event if event is not None else load_event(env)
    return isinstance(payload.get("pull_request"), dict)


def pull_request_context(env: Mapping[str, str], event: Mapping | None = None) -> PullRequestContext:
    payload = event if event is not None else load_event(env)

    repo = (env.get("GITHUB_REPOSITORY") or "").strip()
    if not repo:
        repository = payload.get("repository")
        if isinstance(repository, dict):
            repo = str(repository.get("full_name") or "").strip()
    if not repo:
        raise ContextError("Could not determine repository (GITHUB_REPOSITORY is not set)")

    pr = payload.get("pull_request")
    pr = pr if isinstance(pr, dict) else {}
    number = pr.get("number")
    if isinstance(number, bool) or not isinstance(number, int):
        raise ContextError("No pull request number found in context")

    base = pr.get("base")
    base_sha = str(base.get("sha") or "").strip() if isinstance(base, dict) else ""
    if not base_sha:
        raise ContextError("Could not determine base branch from PR context")

    return PullRequestContext(repo=repo, number=number, base_sha=base_sha)


def current_branch(env: Mapping[str, str]) -> str:
    """Branch name from GITHUB_REF (refs/heads/<name>)."""
    ref = (env.get("GITHUB_REF") or "").strip()
    if not ref:
        raise ContextError("GITHUB_REF is not set")
    return ref.removeprefix("refs/heads/")

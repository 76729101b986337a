"""GitHub operations through the gh CLI.

Posts the pull request review carrying the inline suggestions, and opens a
pull request when BuildMedic runs outside one. Each caller names the token
permission it needs so a 401/403 is reported against the right setting.
"""

from __future__ import annotations

import json
import random
import re
import subprocess
import sys
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path

from buildmedic.review import ReviewComment

_HTTP_STATUS_RE = re.compile(r"\bhttp (\d{3})\b", re.IGNORECASE)
_PR_URL_RE = re.compile(r"https://\S+/pull/\d+")
_TRANSIENT_STATUSES = frozenset({502, 503, 504})

REVIEW_PERMISSION_HINT = (
    "Unable to post review: token lacks pull-requests: write permission.\n"
    "Add this to your workflow:\n"
    "permissions:\n"
    "  pull-requests: write"
)
PULL_REQUEST_PERMISSION_HINT = (
    "Unable to open pull request: the token needs contents: write and "
    "pull-requests: write, and the repository must allow GitHub Actions "
    "to create pull requests (Settings > Actions > General)."
)


class GitHubError(Exception):
    """A gh CLI call failed in a way BuildMedic can explain."""


class GhUnavailableError(GitHubError):
    """The gh CLI is not installed or not on PATH."""


class PermissionDeniedError(GitHubError):
    """The token is not allowed to perform the call."""


class TransientGitHubError(GitHubError):
    """GitHub kept answering 5xx until retries ran out."""


def _http_status(stderr: str) -> int | None:
    match = _HTTP_STATUS_RE.search(stderr)
    return int(match.group(1)) if match else None


def _is_permission_denied(stderr: str) -> bool:
    if _http_status(stderr) in (401, 403):
        return True
    lower = stderr.lower()
    return "resource not accessible" in lower or "not permitted to create" in lower


def _run_gh(
    args: list[str],
    *,
    permission_hint: str,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run `gh <args>`, retrying 502/503/504 with exponential backoff.

    Raises:
        GhUnavailableError: gh is not installed
        PermissionDeniedError: 401/403; the message starts with `permission_hint`
        TransientGitHubError: still 5xx after `max_retries` attempts
        subprocess.CalledProcessError: any other non-zero exit
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = subprocess.run(
                ["gh", *args],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError:
            raise GhUnavailableError(
                "gh CLI not found on PATH; install it or use a runner image that ships it"
            ) from None

        if result.returncode == 0:
            return result

        stderr = result.stderr or ""
        if _is_permission_denied(stderr):
            raise PermissionDeniedError(f"{permission_hint}\n{stderr.strip()}")

        if _http_status(stderr) in _TRANSIENT_STATUSES:
            if attempt >= max_retries:
                raise TransientGitHubError(
                    f"GitHub API still failing after {attempt} attempts: {stderr.strip()}"
                )
            delay = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 0.5)
            print(
                f"::warning::GitHub API error (attempt {attempt}/{max_retries}), "
                f"retrying in {delay:.1f}s...",
                file=sys.stderr,
            )
            time.sleep(delay)
            continue

        raise subprocess.CalledProcessError(
            result.returncode, result.args, result.stdout, result.stderr
        )


def create_pr_review(
    *,
    repo: str,
    pr_number: int,
    body: str,
    comments: Sequence[ReviewComment],
    commit_id: str | None = None,
    max_retries: int = 3,
) -> dict:
    """Post one COMMENT review with line/side anchored inline comments."""
    payload: dict[str, object] = {
        "event": "COMMENT",
        "body": body,
    }
    if commit_id:
        payload["commit_id"] = commit_id
    if comments:
        payload["comments"] = [c.to_payload() for c in comments]

    # The payload is too large for -f flags once suggestions pile up.
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".json", delete=False) as handle:
        json.dump(payload, handle)
        payload_path = Path(handle.name)

    try:
        result = _run_gh(
            ["api", "-X", "POST", f"repos/{repo}/pulls/{pr_number}/reviews", "--input", str(payload_path)],
            permission_hint=REVIEW_PERMISSION_HINT,
            max_retries=max_retries,
        )
    finally:
        payload_path.unlink(missing_ok=True)

    data = json.loads(result.stdout or "{}")
    return data if isinstance(data, dict) else {}


def create_pull_request(*, base: str, title: str, body: str, max_retries: int = 3) -> str:
    """Open a pull request from the current branch and return its URL.

    A rerun on a branch that already has an open PR returns that PR's URL.
    """
    try:
        result = _run_gh(
            ["pr", "create", "--base", base, "--title", title, "--body", body],
            permission_hint=PULL_REQUEST_PERMISSION_HINT,
            max_retries=max_retries,
        )
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr or ""
        existing = _PR_URL_RE.search(stderr)
        if "already exists" in stderr and existing:
            return existing.group(0)
        raise
    return (result.stdout or "").strip()

from __future__ import annotations

import subprocess


def _run_git(args: list[str]) -> subprocess.CompletedProcess[str]:
    # Diffs carry file contents in whatever encoding the repo uses.
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=True,
    )


def diff_against_base(base_sha: str) -> str:
    """Zero-context diff of HEAD against its merge base with `base_sha`."""
    result = _run_git(["diff", "--unified=0", f"{base_sha}...HEAD"])
    return result.stdout or ""

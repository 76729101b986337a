"""Run the project's build command and keep the tail of its output.

The self-healing agent only needs the end of a failing log, where the
compiler or test runner reports the error.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass


@dataclass(frozen=True)
class BuildResult:
    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def exit_status(self) -> int:
        """Exit code as a shell reports it: 128 + N for a command killed by signal N."""
        if self.exit_code < 0:
            return 128 - self.exit_code
        return self.exit_code


def run_build(command: str, *, shell: str = "bash") -> BuildResult:
    """Run `command` through `shell -c` with stderr interleaved into stdout."""
    result = subprocess.run(
        [shell, "-c", command],
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    return BuildResult(exit_code=result.returncode, output=result.stdout or "")


def tail_lines(text: str, limit: int) -> str:
    """Keep the last `limit` lines of `text`."""
    if limit <= 0:
        return ""
    return "\n".join(text.split("\n")[-limit:])

"""buildmedic command line.

Commands:
  comments  Parse a unified diff (file or stdin) and print mapped review comments as JSON
  submit    In a PR run, post local changes as review suggestions; otherwise open a PR
  build     Run the configured build command, printing the tail of its output on failure
"""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
from pathlib import Path

from buildmedic import build as build_runner
from buildmedic import context as ctx
from buildmedic import git
from buildmedic import github as gh
from buildmedic.config import BuildMedicConfig, ConfigError, load_config
from buildmedic.review import MalformedDiff, MappingResult, parse_and_map


def warn(message: str) -> None:
    """Warn."""
    print(f"::warning::{message}", file=sys.stderr)


def notice(message: str) -> None:
    """Notice."""
    print(f"::notice::{message}", file=sys.stderr)


def error(message: str) -> None:
    """Error."""
    print(f"::error::{message}", file=sys.stderr)


def _result_json(result: MappingResult) -> str:
    return json.dumps(
        {
            "comments": [c.to_payload() for c in result.comments],
            "skipped": [{"path": s.path, "reason": s.reason} for s in result.skipped],
        },
        indent=2,
    )


def cmd_comments(args: argparse.Namespace) -> int:
    if args.diff_file:
        try:
            text = Path(args.diff_file).read_text(encoding="utf-8")
        except OSError as exc:
            error(f"unable to read {args.diff_file}: {exc}")
            return 2
    else:
        text = sys.stdin.read()

    try:
        result = parse_and_map(text)
    except MalformedDiff as exc:
        error(f"malformed diff: {exc}")
        return 2

    print(_result_json(result))
    return 0


def post_review_from_changes(cfg: BuildMedicConfig, message: str | None = None) -> int:
    """Diff HEAD against the PR base and post the changes as inline suggestions."""
    pr = ctx.pull_request_context(os.environ)
    diff = git.diff_against_base(pr.base_sha)
    if not diff.strip():
        notice("No changes to comment on")
        return 0

    result = parse_and_map(diff)
    for skipped in result.skipped:
        print(f"Skipping {skipped.path} ({skipped.reason})", file=sys.stderr)
    if result.is_empty:
        notice("No additions or deletions to comment on")
        return 0

    gh.create_pr_review(
        repo=pr.repo,
        pr_number=pr.number,
        body=message or cfg.review.message,
        comments=result.comments,
        max_retries=cfg.github.max_retries,
    )
    print(f"Review posted with {len(result.comments)} inline comments", file=sys.stderr)
    return 0


def open_pull_request(cfg: BuildMedicConfig, title: str | None, message: str | None) -> int:
    if not title:
        error("--title is required")
        return 2
    if not message:
        error("--message is required")
        return 2

    base = ctx.current_branch(os.environ)
    print("Creating pull request...", file=sys.stderr)
    url = gh.create_pull_request(
        base=base, title=title, body=message, max_retries=cfg.github.max_retries
    )
    print("Pull request created successfully!", file=sys.stderr)
    if url:
        print(url)
    return 0


def cmd_submit(args: argparse.Namespace, cfg: BuildMedicConfig) -> int:
    try:
        if ctx.is_pull_request_event(os.environ):
            return post_review_from_changes(cfg, args.message)
        return open_pull_request(cfg, args.title, args.message)
    except (ctx.ContextError, MalformedDiff) as exc:
        error(f"Failed to post review: {exc}")
        return 2
    except gh.GitHubError as exc:
        error(str(exc))
        return 1
    except FileNotFoundError as exc:
        error(f"{exc.filename or 'git'} not found on PATH")
        return 1
    except subprocess.CalledProcessError as exc:
        error(f"{exc.cmd[0]} command failed: {(exc.stderr or '').strip()}")
        return 1


def cmd_build(args: argparse.Namespace, cfg: BuildMedicConfig) -> int:
    command = args.run or cfg.build.command
    if not command:
        error("no build command configured (set build.command or INPUT_RUN)")
        return 2

    print(f"Command: {command}", file=sys.stderr)
    result = build_runner.run_build(command, shell=cfg.build.shell)
    if result.ok:
        notice("Build command succeeded. No fixes needed.")
        return 0

    print(build_runner.tail_lines(result.output, cfg.build.output_tail_lines))
    error(f"Build command failed with exit code {result.exit_status}")
    return result.exit_status


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="buildmedic")
    parser.add_argument("--config", default=None, help="Path to .buildmedic.yml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    comments = sub.add_parser("comments", help="Print review comments for a diff")
    comments.add_argument("--diff-file", default=None, help="Diff to read (default: stdin)")

    submit = sub.add_parser("submit", help="Post review suggestions or open a PR")
    submit.add_argument("--title", default=None, help="Title for the PR")
    submit.add_argument("--message", default=None, help="Body message for the PR or review")

    build = sub.add_parser("build", help="Run the build command")
    build.add_argument("--run", default=None, help="Override the configured build command")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main."""
    args = build_parser().parse_args(argv)

    if args.cmd == "comments":
        return cmd_comments(args)

    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        error(f"config error: {exc}")
        return 2

    if args.cmd == "submit":
        return cmd_submit(args, cfg)
    if args.cmd == "build":
        return cmd_build(args, cfg)

    print("unknown command", file=sys.stderr)  # pragma: no cover
    return 2  # pragma: no cover


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

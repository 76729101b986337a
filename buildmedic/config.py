"""Typed loader for .buildmedic.yml.

The file is optional; GitHub Action inputs (INPUT_* environment variables)
override whatever it sets.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(".buildmedic.yml")
DEFAULT_MESSAGE = "Automated review from BuildMedic with suggested fixes 🛠️"


class ConfigError(RuntimeError):
    """Invalid or unreadable configuration."""
    pass


@dataclass(frozen=True)
class ReviewConfig:
    message: str = DEFAULT_MESSAGE


@dataclass(frozen=True)
class BuildConfig:
    command: str | None = None
    shell: str = "bash"
    output_tail_lines: int = 1000


@dataclass(frozen=True)
class GitHubConfig:
    max_retries: int = 3


@dataclass(frozen=True)
class BuildMedicConfig:
    review: ReviewConfig = field(default_factory=ReviewConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _require_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    if not s:
        raise ConfigError(f"{ctx}: must be non-empty")
    return s


def _optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    return s or None


def _require_positive_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 1:
        raise ConfigError(f"{ctx}: must be >= 1")
    return value


def _env_positive_int(raw: str, ctx: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{ctx}: expected integer, got {raw!r}") from None
    return _require_positive_int(value, ctx)


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def parse_config(raw: Any) -> BuildMedicConfig:
    """Validate an already-decoded config document."""
    if raw is None:
        return BuildMedicConfig()
    cfg = _require_mapping(raw, "config")

    review = ReviewConfig()
    review_raw = cfg.get("review")
    if review_raw is not None:
        review_cfg = _require_mapping(review_raw, "config.review")
        if "message" in review_cfg:
            review = ReviewConfig(message=_require_str(review_cfg.get("message"), "config.review.message"))

    build = BuildConfig()
    build_raw = cfg.get("build")
    if build_raw is not None:
        build_cfg = _require_mapping(build_raw, "config.build")
        build = BuildConfig(
            command=_optional_str(build_cfg.get("command"), "config.build.command"),
            shell=_require_str(build_cfg.get("shell", "bash"), "config.build.shell"),
            output_tail_lines=_require_positive_int(
                build_cfg.get("output_tail_lines", 1000), "config.build.output_tail_lines"
            ),
        )

    github = GitHubConfig()
    github_raw = cfg.get("github")
    if github_raw is not None:
        github_cfg = _require_mapping(github_raw, "config.github")
        github = GitHubConfig(
            max_retries=_require_positive_int(github_cfg.get("max_retries", 3), "config.github.max_retries")
        )

    return BuildMedicConfig(review=review, build=build, github=github)


def apply_env_overrides(cfg: BuildMedicConfig, env: Mapping[str, str]) -> BuildMedicConfig:
    """Apply GitHub Action inputs on top of the file config."""
    review, build = cfg.review, cfg.build

    message = (env.get("INPUT_MESSAGE") or "").strip()
    if message:
        review = replace(review, message=message)

    command = (env.get("INPUT_RUN") or "").strip()
    if command:
        build = replace(build, command=command)

    tail = (env.get("INPUT_OUTPUT_TAIL_LINES") or "").strip()
    if tail:
        build = replace(build, output_tail_lines=_env_positive_int(tail, "INPUT_OUTPUT_TAIL_LINES"))

    return replace(cfg, review=review, build=build)


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> BuildMedicConfig:
    """Load config from `path` (or the default file when present) plus env overrides.

    An explicit path must exist; the default path is optional.
    """
    if env is None:
        env = os.environ
    if path is not None:
        cfg = parse_config(_load_yaml(path))
    elif DEFAULT_CONFIG_PATH.is_file():
        cfg = parse_config(_load_yaml(DEFAULT_CONFIG_PATH))
    else:
        cfg = BuildMedicConfig()
    return apply_env_overrides(cfg, env)

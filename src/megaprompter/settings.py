from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from megaprompter.logging import logger

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "MEGAPROMPTER_"
PROJECT_CONFIG_NAMES = (".megaprompter.yaml", ".megaprompter.yml")

DEFAULT_MAX_FILE_BYTES = 1_500_000
DEFAULT_MIN_SOURCE_FILES = 8
DEFAULT_TIMEOUT_SECONDS = 120
DEFAULT_MAX_ANALYZE_BYTES = 200_000


def env_int(name: str, default: int) -> int:
    """Read an integer knob from the environment, falling back to `.env`.

    Process environment wins over the `.env` file found from the current
    directory. Unparseable values are logged and ignored.

    Args:
        name: Variable name without the `MEGAPROMPTER_` prefix.
        default: Value used when the variable is unset or invalid.

    Returns:
        int: The configured value.
    """
    key = ENV_PREFIX + name
    values: dict[str, Any] = dict(dotenv_values(ENV_FILE)) if ENV_FILE else {}
    values.update(os.environ)
    raw = values.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", key, raw)
        return default


class ProjectConfig(BaseModel):
    """Per-project overrides read from `.megaprompter.yaml` at the project root."""

    model_config = ConfigDict(frozen=True)

    extra_allowed_exts: list[str] = Field(default_factory=list, description="Extensions to include.")
    removed_allowed_exts: list[str] = Field(default_factory=list, description="Extensions to drop.")
    extra_prune_dirs: list[str] = Field(default_factory=list, description="Directory names to prune.")
    ignore: list[str] = Field(default_factory=list, description="Extra ignore names or globs.")


def load_project_config(root: Path) -> ProjectConfig:
    """Load `.megaprompter.yaml` (or `.yml`) from `root` if present.

    A missing file yields the empty configuration; an unreadable or invalid
    file is logged and ignored so a broken config never blocks a run.

    Args:
        root: Project root directory.

    Returns:
        ProjectConfig: The parsed configuration.
    """
    for name in PROJECT_CONFIG_NAMES:
        path = root / name
        if not path.is_file():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                logger.warning("Ignoring %s: top level is not a mapping", path)
                return ProjectConfig()
            return ProjectConfig(**data)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.warning("Ignoring invalid project config %s: %s", path, e)
            return ProjectConfig()
    return ProjectConfig()


def split_ignores(values: list[str]) -> tuple[list[str], list[str]]:
    """Split `--ignore` values into plain names and glob patterns.

    A value containing `/`, `*` or `?` is a glob; anything else is a name.

    Returns:
        tuple[list[str], list[str]]: (names, globs)
    """
    names: list[str] = []
    globs: list[str] = []
    for raw in values:
        value = raw.strip()
        if not value:
            continue
        if any(ch in value for ch in "/*?"):
            globs.append(value)
        else:
            names.append(value)
    return names, globs


class CommonSettings(BaseModel):
    """Options shared by every megaprompter command."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path = Field(default_factory=Path.cwd, description="Project root.")
    force: bool = Field(default=False, description="Bypass the code-project safety check.")
    ignore: list[str] = Field(default_factory=list, description="Names or globs to ignore.")
    log_file: str = Field(default="", description="Log file path.")


class PromptSettings(CommonSettings):
    """Configuration for `megaprompt`."""

    max_file_bytes: int = Field(
        default_factory=lambda: env_int("MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
        description="Skip files larger than this many bytes.",
    )
    dry_run: bool = Field(default=False, description="List files without writing.")
    show_summary: bool = Field(default=False, description="Print the detection summary.")
    no_clipboard: bool = Field(default=False, description="Do not copy to the clipboard.")


class ArtifactSettings(CommonSettings):
    """Output options shared by the artifact-producing commands."""

    timeout_seconds: int = Field(
        default_factory=lambda: env_int("TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        description="Per-tool timeout in seconds.",
    )
    xml_out: str = Field(default="", description="XML output path (stdout if empty).")
    json_out: str = Field(default="", description="JSON output path.")
    prompt_out: str = Field(default="", description="Prompt output path.")
    show_summary: bool = Field(default=True, description="Print a summary to stderr.")
    artifact_hidden: bool = Field(default=False, description="Prefix the artifact name with a dot.")
    artifact_dir: str = Field(default="", description="Directory for the artifact file.")
    include_tests: bool = Field(default=False, description="Also cover test sources.")


class DiagnoseSettings(ArtifactSettings):
    """Configuration for `megadiagnose`."""


class TestPlanSettings(ArtifactSettings):
    """Configuration for `megatest`."""

    __test__ = False

    limit_subjects: int = Field(default=500, description="Maximum subjects to analyze.")
    levels: str = Field(default="", description="Comma list of test levels.")
    max_file_bytes: int = Field(
        default_factory=lambda: env_int("MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
        description="Skip files larger than this many bytes.",
    )
    max_analyze_bytes: int = Field(
        default_factory=lambda: env_int("MAX_ANALYZE_BYTES", DEFAULT_MAX_ANALYZE_BYTES),
        description="Read at most this many bytes per file.",
    )
    regression_since: str = Field(default="", description="Git ref to diff against HEAD.")
    regression_range: str = Field(default="", description="Explicit git diff range.")
    no_regression: bool = Field(default=False, description="Disable regression hints.")


class DocSettings(ArtifactSettings):
    """Configuration for `megadoc`."""

    create: bool = Field(default=False, description="Build documentation for the project.")
    get: list[str] = Field(default_factory=list, description="Paths or URLs to fetch.")
    max_file_bytes: int = Field(
        default_factory=lambda: env_int("MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
        description="Skip files larger than this many bytes.",
    )
    max_analyze_bytes: int = Field(
        default_factory=lambda: env_int("MAX_ANALYZE_BYTES", DEFAULT_MAX_ANALYZE_BYTES),
        description="Read at most this many bytes per file.",
    )
    tree_depth: int = Field(default=6, description="Directory tree depth.")
    crawl_depth: int = Field(default=1, description="Link depth for URL crawling.")
    allow_domain: list[str] = Field(default_factory=list, description="Extra crawlable domains.")


def min_source_files() -> int:
    """Source-file threshold used by the code-project detector."""
    return env_int("MIN_SOURCE_FILES", DEFAULT_MIN_SOURCE_FILES)

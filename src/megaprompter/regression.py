from __future__ import annotations

from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from megaprompter.logging import logger
from megaprompter.process import run_command, which

if TYPE_CHECKING:
    from pathlib import Path

GIT_TIMEOUT_SECONDS = 60


class RegressionMode(StrEnum):
    DISABLED = auto()
    SINCE = auto()
    RANGE = auto()


class RegressionConfig(BaseModel):
    """Which git changes should trigger regression scenarios.

    Attributes:
        mode: `disabled`, `since` (diff `ref..HEAD`) or `range` (diff an explicit range).
        ref: The git ref or range; unused when disabled.
    """

    model_config = ConfigDict(frozen=True)

    mode: RegressionMode = RegressionMode.DISABLED
    ref: str = ""

    @classmethod
    def from_options(cls, *, no_regression: bool, since: str, range_: str) -> RegressionConfig | None:
        """Build the config from CLI flags; None when none of them was given.

        `--no-regression` wins, then `--regression-range`, then `--regression-since`.
        """
        if no_regression:
            return cls(mode=RegressionMode.DISABLED)
        if range_.strip():
            return cls(mode=RegressionMode.RANGE, ref=range_.strip())
        if since.strip():
            return cls(mode=RegressionMode.SINCE, ref=since.strip())
        return None

    @property
    def description(self) -> str:
        if self.mode == RegressionMode.SINCE:
            return f"since {self.ref}"
        if self.mode == RegressionMode.RANGE:
            return self.ref
        return "disabled"

    def diff_args(self) -> list[str] | None:
        if self.mode == RegressionMode.SINCE:
            return ["diff", "--name-only", "--relative", f"{self.ref}..HEAD"]
        if self.mode == RegressionMode.RANGE:
            return ["diff", "--name-only", "--relative", self.ref]
        return None


def changed_files(root: Path, config: RegressionConfig | None) -> list[str]:
    """Root-relative POSIX paths changed according to `config`.

    Missing git, a failing command (bad ref, not a repository) or a disabled
    config all yield an empty list; failures are logged as warnings.

    Args:
        root (Path): repository directory to run git in
        config (RegressionConfig | None): regression selection

    Returns:
        list[str]: changed paths as printed by `git diff --name-only`
    """
    args = config.diff_args() if config is not None else None
    if args is None:
        return []
    git = which("git")
    if git is None:
        logger.warning("git not found; regression detection disabled")
        return []
    result = run_command(git, args, root, GIT_TIMEOUT_SECONDS)
    if result.exit_code != 0:
        if result.stderr.strip():
            logger.warning("git %s failed: %s", " ".join(args), result.stderr.strip())
        return []
    return [line.strip().replace("\\", "/") for line in result.stdout.splitlines() if line.strip()]

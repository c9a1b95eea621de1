from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from megaprompter import regression
from megaprompter.process import ExecResult
from megaprompter.regression import RegressionConfig, RegressionMode, changed_files

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture


@pytest.mark.unit
@pytest.mark.parametrize(
    ("no_regression", "since", "range_", "expected"),
    [
        (True, "main", "a..b", RegressionConfig(mode=RegressionMode.DISABLED)),
        (False, "main", " a..b ", RegressionConfig(mode=RegressionMode.RANGE, ref="a..b")),
        (False, "origin/main", "", RegressionConfig(mode=RegressionMode.SINCE, ref="origin/main")),
        (False, " ", "", None),
    ],
)
def test_from_options_precedence(
    no_regression: bool,  # noqa: FBT001
    since: str,
    range_: str,
    expected: RegressionConfig | None,
) -> None:
    assert RegressionConfig.from_options(no_regression=no_regression, since=since, range_=range_) == expected


@pytest.mark.unit
def test_diff_args_and_description() -> None:
    since = RegressionConfig(mode=RegressionMode.SINCE, ref="v1.0")
    rng = RegressionConfig(mode=RegressionMode.RANGE, ref="a...b")

    assert since.diff_args() == ["diff", "--name-only", "--relative", "v1.0..HEAD"]
    assert since.description == "since v1.0"
    assert rng.diff_args() == ["diff", "--name-only", "--relative", "a...b"]
    assert rng.description == "a...b"
    assert RegressionConfig().diff_args() is None
    assert RegressionConfig().description == "disabled"


@pytest.mark.unit
def test_disabled_or_missing_config_never_runs_git(tmp_path: Path, mocker: MockerFixture) -> None:
    run_command = mocker.patch.object(regression, "run_command")

    assert changed_files(tmp_path, None) == []
    assert changed_files(tmp_path, RegressionConfig()) == []
    run_command.assert_not_called()


@pytest.mark.unit
def test_missing_git_yields_no_changes(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(regression, "which", return_value=None)

    assert changed_files(tmp_path, RegressionConfig(mode=RegressionMode.SINCE, ref="main")) == []


@pytest.mark.unit
def test_changed_paths_are_normalized(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(regression, "which", return_value="/usr/bin/git")
    run_command = mocker.patch.object(
        regression,
        "run_command",
        return_value=ExecResult(exit_code=0, stdout="src/a.py\n\nsrc\\win\\b.py\n"),
    )

    out = changed_files(tmp_path, RegressionConfig(mode=RegressionMode.RANGE, ref="HEAD~2..HEAD"))

    assert out == ["src/a.py", "src/win/b.py"]
    run_command.assert_called_once_with(
        "/usr/bin/git",
        ["diff", "--name-only", "--relative", "HEAD~2..HEAD"],
        tmp_path,
        regression.GIT_TIMEOUT_SECONDS,
    )


@pytest.mark.unit
def test_git_failure_yields_no_changes(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(regression, "which", return_value="/usr/bin/git")
    mocker.patch.object(
        regression,
        "run_command",
        return_value=ExecResult(exit_code=128, stderr="fatal: not a git repository\n"),
    )

    assert changed_files(tmp_path, RegressionConfig(mode=RegressionMode.SINCE, ref="main")) == []

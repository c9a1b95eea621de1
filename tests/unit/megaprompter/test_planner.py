from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from megaprompter import planner as planner_module
from megaprompter.planner import TestPlanner, detect_frameworks, generate_test_prompt
from megaprompter.testplan import LevelSet, TestLevel

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

UTIL_TS = """\
export function formatDate(d: Date) {
  return d.toISOString();
}

export async function syncUsers(url: string) {
  if (!url) {
    throw new Error("no url");
  }
  return await fetch(url);
}
"""


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def ts_project(tmp_path: Path) -> list[Path]:
    return [
        _write(tmp_path, "package.json", '{"devDependencies": {"jest": "^29.0.0"}}'),
        _write(tmp_path, "src/util.ts", UTIL_TS),
        _write(tmp_path, "__tests__/util.test.ts", "formatDate(x)\n" * 12 + "// empty and invalid dates\n"),
    ]


@pytest.mark.unit
def test_plan_skips_test_files_and_done_subjects(tmp_path: Path, ts_project: list[Path]) -> None:
    plan = TestPlanner(tmp_path).build_plan(ts_project)

    assert [lp.name for lp in plan.languages] == ["typescript"]
    ts = plan.languages[0]
    assert ts.frameworks == ["jest"]
    assert ts.test_files_found == 1
    by_name = {sp.subject.name: sp for sp in ts.subjects}
    assert set(by_name) == {"formatDate", "syncUsers"}
    assert all(sp.subject.path == str(tmp_path / "src" / "util.ts") for sp in ts.subjects)

    done = by_name["formatDate"]
    assert done.coverage.status == "DONE"
    assert done.scenarios == []

    todo = by_name["syncUsers"]
    assert todo.coverage.status == "MISSING"
    assert [sc.level for sc in todo.scenarios] == [TestLevel.UNIT, TestLevel.INTEGRATION]

    assert plan.summary.total_languages == 1
    assert plan.summary.total_subjects == 2
    assert plan.summary.total_scenarios == 2


@pytest.mark.unit
def test_changed_files_get_regression_scenarios(
    tmp_path: Path,
    ts_project: list[Path],
    mocker: MockerFixture,
) -> None:
    mocker.patch.object(planner_module, "changed_files", return_value=["src/util.ts"])

    plan = TestPlanner(tmp_path).build_plan(ts_project, LevelSet.parse("regression"))

    levels = [sc.level for sp in plan.languages[0].subjects for sc in sp.scenarios]
    assert levels == [TestLevel.REGRESSION]


@pytest.mark.unit
def test_ignored_paths_are_not_planned(tmp_path: Path, ts_project: list[Path]) -> None:
    plan = TestPlanner(tmp_path, ignore_names=["src"]).build_plan(ts_project)

    assert plan.languages == []
    assert plan.summary.total_subjects == 0


@pytest.mark.unit
def test_subject_limit_has_a_floor(tmp_path: Path) -> None:
    assert TestPlanner(tmp_path, limit_subjects=3).limit_subjects == planner_module.MIN_SUBJECT_LIMIT
    assert TestPlanner(tmp_path, limit_subjects=800).limit_subjects == 800


@pytest.mark.unit
def test_subject_limit_truncates(tmp_path: Path) -> None:
    body = "".join(f"def f{i}():\n    return {i}\n\n" for i in range(60))
    files = [_write(tmp_path, "a.py", body), _write(tmp_path, "b.py", "def late():\n    pass\n")]

    plan = TestPlanner(tmp_path, limit_subjects=10).build_plan(files)

    names = [sp.subject.name for sp in plan.languages[0].subjects]
    assert len(names) == planner_module.MIN_SUBJECT_LIMIT
    assert "late" not in names


@pytest.mark.unit
def test_detect_frameworks(tmp_path: Path) -> None:
    _write(tmp_path, "pyproject.toml", "[project.optional-dependencies]\ntest = ['pytest']\n")
    _write(tmp_path, "build.gradle.kts", "")
    _write(tmp_path, "lakefile.lean", "")

    found = detect_frameworks(tmp_path)

    assert found["python"] == ["pytest"]
    assert found["go"] == ["go test"]
    assert found["kotlin"] == ["JUnit"]
    assert found["lean"] == ["lake build"]
    assert "typescript" not in found
    assert "rust" not in found


@pytest.mark.unit
def test_prompt_lists_risky_subjects_and_coverage(tmp_path: Path, ts_project: list[Path]) -> None:
    levels = LevelSet.parse("unit,integration")
    plan = TestPlanner(tmp_path).build_plan(ts_project, levels)

    prompt = generate_test_prompt(plan, tmp_path, levels)

    assert prompt.startswith("You are an expert test developer.")
    assert "- Languages: typescript" in prompt
    assert "- Subjects: 2, Scenarios: 2" in prompt
    assert "- Write unit, integration tests." in prompt
    assert "- typescript (frameworks: jest)" in prompt
    assert "function formatDate @ src/util.ts" in prompt
    assert "[coverage DONE]" in prompt
    assert "     - [integration] Integration tests for syncUsers" in prompt
    assert str(tmp_path) not in prompt

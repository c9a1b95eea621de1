from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from megaprompter.detection import ProjectDetector
from megaprompter.exceptions import NotADirectoryTargetError

if TYPE_CHECKING:
    from pathlib import Path


def _write(root: Path, rel: str, text: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
def test_marker_makes_a_code_project(tmp_path: Path) -> None:
    _write(tmp_path, "go.mod", "module example.com/x\n")

    profile = ProjectDetector().detect(tmp_path)

    assert profile.is_code_project
    assert "go" in profile.languages
    assert "go.mod" in profile.markers
    assert "go marker: go.mod" in profile.why


@pytest.mark.unit
def test_glob_marker_is_detected(tmp_path: Path) -> None:
    _write(tmp_path, "App.csproj", "<Project/>")

    profile = ProjectDetector().detect(tmp_path)

    assert profile.is_code_project
    assert "csharp" in profile.languages
    assert "App.csproj" in profile.markers


@pytest.mark.unit
def test_few_sources_without_marker_is_not_a_project(tmp_path: Path) -> None:
    for i in range(3):
        _write(tmp_path, f"script{i}.py", "print(1)\n")
    _write(tmp_path, "notes.txt", "hello\n")

    profile = ProjectDetector(min_source_files=8).detect(tmp_path)

    assert not profile.is_code_project
    assert "python" in profile.languages
    assert profile.why == ["source file count: 3"]


@pytest.mark.unit
def test_enough_sources_without_marker_is_a_project(tmp_path: Path) -> None:
    for i in range(4):
        _write(tmp_path, f"pkg/mod{i}.py", "x = 1\n")

    profile = ProjectDetector(min_source_files=4).detect(tmp_path)

    assert profile.is_code_project
    assert profile.markers == frozenset()


@pytest.mark.unit
def test_hidden_sources_are_not_counted(tmp_path: Path) -> None:
    for i in range(5):
        _write(tmp_path, f".hidden/mod{i}.py", "x = 1\n")

    profile = ProjectDetector(min_source_files=2).detect(tmp_path)

    assert not profile.is_code_project
    assert "python" not in profile.languages


@pytest.mark.unit
def test_typescript_and_javascript_flags(tmp_path: Path) -> None:
    _write(tmp_path, "tsconfig.json", "{}")
    _write(tmp_path, "package.json", "{}")

    profile = ProjectDetector().detect(tmp_path)

    assert profile.uses_typescript
    assert profile.uses_javascript


@pytest.mark.unit
def test_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryTargetError):
        ProjectDetector().detect(tmp_path / "nope")

    file_path = _write(tmp_path, "file.txt", "x")
    with pytest.raises(NotADirectoryTargetError):
        ProjectDetector().detect(file_path)

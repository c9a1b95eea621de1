from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from megaprompter import settings as settings_module
from megaprompter.settings import (
    DEFAULT_MAX_FILE_BYTES,
    DocSettings,
    PromptSettings,
    env_int,
    load_project_config,
    split_ignores,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_prompt_settings_defaults(monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture) -> None:
    monkeypatch.delenv("MEGAPROMPTER_MAX_FILE_BYTES", raising=False)
    mocker.patch.object(settings_module, "ENV_FILE", "")

    settings = PromptSettings()

    assert settings.path.resolve() == Path.cwd().resolve()
    assert settings.max_file_bytes == DEFAULT_MAX_FILE_BYTES
    assert settings.dry_run is False
    assert settings.ignore == []


@pytest.mark.unit
def test_doc_settings_defaults() -> None:
    settings = DocSettings()

    assert settings.tree_depth == 6
    assert settings.crawl_depth == 1
    assert settings.show_summary is True
    assert settings.get == []


@pytest.mark.unit
def test_env_int_prefers_process_env_over_dotenv(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    mocker: MockerFixture,
) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("MEGAPROMPTER_TIMEOUT_SECONDS=45\nMEGAPROMPTER_MIN_SOURCE_FILES=3\n", encoding="utf-8")
    mocker.patch.object(settings_module, "ENV_FILE", str(env_file))
    monkeypatch.setenv("MEGAPROMPTER_TIMEOUT_SECONDS", "90")
    monkeypatch.delenv("MEGAPROMPTER_MIN_SOURCE_FILES", raising=False)

    assert env_int("TIMEOUT_SECONDS", 120) == 90
    assert env_int("MIN_SOURCE_FILES", 8) == 3
    assert env_int("UNSET_KNOB", 7) == 7


@pytest.mark.unit
def test_env_int_ignores_garbage(monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture) -> None:
    mocker.patch.object(settings_module, "ENV_FILE", "")
    monkeypatch.setenv("MEGAPROMPTER_MAX_ANALYZE_BYTES", "lots")

    assert env_int("MAX_ANALYZE_BYTES", 200_000) == 200_000


@pytest.mark.unit
def test_load_project_config_reads_yaml(tmp_path: Path) -> None:
    (tmp_path / ".megaprompter.yaml").write_text(
        "extra_allowed_exts: [.proto]\nextra_prune_dirs: [fixtures]\nignore:\n  - docs/generated/**\n",
        encoding="utf-8",
    )

    config = load_project_config(tmp_path)

    assert config.extra_allowed_exts == [".proto"]
    assert config.extra_prune_dirs == ["fixtures"]
    assert config.ignore == ["docs/generated/**"]


@pytest.mark.unit
def test_load_project_config_tolerates_missing_and_invalid(tmp_path: Path) -> None:
    assert load_project_config(tmp_path).ignore == []

    (tmp_path / ".megaprompter.yml").write_text("- just\n- a list\n", encoding="utf-8")
    assert load_project_config(tmp_path).extra_allowed_exts == []

    (tmp_path / ".megaprompter.yaml").write_text("ignore: [unclosed\n", encoding="utf-8")
    assert load_project_config(tmp_path).ignore == []


@pytest.mark.unit
def test_split_ignores_names_vs_globs() -> None:
    names, globs = split_ignores(["data", " docs/generated/** ", "*.log", "", "tmp?", "build"])

    assert names == ["data", "build"]
    assert globs == ["docs/generated/**", "*.log", "tmp?"]

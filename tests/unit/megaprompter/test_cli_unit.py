from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from megaprompter import __version__, cli
from megaprompter.diagnostics import Diagnostic, DiagnosticsReport, LanguageDiagnostics, Severity

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _python_project(root: Path) -> Path:
    (root / "src").mkdir(parents=True, exist_ok=True)
    (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    return root


@pytest.mark.unit
def test_parse_args_reads_flags_and_repeated_ignores() -> None:
    settings = cli.parse_args(["proj", "--dry-run", "-I", "data", "--ignore", "docs/**", "--max-file-bytes", "100"])

    assert settings.path == Path("proj")
    assert settings.dry_run is True
    assert settings.show_summary is False
    assert settings.ignore == ["data", "docs/**"]
    assert settings.max_file_bytes == 100


@pytest.mark.unit
def test_parse_args_keeps_environment_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEGAPROMPTER_MAX_FILE_BYTES", "4242")

    settings = cli.parse_args([])

    assert settings.path == Path()
    assert settings.max_file_bytes == 4242


@pytest.mark.unit
def test_parse_test_args_defaults_and_negated_summary() -> None:
    settings = cli.parse_test_args(["--no-show-summary", "--levels", "unit,e2e", "--regression-since", "main"])

    assert settings.show_summary is False
    assert settings.levels == "unit,e2e"
    assert settings.limit_subjects == 500
    assert settings.regression_since == "main"
    assert settings.no_regression is False


@pytest.mark.unit
def test_parse_doc_args_collects_uris_and_domains() -> None:
    settings = cli.parse_doc_args(
        ["--get", "https://a.example/docs", "./docs", "--crawl-depth", "2", "--allow-domain", "a.example"],
    )

    assert settings.get == ["https://a.example/docs", "./docs"]
    assert settings.create is False
    assert settings.crawl_depth == 2
    assert settings.allow_domain == ["a.example"]
    assert settings.tree_depth == 6


@pytest.mark.unit
def test_parse_diagnose_args_timeout_and_tests() -> None:
    settings = cli.parse_diagnose_args(["--timeout-seconds", "30", "--include-tests", "--artifact-hidden"])

    assert settings.timeout_seconds == 30
    assert settings.include_tests is True
    assert settings.artifact_hidden is True


@pytest.mark.unit
def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_doc_args(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
@pytest.mark.parametrize(
    ("argv", "message"),
    [
        ([], "Specify --create to analyze local code or --get <URI> to fetch docs."),
        (["--create", "--get", "x"], "Use either --create or --get in a single run, not both."),
    ],
)
def test_doc_mode_must_be_exactly_one(
    argv: list[str],
    message: str,
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert cli.doc_main(argv) == 1
    assert message in capsys.readouterr().err


@pytest.mark.unit
def test_missing_directory_is_an_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main([str(tmp_path / "nope")]) == 1
    assert "Error: path is not a directory:" in capsys.readouterr().err


@pytest.mark.unit
def test_safety_stop_for_non_code_directories(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "notes.txt").write_text("hello\n", encoding="utf-8")

    assert cli.main([str(tmp_path), "--dry-run"]) == 1
    err = capsys.readouterr().err
    assert "Safety stop: This directory does not appear to be a code project." in err
    assert "source file count: 0" in err
    assert "If you are certain, re-run with --force." in err

    assert cli.main([str(tmp_path), "--dry-run", "--force"]) == 0


@pytest.mark.unit
def test_dry_run_lists_files_without_writing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _python_project(tmp_path)

    assert cli.main([str(root), "--dry-run"]) == 0

    out = capsys.readouterr().out
    assert f"Root: {root.resolve()}" in out
    assert "Detected languages: python" in out
    assert "  - python marker: pyproject.toml" in out
    assert "  - src/app.py" in out
    assert not list(root.glob(".MEGAPROMPT_*"))


@pytest.mark.unit
def test_megaprompt_written_and_copied(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = _python_project(tmp_path)
    copy = mocker.patch.object(cli, "copy_to_clipboard", return_value=True)

    assert cli.main([str(root)]) == 0

    written = list(root.resolve().glob(".MEGAPROMPT_*"))
    assert len(written) == 1
    content = written[0].read_text(encoding="utf-8")
    assert "<src/app.py>\n<![CDATA[\nprint('hi')\n\n]]>\n</src/app.py>" in content
    copy.assert_called_once_with(content)
    out = capsys.readouterr().out
    assert f"Wrote: {written[0]}" in out
    assert "Megaprompt copied to clipboard." in out


@pytest.mark.unit
def test_megaprompt_no_clipboard(tmp_path: Path, mocker: MockerFixture) -> None:
    root = _python_project(tmp_path)
    copy = mocker.patch.object(cli, "copy_to_clipboard")

    assert cli.main([str(root), "--no-clipboard"]) == 0

    copy.assert_not_called()


@pytest.mark.unit
def test_diagnose_writes_outputs_and_artifact(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = _python_project(tmp_path / "proj")
    report = DiagnosticsReport(
        generated_at="2024-01-01T00:00:00Z",
        languages=[
            LanguageDiagnostics(
                name="python",
                tool="python -m py_compile",
                issues=[
                    Diagnostic(
                        tool="python -m py_compile",
                        language="python",
                        file=str(root / "src" / "app.py"),
                        line=1,
                        severity=Severity.ERROR,
                        message="invalid syntax",
                    ),
                ],
            ),
        ],
    )
    runner_cls = mocker.patch.object(cli, "DiagnosticsRunner")
    runner_cls.return_value.run.return_value = report
    xml_out = tmp_path / "diag.xml"
    json_out = tmp_path / "diag.json"

    code = cli.diagnose_main(
        [str(root), "--xml-out", str(xml_out), "--json-out", str(json_out), "--timeout-seconds", "15"],
    )

    assert code == 0
    assert runner_cls.call_args.args[:2] == (root.resolve(), 15)
    assert xml_out.read_text(encoding="utf-8") == report.to_xml()
    assert json_out.read_text(encoding="utf-8") == report.to_json()
    artifacts = sorted(p.name for p in root.iterdir() if p.name.startswith("MEGADIAG_"))
    assert len(artifacts) == 2
    assert "MEGADIAG_latest" in artifacts
    envelope = (root / "MEGADIAG_latest").read_text(encoding="utf-8")
    assert envelope.startswith('<diagnostics_artifact generatedAt="2024-01-01T00:00:00Z">')
    assert "<fix_prompt><![CDATA[" in envelope
    err = capsys.readouterr().err
    assert "Wrote diagnostics artifact:" in err
    assert "Fix prompt (first lines):" in err
    assert " - python (python -m py_compile): 1 errors, 0 warnings" in err
    assert "Total issues: 1" in err


@pytest.mark.unit
def test_artifact_failure_does_not_fail_the_run(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = _python_project(tmp_path / "proj")
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    mocker.patch.object(cli, "DiagnosticsRunner").return_value.run.return_value = DiagnosticsReport()

    code = cli.diagnose_main([str(root), "--artifact-dir", str(blocker), "--no-show-summary"])

    assert code == 0
    captured = capsys.readouterr()
    assert "Failed to write diagnostics artifact:" in captured.err
    assert captured.out.startswith("<diagnostics")

"""
megaprompter command line tools.

Four commands share one project pipeline (detect, safety check, scan):

1) **megaprompt** concatenates every eligible source/config file into a
   pseudo-XML `.MEGAPROMPT_<ts>` file and copies it to the clipboard.
2) **megadiagnose** runs the compilers/linters of each detected stack and
   writes a `MEGADIAG_<ts>` artifact (XML, JSON and a fix prompt).
3) **megatest** builds a coverage-aware test plan and writes `MEGATEST_<ts>`.
4) **megadoc** documents the codebase (`--create`) or fetches docs
   (`--get URI ...`) into `MEGADOC_<ts>`.

Usage
-----
    megaprompt . --dry-run
    megadiagnose . --include-tests --prompt-out fix.txt
    megatest . --levels unit,integration --regression-since origin/main
    megadoc --get https://example.com/docs --crawl-depth 2
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from megaprompter import __version__
from megaprompter.config import ARTIFACT_PREFIXES
from megaprompter.detection import ProjectDetector
from megaprompter.diagnostics import generate_fix_prompt
from megaprompter.doc_fetcher import DocFetcher
from megaprompter.documentation import DocMode, MegaDocReport, build_dir_tree, generate_doc_prompt, guess_purpose
from megaprompter.exceptions import (
    ArtifactWriteError,
    ConflictingModeError,
    MegaprompterError,
    NotACodeProjectError,
    NotADirectoryTargetError,
)
from megaprompter.file_manipulation import relpath
from megaprompter.import_graph import build_import_graph, external_summary
from megaprompter.logging import logger, setup_logging
from megaprompter.output_construction import (
    build_artifact,
    build_megaprompt,
    preview_lines,
    write_artifact,
    write_megaprompt,
)
from megaprompter.planner import TestPlanner, generate_test_prompt
from megaprompter.process import copy_to_clipboard
from megaprompter.regression import RegressionConfig
from megaprompter.rules import build_rules
from megaprompter.runner import DiagnosticsRunner
from megaprompter.scanner import ProjectScanner
from megaprompter.settings import (
    ArtifactSettings,
    CommonSettings,
    DiagnoseSettings,
    DocSettings,
    PromptSettings,
    TestPlanSettings,
    load_project_config,
    min_source_files,
    split_ignores,
)
from megaprompter.testplan import LevelSet

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from megaprompter.detection import ProjectProfile

PROMPT_PREVIEW_LINES = 12


# --------------------------------------------------------------------------- #
# Argument parsing
# --------------------------------------------------------------------------- #


def _settings(cls: type[CommonSettings], args: argparse.Namespace) -> Any:  # noqa: ANN401
    # Unset knobs keep the environment-backed model defaults.
    return cls(**{k: v for k, v in vars(args).items() if v is not None})


def _common_parser(description: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=description)
    p.add_argument("path", nargs="?", default=".", help="Target directory (default: current directory).")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--force",
        action="store_true",
        help="Run even if the directory does not look like a code project.",
    )
    p.add_argument(
        "-I",
        "--ignore",
        action="append",
        default=[],
        help="Directory name or glob path to ignore (repeatable), e.g. data or docs/generated/**.",
    )
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    return p


def _add_max_file_bytes(p: argparse.ArgumentParser) -> None:
    p.add_argument("--max-file-bytes", type=int, default=None, help="Skip files larger than this.")


def _add_max_analyze_bytes(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--max-analyze-bytes",
        type=int,
        default=None,
        help="Analyze at most this many bytes of each file.",
    )


def _add_artifact_args(p: argparse.ArgumentParser, prefix: str) -> None:
    p.add_argument("--xml-out", type=str, default="", help="Write XML to this file (default: stdout).")
    p.add_argument("--json-out", type=str, default="", help="Write JSON to this file.")
    p.add_argument("--prompt-out", type=str, default="", help="Write the prompt text to this file.")
    p.add_argument(
        "--show-summary",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Print a brief summary to stderr.",
    )
    p.add_argument(
        "--artifact-hidden",
        action="store_true",
        help=f"Write the artifact as a hidden dotfile (.{prefix}_*).",
    )
    p.add_argument(
        "--artifact-dir",
        type=str,
        default="",
        help=f"Directory where the {prefix}_* artifact is written.",
    )


def parse_args(argv: Sequence[str] | None = None) -> PromptSettings:
    p = _common_parser("Concatenate a project's source and config files into a megaprompt.")
    _add_max_file_bytes(p)
    p.add_argument("--dry-run", action="store_true", help="List the files without writing anything.")
    p.add_argument("--show-summary", action="store_true", help="Print detection details and the file list.")
    p.add_argument("--no-clipboard", action="store_true", help="Do not copy the result to the clipboard.")
    return _settings(PromptSettings, p.parse_args(argv))


def parse_diagnose_args(argv: Sequence[str] | None = None) -> DiagnoseSettings:
    p = _common_parser("Run per-language compilers/linters and emit diagnostics plus a fix prompt.")
    _add_artifact_args(p, ARTIFACT_PREFIXES["diagnostics"])
    p.add_argument("--timeout-seconds", type=int, default=None, help="Per-tool timeout in seconds.")
    p.add_argument("--include-tests", action="store_true", help="Also check test sources.")
    return _settings(DiagnoseSettings, p.parse_args(argv))


def parse_test_args(argv: Sequence[str] | None = None) -> TestPlanSettings:
    p = _common_parser("Build a heuristic, coverage-aware test plan and a test-writing prompt.")
    _add_artifact_args(p, ARTIFACT_PREFIXES["testplan"])
    p.add_argument("--limit-subjects", type=int, default=500, help="Maximum subjects to analyze.")
    p.add_argument(
        "--levels",
        type=str,
        default="",
        help="Comma list of levels: smoke,unit,integration,e2e,regression (default: all).",
    )
    _add_max_file_bytes(p)
    _add_max_analyze_bytes(p)
    p.add_argument("--regression-since", type=str, default="", help="Git ref to diff against HEAD.")
    p.add_argument("--regression-range", type=str, default="", help="Explicit git range, e.g. A..B.")
    p.add_argument("--no-regression", action="store_true", help="Disable regression hints.")
    return _settings(TestPlanSettings, p.parse_args(argv))


def parse_doc_args(argv: Sequence[str] | None = None) -> DocSettings:
    p = _common_parser("Document a codebase (tree, imports, purpose) or fetch docs from URIs.")
    _add_artifact_args(p, ARTIFACT_PREFIXES["documentation"])
    p.add_argument("--create", action="store_true", help="Document the local codebase at PATH.")
    p.add_argument(
        "--get",
        nargs="+",
        default=[],
        metavar="URI",
        help="Fetch docs from http(s)://, file:// or filesystem paths.",
    )
    _add_max_file_bytes(p)
    _add_max_analyze_bytes(p)
    p.add_argument("--tree-depth", type=int, default=6, help="Directory tree depth.")
    p.add_argument("--crawl-depth", type=int, default=1, help="Link depth for --get (1: the URI only).")
    p.add_argument(
        "--allow-domain",
        action="append",
        default=[],
        help="Only crawl these domains (repeatable).",
    )
    return _settings(DocSettings, p.parse_args(argv))


# --------------------------------------------------------------------------- #
# Shared pipeline
# --------------------------------------------------------------------------- #


def resolve_root(path: Path | str) -> Path:
    root = Path(path).expanduser().resolve()
    if not root.is_dir():
        raise NotADirectoryTargetError(path=root, message=f"Error: path is not a directory: {root}")
    return root


def detect_project(root: Path, *, force: bool) -> ProjectProfile:
    """Detect the project and enforce the code-project safety check.

    Raises:
        NotACodeProjectError: if the directory does not look like code and
            `force` is not set.
    """
    profile = ProjectDetector(min_source_files()).detect(root)
    if not profile.is_code_project and not force:
        reason = "".join("\n" + line for line in profile.why)
        raise NotACodeProjectError(
            path=root,
            evidence=profile.why,
            message=(
                "Safety stop: This directory does not appear to be a code project."
                f"{reason}\nIf you are certain, re-run with --force."
            ),
        )
    return profile


def scan_project(
    profile: ProjectProfile,
    settings: CommonSettings,
    max_file_bytes: int,
) -> tuple[list[Path], list[str], list[str]]:
    """Collect eligible files, honoring `--ignore` and `.megaprompter.yaml`.

    Returns:
        tuple[list[Path], list[str], list[str]]: (files, ignore names, ignore globs)
    """
    project = load_project_config(profile.root)
    names, globs = split_ignores([*settings.ignore, *project.ignore])
    scanner = ProjectScanner(
        profile,
        max_file_bytes,
        extra_prune_dir_names=names,
        extra_prune_globs=globs,
        rules=build_rules(profile.languages, project),
    )
    return scanner.collect_files(), names, globs


def artifact_directory(settings: ArtifactSettings, default: Path) -> Path:
    if settings.artifact_dir.strip():
        return Path(settings.artifact_dir).expanduser().resolve()
    return default


def emit_artifact(
    directory: Path,
    kind: str,
    tag: str,
    generated_at: str,
    sections: Sequence[tuple[str, str]],
    *,
    hidden: bool,
) -> Path | None:
    """Write the envelope artifact; failures are logged and reported, not raised."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = write_artifact(
            directory,
            ARTIFACT_PREFIXES[kind],
            build_artifact(tag, generated_at, sections),
            hidden=hidden,
        )
    except ArtifactWriteError as e:
        logger.error("Failed to write %s artifact %s: %s", kind, e.path, e.reason)
        print(f"Failed to write {kind} artifact: {e.reason or e}", file=sys.stderr)
        return None
    except OSError as e:
        logger.error("Failed to create artifact directory %s: %s", directory, e)
        print(f"Failed to write {kind} artifact: {e}", file=sys.stderr)
        return None
    print(f"Wrote {kind} artifact: {path}", file=sys.stderr)
    return path


def emit_outputs(settings: ArtifactSettings, xml: str, json: str, prompt: str, label: str) -> None:
    """XML to `--xml-out` or stdout, JSON to `--json-out`, prompt to `--prompt-out` or a preview."""
    if settings.xml_out:
        Path(settings.xml_out).write_text(xml, encoding="utf-8")
    else:
        sys.stdout.write(xml + "\n")
    if settings.json_out:
        Path(settings.json_out).write_text(json, encoding="utf-8")
    if settings.prompt_out:
        Path(settings.prompt_out).write_text(prompt, encoding="utf-8")
    else:
        print(f"{label} (first lines):", file=sys.stderr)
        print(preview_lines(prompt, PROMPT_PREVIEW_LINES), file=sys.stderr)


def _run(settings: CommonSettings, body: Callable[[], int]) -> int:
    if settings.log_file:
        setup_logging(settings.log_file)
    try:
        return body()
    except MegaprompterError as e:
        logger.error("%s", e)
        print(str(e), file=sys.stderr)
        return 1
    except OSError as e:
        logger.error("I/O error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --------------------------------------------------------------------------- #
# megaprompt
# --------------------------------------------------------------------------- #


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    return _run(settings, lambda: run_megaprompt(settings))


def run_megaprompt(settings: PromptSettings) -> int:
    root = resolve_root(settings.path)
    profile = detect_project(root, force=settings.force)
    files, _, _ = scan_project(profile, settings, settings.max_file_bytes)

    if settings.show_summary or settings.dry_run:
        langs = ", ".join(sorted(profile.languages)) or "(none)"
        print(f"Root: {root}")
        print(f"Detected languages: {langs}")
        if profile.why:
            print("Evidence:\n  - " + "\n  - ".join(profile.why))
        print(f"Files to include ({len(files)}):")
        for f in files:
            print(f"  - {relpath(f, root)}")
    if settings.dry_run:
        return 0

    content = build_megaprompt(root, files)
    out = write_megaprompt(root, content)
    print(f"Wrote: {out}")
    if settings.no_clipboard:
        return 0
    if copy_to_clipboard(content):
        print("Megaprompt copied to clipboard.")
    else:
        print("Clipboard copy not available on this system; file is written.")
    return 0


# --------------------------------------------------------------------------- #
# megadiagnose
# --------------------------------------------------------------------------- #


def diagnose_main(argv: Sequence[str] | None = None) -> int:
    settings = parse_diagnose_args(argv)
    return _run(settings, lambda: run_diagnose(settings))


def run_diagnose(settings: DiagnoseSettings) -> int:
    root = resolve_root(settings.path)
    profile = detect_project(root, force=settings.force)
    project = load_project_config(root)
    names, globs = split_ignores([*settings.ignore, *project.ignore])

    runner = DiagnosticsRunner(
        root,
        settings.timeout_seconds,
        names,
        globs,
        include_tests=settings.include_tests,
    )
    report = runner.run(profile)
    xml = report.to_xml()
    json = report.to_json()
    prompt = generate_fix_prompt(report, root)

    emit_artifact(
        artifact_directory(settings, root),
        "diagnostics",
        "diagnostics_artifact",
        report.generated_at,
        [("xml", xml), ("json", json), ("fix_prompt", prompt)],
        hidden=settings.artifact_hidden,
    )
    emit_outputs(settings, xml, json, prompt, "Fix prompt")

    if settings.show_summary:
        print("Languages: " + ", ".join(ld.name for ld in report.languages), file=sys.stderr)
        for ld in report.languages:
            print(
                f" - {ld.name} ({ld.tool}): {ld.error_count} errors, {ld.warning_count} warnings",
                file=sys.stderr,
            )
        print(f"Total issues: {report.total_issues}", file=sys.stderr)
    return 0


# --------------------------------------------------------------------------- #
# megatest
# --------------------------------------------------------------------------- #


def test_main(argv: Sequence[str] | None = None) -> int:
    settings = parse_test_args(argv)
    return _run(settings, lambda: run_test_plan(settings))


def run_test_plan(settings: TestPlanSettings) -> int:
    root = resolve_root(settings.path)
    profile = detect_project(root, force=settings.force)
    files, names, globs = scan_project(profile, settings, settings.max_file_bytes)

    levels = LevelSet.parse(settings.levels)
    regression = RegressionConfig.from_options(
        no_regression=settings.no_regression,
        since=settings.regression_since,
        range_=settings.regression_range,
    )
    planner = TestPlanner(
        root,
        ignore_names=names,
        ignore_globs=globs,
        limit_subjects=settings.limit_subjects,
        max_analyze_bytes=settings.max_analyze_bytes,
    )
    plan = planner.build_plan(files, levels, regression)
    xml = plan.to_xml()
    json = plan.to_json()
    prompt = generate_test_prompt(plan, root, levels)

    emit_artifact(
        artifact_directory(settings, root),
        "testplan",
        "test_plan_artifact",
        plan.generated_at,
        [("xml", xml), ("json", json), ("test_prompt", prompt)],
        hidden=settings.artifact_hidden,
    )
    emit_outputs(settings, xml, json, prompt, "Test prompt")

    if settings.show_summary:
        print("Languages: " + ", ".join(lp.name for lp in plan.languages), file=sys.stderr)
        print(
            f"Subjects: {plan.summary.total_subjects}, Scenarios: {plan.summary.total_scenarios}",
            file=sys.stderr,
        )
        mode = regression.description if regression is not None else "off"
        print(f"Regression mode: {mode}", file=sys.stderr)
        for lp in plan.languages:
            print(
                f" - {lp.name}: {len(lp.subjects)} subjects, frameworks: {', '.join(lp.frameworks)}",
                file=sys.stderr,
            )
    return 0


# --------------------------------------------------------------------------- #
# megadoc
# --------------------------------------------------------------------------- #


def doc_main(argv: Sequence[str] | None = None) -> int:
    settings = parse_doc_args(argv)
    return _run(settings, lambda: run_doc(settings))


def run_doc(settings: DocSettings) -> int:
    if not settings.create and not settings.get:
        raise ConflictingModeError(
            message="Specify --create to analyze local code or --get <URI> to fetch docs.",
        )
    if settings.create and settings.get:
        raise ConflictingModeError(message="Use either --create or --get in a single run, not both.")

    if settings.create:
        root = resolve_root(settings.path)
        report = document_codebase(root, settings)
        default_dir = root
    else:
        report = fetch_docs(settings)
        default_dir = Path.cwd()

    xml = report.to_xml()
    json = report.to_json()
    prompt = generate_doc_prompt(report)

    emit_artifact(
        artifact_directory(settings, default_dir),
        "documentation",
        "documentation_artifact",
        report.generated_at,
        [("xml", xml), ("json", json), ("doc_prompt", prompt)],
        hidden=settings.artifact_hidden,
    )
    emit_outputs(settings, xml, json, prompt, "Doc prompt")

    if settings.show_summary:
        print(f"Mode: {report.mode.value}", file=sys.stderr)
        if report.languages:
            print("Languages: " + ", ".join(report.languages), file=sys.stderr)
        print(
            f"Imports: {len(report.imports)}, External deps: {len(report.external_dependencies)}, "
            f"Docs fetched: {len(report.fetched_docs)}",
            file=sys.stderr,
        )
    return 0


def document_codebase(root: Path, settings: DocSettings) -> MegaDocReport:
    profile = detect_project(root, force=settings.force)
    files, names, globs = scan_project(profile, settings, settings.max_file_bytes)
    languages = sorted(profile.languages)
    imports, graph = build_import_graph(root, files, settings.max_analyze_bytes)
    return MegaDocReport(
        mode=DocMode.LOCAL,
        root_path=str(root),
        languages=languages,
        directory_tree=build_dir_tree(root, settings.tree_depth, names, globs, languages),
        import_graph=graph,
        imports=imports,
        external_dependencies=external_summary(imports),
        purpose_summary=guess_purpose(root, files, languages, settings.max_analyze_bytes),
    )


def fetch_docs(settings: DocSettings) -> MegaDocReport:
    with DocFetcher(settings.allow_domain, settings.crawl_depth) as fetcher:
        docs = [doc for uri in settings.get for doc in fetcher.fetch(uri)]
    return MegaDocReport(
        mode=DocMode.FETCH,
        directory_tree="fetch mode: no directory tree",
        import_graph="fetch mode: no import graph",
        purpose_summary=DocFetcher.summarize(docs),
        fetched_docs=docs,
    )


if __name__ == "__main__":
    raise SystemExit(main())

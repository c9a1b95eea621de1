from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from megaprompter import heuristics
from megaprompter.config import EXT2LANG
from megaprompter.coverage import assess_coverage
from megaprompter.file_manipulation import read_head, relpath
from megaprompter.globbing import match_any
from megaprompter.logging import logger
from megaprompter.regression import changed_files
from megaprompter.rules import file_ext, is_test_file
from megaprompter.scenarios import build_scenarios
from megaprompter.settings import DEFAULT_MAX_ANALYZE_BYTES
from megaprompter.testplan import Coverage, LanguagePlan, LevelSet, PlanSummary, SubjectPlan, TestPlanReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from megaprompter.regression import RegressionConfig
    from megaprompter.testplan import TestSubject

MIN_SUBJECT_LIMIT = 50
PROMPT_TOP_RISK = 10
PROMPT_SUBJECTS_PER_LANGUAGE = 20

JS_FRAMEWORKS = ("jest", "vitest", "mocha", "playwright", "cypress")
PY_FRAMEWORKS = ("pytest", "unittest", "behave")
PY_MANIFESTS = ("pyproject.toml", "requirements.txt", "Pipfile")
JVM_MANIFESTS = ("pom.xml", "build.gradle", "build.gradle.kts")


def _read_lower(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace").lower()
    except OSError:
        return None


def detect_frameworks(root: Path) -> dict[str, list[str]]:
    """Guess the test frameworks in use, per language, from root manifests.

    Returns:
        dict[str, list[str]]: framework names keyed by language
    """
    by_lang: dict[str, list[str]] = {}

    if (pkg := _read_lower(root / "package.json")) is not None:
        found = [fw for fw in JS_FRAMEWORKS if fw in pkg]
        by_lang["javascript"] = found
        by_lang["typescript"] = list(found)

    py: list[str] = []
    for name in PY_MANIFESTS:
        if (text := _read_lower(root / name)) is not None:
            py.extend(fw for fw in PY_FRAMEWORKS if fw in text and fw not in py)
            by_lang["python"] = py

    by_lang["go"] = ["go test"]
    if (root / "Cargo.toml").exists():
        by_lang["rust"] = ["cargo test"]
    if (root / "Package.swift").exists():
        by_lang["swift"] = ["XCTest (swift test)"]
    if any((root / name).exists() for name in JVM_MANIFESTS):
        by_lang["java"] = ["JUnit"]
        by_lang["kotlin"] = ["JUnit"]
    if (root / "lakefile.lean").exists() or (root / "lakefile.toml").exists():
        by_lang["lean"] = ["lake build"]
    return by_lang


class TestPlanner:
    """Turn a scanned file list into a `TestPlanReport`.

    Args:
        root (Path): project root
        ignore_names (Sequence[str]): path segments to leave out
        ignore_globs (Sequence[str]): root-relative globs to leave out
        limit_subjects (int): maximum subjects overall; never below 50
        max_analyze_bytes (int): bytes read from each file
    """

    __test__ = False

    def __init__(
        self,
        root: Path,
        ignore_names: Sequence[str] = (),
        ignore_globs: Sequence[str] = (),
        limit_subjects: int = 500,
        max_analyze_bytes: int = DEFAULT_MAX_ANALYZE_BYTES,
    ) -> None:
        self.root = Path(root)
        self.ignore_names = frozenset(ignore_names)
        self.ignore_globs = tuple(ignore_globs)
        self.limit_subjects = max(MIN_SUBJECT_LIMIT, limit_subjects)
        self.max_analyze_bytes = max_analyze_bytes

    def _ignored(self, path: Path) -> bool:
        rel = relpath(path, self.root)
        if any(seg in self.ignore_names for seg in rel.split("/")):
            return True
        return match_any(rel, self.ignore_globs)

    def build_plan(
        self,
        files: Sequence[Path],
        levels: LevelSet | None = None,
        regression: RegressionConfig | None = None,
    ) -> TestPlanReport:
        """Analyze `files` and suggest scenarios for every subject found.

        Test files are never analyzed as subjects; they feed the coverage
        assessment instead. Subjects judged DONE get no scenarios.

        Args:
            files (Sequence[Path]): scanned files, usually from `ProjectScanner`
            levels (LevelSet | None): selected levels; all when None
            regression (RegressionConfig | None): git range for regression hints

        Returns:
            TestPlanReport: the plan
        """
        levels = levels or LevelSet()
        frameworks = detect_frameworks(self.root)
        candidates = [f for f in files if not self._ignored(f)]
        test_files = [f for f in candidates if is_test_file(f, self.root)]
        sources = [f for f in candidates if not is_test_file(f, self.root)]

        per_lang = self._collect_subjects(sources)
        changed = set(changed_files(self.root, regression))
        if changed:
            logger.info("Regression: %d changed file(s)", len(changed))

        test_counts: dict[str, int] = defaultdict(int)
        for tf in test_files:
            if lang := EXT2LANG.get(file_ext(tf)):
                test_counts[lang] += 1

        plans: list[LanguagePlan] = []
        total_subjects = 0
        total_scenarios = 0
        for lang in sorted(per_lang):
            subjects = per_lang[lang]
            coverage = assess_coverage(subjects, test_files, self.max_analyze_bytes)
            fws = frameworks.get(lang, [])
            subject_plans: list[SubjectPlan] = []
            for subject in subjects:
                cov = coverage.get(subject.id) or Coverage.missing()
                scenarios = (
                    []
                    if cov.is_done
                    else build_scenarios(
                        subject,
                        fws,
                        levels,
                        changed=relpath(Path(subject.path), self.root) in changed,
                    )
                )
                total_scenarios += len(scenarios)
                subject_plans.append(SubjectPlan(subject=subject, coverage=cov, scenarios=scenarios))
            total_subjects += len(subjects)
            plans.append(
                LanguagePlan(
                    name=lang,
                    frameworks=fws,
                    subjects=subject_plans,
                    test_files_found=test_counts.get(lang, 0),
                ),
            )

        logger.info("Test plan: %d subject(s), %d scenario(s)", total_subjects, total_scenarios)
        return TestPlanReport(
            languages=plans,
            summary=PlanSummary(
                total_languages=len(plans),
                total_subjects=total_subjects,
                total_scenarios=total_scenarios,
            ),
        )

    def _collect_subjects(self, sources: Sequence[Path]) -> dict[str, list[TestSubject]]:
        per_lang: dict[str, list[TestSubject]] = defaultdict(list)
        total = 0
        for path in sources:
            if total >= self.limit_subjects:
                break
            lang = heuristics.language_for(path)
            if lang is None:
                continue
            content = read_head(path, self.max_analyze_bytes)
            if not content:
                continue
            found = heuristics.analyze_file(path, content, lang)[: self.limit_subjects - total]
            if found:
                per_lang[lang].extend(found)
                total += len(found)
        return per_lang


def _relativize(path: str, root: Path | None) -> str:
    if root is None:
        return path
    base = str(root).rstrip("/") + "/"
    return path.removeprefix(base)


def generate_test_prompt(plan: TestPlanReport, root: Path | None, levels: LevelSet) -> str:
    """Build the instruction text asking an LLM to write the planned tests.

    Args:
        plan (TestPlanReport): the plan to describe
        root (Path | None): when given, subject paths are shown relative to it
        levels (LevelSet): levels the tests should cover

    Returns:
        str: the prompt
    """
    subjects = [sp for lp in plan.languages for sp in lp.subjects]
    scenario_count = sum(len(sp.scenarios) for sp in subjects)
    lines = [
        "You are an expert test developer. Create tests according to this plan "
        "without rewriting architecture.",
        "",
        "Context:",
        "- Languages: " + ", ".join(lp.name for lp in plan.languages),
        f"- Subjects: {len(subjects)}, Scenarios: {scenario_count}",
        "",
        "High priority subjects (by risk):",
    ]
    ranked = sorted((sp.subject for sp in subjects), key=lambda s: s.risk_score, reverse=True)
    for s in ranked[:PROMPT_TOP_RISK]:
        factors = " - " + "; ".join(s.risk_factors) if s.risk_factors else ""
        lines.append(
            f"  • [{s.risk_score}] {s.language} {s.kind.value} {s.name} "
            f"({_relativize(s.path, root)}){factors}",
        )
    lines += [
        "",
        "Instructions:",
        f"- Write {', '.join(level.value for level in levels.ordered())} tests.",
        "- Use detected frameworks when applicable; keep tests minimal but thorough.",
        "- Prefer deterministic, hermetic tests; use stubs/mocks for external I/O.",
        "- Include edge cases and negative tests for each subject; cover error handling.",
        "- Skip subjects whose coverage is DONE; extend PARTIAL ones rather than duplicating them.",
        "- Name and place tests according to language conventions "
        "(e.g., __tests__, *_test.go, tests/, src/test/java, Tests/).",
        "",
        "Plan overview:",
    ]
    for lp in plan.languages:
        lines.append(f"- {lp.name} (frameworks: {', '.join(lp.frameworks)})")
        for sp in lp.subjects[:PROMPT_SUBJECTS_PER_LANGUAGE]:
            s = sp.subject
            lines.append(
                f"  • {s.kind.value} {s.name} @ {_relativize(s.path, root)} "
                f"[risk {s.risk_score}] [coverage {sp.coverage.status}]",
            )
            lines.extend(f"     - [{sc.level.value}] {sc.title}" for sc in sp.scenarios)
        if len(lp.subjects) > PROMPT_SUBJECTS_PER_LANGUAGE:
            lines.append(f"  • ... {len(lp.subjects) - PROMPT_SUBJECTS_PER_LANGUAGE} more")
    return "\n".join(lines)

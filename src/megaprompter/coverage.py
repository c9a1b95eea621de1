from __future__ import annotations

import re
from typing import TYPE_CHECKING

from megaprompter.file_manipulation import read_head
from megaprompter.testplan import Coverage, CoverageEvidence, CoverageFlag

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from megaprompter.testplan import TestSubject

EDGE_KEYWORDS: tuple[str, ...] = (
    "empty", "nil", "null", "undefined", "invalid", "error", "throws", "throw", "exception",
    "large", "huge", "max", "min", "boundary", "timeout", "retry", "concurrent", "race",
    "unauthorized", "forbidden", "denied", "overflow", "underflow",
)  # fmt: skip
INTEGRATION_PATH_HINTS = ("integration", "e2e", "end2end")
MAX_EVIDENCE = 5
GREEN_SCORE = 4
YELLOW_SCORE = 2


def _hits_score(hits: int) -> int:
    if hits >= 10:  # noqa: PLR2004
        return 3
    if hits >= 5:  # noqa: PLR2004
        return 2
    return 1


def assess_coverage(
    subjects: Sequence[TestSubject],
    test_files: Sequence[Path],
    max_analyze_bytes: int,
) -> dict[str, Coverage]:
    """Estimate how well each subject is already tested.

    Every test file (truncated to `max_analyze_bytes`) is searched for the
    subject's name as a whole word. Hit volume, edge-case vocabulary in the
    matching files and integration-style test paths add up to a score:
    4 or more is green/DONE, 2 or 3 yellow/PARTIAL, below that red/MISSING.

    Args:
        subjects (Sequence[TestSubject]): subjects to assess
        test_files (Sequence[Path]): candidate test files
        max_analyze_bytes (int): bytes read per test file

    Returns:
        dict[str, Coverage]: coverage by subject id; empty when there are
            no subjects or no test files
    """
    if not subjects or not test_files:
        return {}

    tests = [(str(tf), text) for tf in test_files if (text := read_head(tf, max_analyze_bytes))]
    lowered = [text.lower() for _, text in tests]

    results: dict[str, Coverage] = {}
    for subject in subjects:
        pattern = re.compile(rf"\b{re.escape(subject.name)}\b")
        total = 0
        evidence: list[CoverageEvidence] = []
        keywords: set[str] = set()
        for (name, text), lower in zip(tests, lowered, strict=True):
            hits = len(pattern.findall(text))
            if not hits:
                continue
            total += hits
            evidence.append(CoverageEvidence(file=name, hits=hits))
            keywords.update(kw for kw in EDGE_KEYWORDS if kw in lower)

        if not total:
            results[subject.id] = Coverage.missing()
            continue

        score = _hits_score(total)
        if len(keywords) >= 2:  # noqa: PLR2004
            score += 1
        if any(hint in ev.file.lower() for ev in evidence for hint in INTEGRATION_PATH_HINTS):
            score += 1

        if score >= GREEN_SCORE:
            flag, status = CoverageFlag.GREEN, "DONE"
        elif score >= YELLOW_SCORE:
            flag, status = CoverageFlag.YELLOW, "PARTIAL"
        else:
            flag, status = CoverageFlag.RED, "MISSING"

        results[subject.id] = Coverage(
            flag=flag,
            status=status,
            score=score,
            evidence=sorted(evidence, key=lambda ev: ev.hits, reverse=True)[:MAX_EVIDENCE],
            notes=[f"hits={total}", f"edge_keywords={','.join(sorted(keywords))}"],
        )
    return results

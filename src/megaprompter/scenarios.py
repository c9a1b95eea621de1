from __future__ import annotations

from typing import TYPE_CHECKING

from megaprompter.testplan import ScenarioSuggestion, SubjectKind, TestLevel

if TYPE_CHECKING:
    from megaprompter.testplan import LevelSet, SubjectParam, TestSubject

MAX_FUZZ_PARAMS = 8
MAX_FUZZ_CASES = 24

NUMERIC_TYPES = ("int", "float", "double", "number")
NUMERIC_NAMES = ("count", "limit", "size", "retries", "attempts")
STRING_TYPES = ("string",)
STRING_NAMES = ("name", "id", "path", "text", "url", "email")
COLLECTION_TYPES = ("array", "[", "list", "vec")
MAPPING_TYPES = ("map", "dict", "object", "struct")
ENTRYPOINT_WORDS = ("start", "run", "boot")


def build_scenarios(
    subject: TestSubject,
    frameworks: list[str],
    levels: LevelSet,
    *,
    changed: bool = False,
) -> list[ScenarioSuggestion]:
    """Suggest test scenarios for one subject.

    Unit tests are always suggested when the level is selected; integration
    tests only when the subject touches I/O; smoke tests for entrypoint-like
    names; e2e tests for HTTP endpoints; regression tests when the subject's
    file changed in the selected git range.

    Args:
        subject (TestSubject): what to test
        frameworks (list[str]): test frameworks detected for its language
        levels (LevelSet): levels the user asked for
        changed (bool): whether the defining file changed

    Returns:
        list[ScenarioSuggestion]: scenarios, in level order
    """
    out: list[ScenarioSuggestion] = []
    io = subject.io
    if TestLevel.UNIT in levels:
        out.append(unit_scenario(subject, frameworks))
    if TestLevel.INTEGRATION in levels and (io.network or io.db or io.reads_fs or io.writes_fs or io.env):
        out.append(integration_scenario(subject))
    if TestLevel.SMOKE in levels and is_entrypointish(subject):
        out.append(smoke_scenario(subject))
    if TestLevel.E2E in levels and subject.kind == SubjectKind.ENDPOINT:
        out.append(e2e_scenario(subject))
    if TestLevel.REGRESSION in levels and changed:
        out.append(regression_scenario(subject))
    return out


def unit_scenario(s: TestSubject, frameworks: list[str] | None = None) -> ScenarioSuggestion:
    target = "type" if s.kind == SubjectKind.CLASS else "function"
    steps = [
        f"Isolate {target} {s.name} by mocking external effects.",
        "Cover happy-path plus edge cases below.",
    ]
    if frameworks:
        steps.append(f"Use {', '.join(frameworks)}.")
    return ScenarioSuggestion(
        level=TestLevel.UNIT,
        title=f"Unit tests for {s.name}",
        rationale=f"Validate core logic, boundary conditions, and error paths. Risk score {s.risk_score}.",
        steps=steps,
        inputs=fuzz_inputs(s.params),
        assertions=[
            "Correct outputs for valid inputs",
            "Throws/returns errors for invalid inputs",
            "Idempotency and no state leakage",
            "Handles large input sizes within time limits",
        ],
    )


def integration_scenario(s: TestSubject) -> ScenarioSuggestion:
    io = s.io
    steps: list[str] = []
    if io.db:
        steps.append("Use a disposable DB (e.g., testcontainers) for read/write/transaction tests")
    if io.network:
        steps.append("Mock/stub external HTTP endpoints and cover retries/timeouts")
    if io.reads_fs or io.writes_fs:
        steps.append("Use a temp directory for FS reads/writes; test permissions and missing paths")
    if io.env:
        steps.append("Vary environment variables; test unset/malformed values")
    if io.concurrency:
        steps.append("Run concurrent invocations to detect races and locking issues")
    return ScenarioSuggestion(
        level=TestLevel.INTEGRATION,
        title=f"Integration tests for {s.name}",
        rationale="Covers real I/O and cross-module boundaries indicated by IO capabilities.",
        steps=steps,
        assertions=[
            "Correct behavior under network/DB errors",
            "Resource cleanup (connections, files)",
            "Retry/backoff adherence",
            "No deadlocks or race conditions",
        ],
    )


def smoke_scenario(s: TestSubject) -> ScenarioSuggestion:
    return ScenarioSuggestion(
        level=TestLevel.SMOKE,
        title=f"Smoke test for {s.name}",
        rationale="Ensure the primary entrypoint boots and responds.",
        steps=[
            "Build/start the service or executable",
            "Probe /health or a trivial endpoint",
            "Run CLI --help / basic command returns 0",
        ],
        assertions=[
            "Process exits 0 or keeps running",
            "Boot completes within a short timeout",
            "Basic route returns HTTP 200",
        ],
    )


def e2e_scenario(s: TestSubject) -> ScenarioSuggestion:
    path = s.meta.get("path", "/")
    method = s.meta.get("method", "GET")
    return ScenarioSuggestion(
        level=TestLevel.E2E,
        title=f"E2E for {method} {path}",
        rationale="Validate the full request/response path and data persistence effects.",
        steps=[
            "Start the service with a disposable backing store",
            "Issue requests with the payloads below",
            "Follow-on GET/queries to verify persisted state",
        ],
        inputs=api_payloads(path, method),
        assertions=[
            "Status codes and response schemas",
            "Auth/permissions if applicable",
            "Idempotency and invariants across requests",
        ],
    )


def regression_scenario(s: TestSubject) -> ScenarioSuggestion:
    signature = s.signature or s.name
    return ScenarioSuggestion(
        level=TestLevel.REGRESSION,
        title=f"Regression tests for {s.name}",
        rationale="The defining file changed in the selected git range; pin down behavior around the change.",
        steps=[
            "Capture outputs of the previous revision for representative inputs",
            "Replay the same inputs against the current revision and diff the results",
            "Add a focused test for any bug the change fixes",
        ],
        inputs=fuzz_inputs(s.params)[:6],
        assertions=[
            "Previously passing behavior is unchanged unless intended",
            "Fixed defects stay fixed",
            f"Existing call sites of {signature} still compile and behave",
        ],
    )


def is_entrypointish(s: TestSubject) -> bool:
    if s.kind == SubjectKind.ENTRYPOINT:
        return True
    name = s.name.lower()
    return name == "main" or any(word in name for word in ENTRYPOINT_WORDS)


def _param_cases(p: SubjectParam) -> list[str]:
    t = (p.type_hint or "").lower()
    n = p.name.lower()
    if any(x in t for x in NUMERIC_TYPES) or any(x in n for x in NUMERIC_NAMES):
        return [f"{p.name}=0, 1, -1", f"{p.name}=very large value", f"{p.name}=NaN/Inf (if floating-point)"]
    if any(x in t for x in STRING_TYPES) or any(x in n for x in STRING_NAMES):
        return [
            f'{p.name}="" (empty), whitespace-only',
            f"{p.name} very long (10k chars), unicode/emoji",
            f"{p.name} with injection-like content ('; DROP, ../../, <script>)",
        ]
    if "bool" in t or n.startswith(("is", "has")):
        return [f"{p.name}=true and {p.name}=false"]
    if any(x in t for x in COLLECTION_TYPES):
        return [f"{p.name}=[] (empty), single-element, very large array", f"{p.name} with duplicates, nulls"]
    if any(x in t for x in MAPPING_TYPES):
        return [
            f"{p.name} missing required keys",
            f"{p.name} with extra/unknown keys",
            f"{p.name} with nested empty/large collections",
        ]
    return [f"{p.name} nominal valid value", f"{p.name} invalid/malformed value"]


def _name_cases(p: SubjectParam) -> list[str]:
    n = p.name.lower()
    cases: list[str] = []
    if "timeout" in n or "ms" in n or "delay" in n:
        cases.append(f"{p.name}=0 (no wait), {p.name}=1ms, {p.name}=very large, {p.name} negative")
    if "port" in n:
        cases.append(f"{p.name}=-1, 0, 80, 443, 65535, 65536 (invalid)")
    if "url" in n:
        cases.append(f"{p.name} invalid ('not a url'), http://example, https://example.com/path?x=1")
    if "path" in n:
        cases.append(f"{p.name}='..', '/', '/tmp/file', very long nested path")
    if "email" in n:
        cases.append(f"{p.name}='user@example.com', 'user+tag@example.com', 'not-an-email'")
    if p.optional:
        cases.append(f"{p.name}=nil/undefined")
    return cases


def fuzz_inputs(params: list[SubjectParam]) -> list[str]:
    """Edge-case inputs derived from parameter names and type hints.

    Only the first 8 parameters are considered and at most 24 cases are
    returned.
    """
    if not params:
        return ["No inputs: call with defaults; expect not to crash and return sane output"]
    cases: list[str] = []
    for p in params[:MAX_FUZZ_PARAMS]:
        cases += _param_cases(p)
        cases += _name_cases(p)
    return cases[:MAX_FUZZ_CASES]


def api_payloads(path: str, method: str) -> list[str]:
    return [
        f"{method} {path} with minimal valid payload",
        f"{method} {path} missing required fields",
        f"{method} {path} with extra fields",
        f"{method} {path} unauthorized/forbidden",
        f"{method} {path} with oversized body and invalid JSON",
    ]

from __future__ import annotations

import pytest

from megaprompter import scenarios
from megaprompter.testplan import (
    IOCapabilities,
    LevelSet,
    SubjectKind,
    SubjectParam,
    TestLevel,
    TestSubject,
)


def _subject(name: str = "parse", kind: SubjectKind = SubjectKind.FUNCTION, **kwargs) -> TestSubject:
    return TestSubject(id=f"/p/a.py#fn:{name}", kind=kind, language="python", name=name, path="/p/a.py", **kwargs)


@pytest.mark.unit
def test_pure_function_gets_only_a_unit_scenario() -> None:
    out = scenarios.build_scenarios(_subject(), ["pytest"], LevelSet())

    assert [s.level for s in out] == [TestLevel.UNIT]
    assert out[0].steps[-1] == "Use pytest."
    assert out[0].inputs == ["No inputs: call with defaults; expect not to crash and return sane output"]


@pytest.mark.unit
def test_io_entrypoint_endpoint_and_changed_file() -> None:
    subject = _subject(
        "GET /run",
        SubjectKind.ENDPOINT,
        io=IOCapabilities(network=True, concurrency=True),
        meta={"method": "GET", "path": "/run"},
    )

    out = scenarios.build_scenarios(subject, [], LevelSet(), changed=True)

    assert [s.level for s in out] == [
        TestLevel.UNIT,
        TestLevel.INTEGRATION,
        TestLevel.SMOKE,
        TestLevel.E2E,
        TestLevel.REGRESSION,
    ]
    integration = out[1]
    assert integration.steps == [
        "Mock/stub external HTTP endpoints and cover retries/timeouts",
        "Run concurrent invocations to detect races and locking issues",
    ]
    assert out[3].title == "E2E for GET /run"
    assert out[3].inputs[0] == "GET /run with minimal valid payload"


@pytest.mark.unit
def test_levels_filter_scenarios() -> None:
    subject = _subject("main", io=IOCapabilities(db=True))

    out = scenarios.build_scenarios(subject, [], LevelSet.parse("smoke,regression"), changed=False)

    assert [s.level for s in out] == [TestLevel.SMOKE]


@pytest.mark.unit
def test_class_unit_scenario_targets_type() -> None:
    out = scenarios.unit_scenario(_subject("Store", SubjectKind.CLASS))

    assert out.steps[0] == "Isolate type Store by mocking external effects."
    assert len(out.steps) == 2


@pytest.mark.unit
def test_fuzz_inputs_from_names_and_types() -> None:
    params = [
        SubjectParam(name="limit", type_hint="int"),
        SubjectParam(name="url", type_hint="str", optional=True),
        SubjectParam(name="isActive"),
        SubjectParam(name="values", type_hint="list[str]"),
    ]

    cases = scenarios.fuzz_inputs(params)

    assert cases[0] == "limit=0, 1, -1"
    assert "url invalid ('not a url'), http://example, https://example.com/path?x=1" in cases
    assert "url=nil/undefined" in cases
    assert "isActive=true and isActive=false" in cases
    assert cases[-2:] == ["values=[] (empty), single-element, very large array", "values with duplicates, nulls"]


@pytest.mark.unit
def test_fuzz_inputs_are_capped() -> None:
    params = [SubjectParam(name=f"path{i}", type_hint="string", optional=True) for i in range(12)]

    cases = scenarios.fuzz_inputs(params)

    assert len(cases) == scenarios.MAX_FUZZ_CASES
    assert not any(c.startswith("path8") for c in cases)


@pytest.mark.unit
def test_entrypoint_names() -> None:
    assert scenarios.is_entrypointish(_subject("main"))
    assert scenarios.is_entrypointish(_subject("startServer"))
    assert scenarios.is_entrypointish(_subject("x", SubjectKind.ENTRYPOINT))
    assert not scenarios.is_entrypointish(_subject("parse"))

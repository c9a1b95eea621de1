"""Data model for `megatest` test plans and its XML/JSON renderings."""

from __future__ import annotations

from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from megaprompter.file_manipulation import now_iso
from megaprompter.output_construction import cdata, escape_attr


class TestLevel(StrEnum):
    """Granularity of a suggested test."""

    __test__ = False

    SMOKE = auto()
    UNIT = auto()
    INTEGRATION = auto()
    E2E = auto()
    REGRESSION = auto()


class LevelSet(BaseModel):
    """The test levels selected on the command line."""

    model_config = ConfigDict(frozen=True)

    include: frozenset[TestLevel] = Field(default_factory=lambda: frozenset(TestLevel))

    @classmethod
    def parse(cls, csv: str | None) -> LevelSet:
        """Parse `smoke,unit,...`; an empty or missing value selects every level.

        Unknown names are dropped silently.
        """
        if csv is None or not csv.strip():
            return cls()
        values = {item.strip().lower() for item in csv.split(",")}
        return cls(include=frozenset(level for level in TestLevel if level.value in values))

    def __contains__(self, level: object) -> bool:
        return level in self.include

    def ordered(self) -> list[TestLevel]:
        return [level for level in TestLevel if level in self.include]


class SubjectKind(StrEnum):
    FUNCTION = auto()
    METHOD = auto()
    CLASS = auto()
    ENDPOINT = auto()
    ENTRYPOINT = auto()
    MODULE = auto()


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class SubjectParam(_Model):
    name: str
    type_hint: str | None = None
    optional: bool = False


class IOCapabilities(_Model):
    """Side effects a subject's source file appears to perform."""

    reads_fs: bool = False
    writes_fs: bool = False
    network: bool = False
    db: bool = False
    env: bool = False
    concurrency: bool = False


class TestSubject(_Model):
    """A function, class or endpoint worth testing.

    Attributes:
        id: Stable identifier, e.g. `/abs/app.py#fn:main`.
        kind: What sort of code unit this is.
        language: Language of the defining file.
        name: Declared name, or `METHOD /path` for endpoints.
        path: Absolute path of the defining file.
        signature: Declaration text, when one was captured.
        exported: Whether the unit is visible outside its module.
        params: Parsed parameters.
        risk_score: Heuristic risk from 1 to 10.
        risk_factors: Human-readable reasons behind the score.
        io: Detected I/O capabilities.
        meta: Free-form extra data (HTTP method and path, Lean decl kind).
    """

    __test__ = False

    id: str
    kind: SubjectKind
    language: str
    name: str
    path: str
    signature: str | None = None
    exported: bool = False
    params: list[SubjectParam] = Field(default_factory=list)
    risk_score: int = 1
    risk_factors: list[str] = Field(default_factory=list)
    io: IOCapabilities = Field(default_factory=IOCapabilities)
    meta: dict[str, str] = Field(default_factory=dict)


class ScenarioSuggestion(_Model):
    level: TestLevel
    title: str
    rationale: str
    steps: list[str] = Field(default_factory=list)
    inputs: list[str] = Field(default_factory=list)
    assertions: list[str] = Field(default_factory=list)


class CoverageFlag(StrEnum):
    GREEN = auto()
    YELLOW = auto()
    RED = auto()


class CoverageEvidence(_Model):
    file: str
    hits: int


class Coverage(_Model):
    """How well existing tests appear to exercise a subject."""

    flag: CoverageFlag
    status: str
    score: int
    evidence: list[CoverageEvidence] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @classmethod
    def missing(cls) -> Coverage:
        return cls(flag=CoverageFlag.RED, status="MISSING", score=0, notes=["no tests found"])

    @property
    def is_done(self) -> bool:
        return self.status == "DONE"


class SubjectPlan(_Model):
    subject: TestSubject
    coverage: Coverage = Field(default_factory=Coverage.missing)
    scenarios: list[ScenarioSuggestion] = Field(default_factory=list)


class LanguagePlan(_Model):
    name: str
    frameworks: list[str] = Field(default_factory=list)
    subjects: list[SubjectPlan] = Field(default_factory=list)
    test_files_found: int = 0


class PlanSummary(_Model):
    total_languages: int = 0
    total_subjects: int = 0
    total_scenarios: int = 0


class TestPlanReport(_Model):
    """The full plan: one entry per analyzed language, plus totals."""

    __test__ = False

    languages: list[LanguagePlan] = Field(default_factory=list)
    generated_at: str = Field(default_factory=now_iso)
    summary: PlanSummary = Field(default_factory=PlanSummary)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_xml(self) -> str:
        """Render the plan as XML.

        Free text (signatures, factors, scenario bodies) goes into CDATA;
        identifiers and paths are attribute-escaped. Booleans are written as
        `true`/`false`.

        Returns:
            str: the XML document
        """
        parts: list[str] = [f'<test_plan generatedAt="{escape_attr(self.generated_at)}">']
        for lp in self.languages:
            parts.append(
                f'  <language name="{escape_attr(lp.name)}" '
                f'frameworks="{escape_attr(", ".join(lp.frameworks))}" '
                f'testFilesFound="{lp.test_files_found}">',
            )
            for sp in lp.subjects:
                parts.extend(_subject_xml(sp))
            parts.append("  </language>")
        s = self.summary
        parts.append(
            f'  <summary languages="{s.total_languages}" subjects="{s.total_subjects}" '
            f'scenarios="{s.total_scenarios}"/>',
        )
        parts.append("</test_plan>")
        return "\n".join(parts)


def _bool(value: bool) -> str:  # noqa: FBT001
    return "true" if value else "false"


def _subject_xml(sp: SubjectPlan) -> list[str]:
    s = sp.subject
    parts = [
        f'    <subject id="{escape_attr(s.id)}" kind="{s.kind.value}" '
        f'language="{escape_attr(s.language)}" name="{escape_attr(s.name)}" '
        f'path="{escape_attr(s.path)}" exported="{_bool(s.exported)}">',
    ]
    if s.signature:
        parts.append(f"      <signature>{cdata(s.signature)}</signature>")
    if s.params:
        parts.append("      <params>")
        parts.extend(
            f'        <param name="{escape_attr(p.name)}" optional="{_bool(p.optional)}" '
            f'typeHint="{escape_attr(p.type_hint or "")}"/>'
            for p in s.params
        )
        parts.append("      </params>")
    if s.risk_factors:
        parts.append(f'      <risk score="{s.risk_score}">')
        parts.extend(f"        <factor>{cdata(rf)}</factor>" for rf in s.risk_factors)
        parts.append("      </risk>")
    else:
        parts.append(f'      <risk score="{s.risk_score}"/>')
    if s.meta:
        parts.append("      <meta>")
        parts.extend(
            f'        <item key="{escape_attr(k)}" value="{escape_attr(v)}"/>'
            for k, v in sorted(s.meta.items())
        )
        parts.append("      </meta>")

    cov = sp.coverage
    parts.append(
        f'      <coverage flag="{cov.flag.value}" status="{escape_attr(cov.status)}" score="{cov.score}">',
    )
    parts.extend(
        f'        <evidence file="{escape_attr(ev.file)}" hits="{ev.hits}"/>' for ev in cov.evidence
    )
    parts.extend(f"        <note>{cdata(n)}</note>" for n in cov.notes)
    parts.append("      </coverage>")

    for sc in sp.scenarios:
        parts.append(f'      <scenario level="{sc.level.value}">')
        parts.append(f"        <title>{cdata(sc.title)}</title>")
        parts.append(f"        <rationale>{cdata(sc.rationale)}</rationale>")
        for tag, child, items in (
            ("inputs", "case", sc.inputs),
            ("steps", "step", sc.steps),
            ("assertions", "assert", sc.assertions),
        ):
            if items:
                parts.append(f"        <{tag}>")
                parts.extend(f"          <{child}>{cdata(item)}</{child}>" for item in items)
                parts.append(f"        </{tag}>")
        parts.append("      </scenario>")
    parts.append("    </subject>")
    return parts

from __future__ import annotations

from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from megaprompter.file_manipulation import now_iso
from megaprompter.output_construction import cdata_safe, escape_attr

if TYPE_CHECKING:
    from pathlib import Path

TOP_ISSUES_PER_LANGUAGE = 5


class Severity(StrEnum):
    """Severity of a single diagnostic."""

    ERROR = auto()
    WARNING = auto()
    INFO = auto()


class Diagnostic(BaseModel):
    """One issue reported by a compiler or linter.

    Attributes:
        tool: Tool that produced the issue (e.g. `tsc`, `cargo`).
        language: Language bucket the issue belongs to.
        file: Path as printed by the tool; may be empty.
        line: 1-based line, when known.
        column: 1-based column, when known.
        code: Tool-specific code such as `TS2322` or `E0308`.
        severity: Error, warning or info.
        message: Human-readable message.
    """

    model_config = ConfigDict(frozen=True)

    tool: str
    language: str
    file: str
    line: int | None = None
    column: int | None = None
    code: str | None = None
    severity: Severity
    message: str


class LanguageDiagnostics(BaseModel):
    """All issues collected for one language."""

    name: str
    tool: str
    issues: list[Diagnostic] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.issues if d.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.issues if d.severity == Severity.WARNING)


class DiagnosticsReport(BaseModel):
    """Diagnostics for every language that was checked."""

    model_config = ConfigDict(populate_by_name=True)

    languages: list[LanguageDiagnostics] = Field(default_factory=list)
    generated_at: str = Field(default_factory=now_iso, alias="generatedAt")

    @property
    def total_issues(self) -> int:
        return sum(len(ld.issues) for ld in self.languages)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_xml(self) -> str:
        """Render the report as XML, embedding the fix prompt.

        Messages go into CDATA sections; attribute values are escaped.
        """
        parts: list[str] = ["<diagnostics>"]
        for ld in self.languages:
            parts.append(f'  <language name="{escape_attr(ld.name)}" tool="{escape_attr(ld.tool)}">')
            for d in ld.issues:
                line = "" if d.line is None else str(d.line)
                column = "" if d.column is None else str(d.column)
                parts.append(
                    f'    <issue file="{escape_attr(d.file)}" line="{line}" column="{column}" '
                    f'severity="{d.severity.value}" code="{escape_attr(d.code or "")}">',
                )
                parts.append(f"      <![CDATA[{cdata_safe(d.message)}]]>")
                parts.append("    </issue>")
            parts.append(
                f'    <summary count="{len(ld.issues)}" errors="{ld.error_count}" '
                f'warnings="{ld.warning_count}" />',
            )
            parts.append("  </language>")
        parts.append(
            f'  <summary total_languages="{len(self.languages)}" total_issues="{self.total_issues}" />',
        )
        parts.append("  <fix_prompt>")
        parts.append(f"    <![CDATA[{cdata_safe(generate_fix_prompt(self))}]]>")
        parts.append("  </fix_prompt>")
        parts.append("</diagnostics>")
        return "\n".join(parts)


def _location(d: Diagnostic, root: Path | None) -> str:
    path = d.file
    if root is not None:
        base = str(root).rstrip("/") + "/"
        if path.startswith(base):
            path = path[len(base) :]
    comps = [path]
    if d.line is not None:
        comps.append(str(d.line))
    if d.column is not None:
        comps.append(str(d.column))
    return ":".join(comps)


def generate_fix_prompt(report: DiagnosticsReport, root: Path | None = None) -> str:
    """Build the instruction text asking an LLM to fix the reported issues.

    Args:
        report (DiagnosticsReport): the diagnostics to summarize
        root (Path | None): when given, absolute file paths under it are shortened

    Returns:
        str: the prompt
    """
    errors = sum(ld.error_count for ld in report.languages)
    warnings = sum(ld.warning_count for ld in report.languages)
    lines = [
        "You are an expert software engineer. Apply fixes across the project "
        "to resolve the following diagnostics.",
        "",
        "Context:",
        f"- Languages analyzed: {', '.join(ld.name for ld in report.languages)}",
        f"- Total issues: {report.total_issues} ({errors} errors, {warnings} warnings)",
        "",
        "Top issues by language:",
    ]
    for ld in report.languages:
        lines.append(f"- {ld.name}: {ld.error_count} errors, {ld.warning_count} warnings")
        for d in ld.issues[:TOP_ISSUES_PER_LANGUAGE]:
            code = f" {d.code}" if d.code else ""
            lines.append(f"  • {_location(d, root)}{code}: {d.message}")
        if len(ld.issues) > TOP_ISSUES_PER_LANGUAGE:
            lines.append(f"  • ... {len(ld.issues) - TOP_ISSUES_PER_LANGUAGE} more")
    lines += [
        "",
        "Instructions:",
        "- Produce minimal, correct fixes for each issue.",
        "- Maintain existing architecture and conventions.",
        "- Include tests or adjustments to tests as needed.",
        "- If a tool was unavailable, suggest installation steps.",
        "",
        "Return patches as a set of unified diffs or a patch.sh script that overwrites the "
        "relevant files using heredocs with single-quoted EOF delimiters.",
    ]
    return "\n".join(lines)

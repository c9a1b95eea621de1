"""Documentation report for `megadoc`: model, renderings, tree and purpose guess."""

from __future__ import annotations

import re
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from megaprompter.file_manipulation import build_tree_lines, now_iso, read_head, relpath
from megaprompter.globbing import match_any
from megaprompter.output_construction import cdata, escape_attr
from megaprompter.rules import build_rules

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

README_NAMES = ("README.md", "Readme.md", "readme.md", "README", "Readme", "readme")
README_HEAD_LINES = 8
PURPOSE_SAMPLE_FILES = 40
PROMPT_MAX_DOCS = 12

CAPABILITY_HINTS: dict[str, re.Pattern[str]] = {
    name: re.compile(pattern)
    for name, pattern in (
        ("web", r"express|fastapi|flask|spring|ktor|actix|router\.|http\.|net/http|urlsession|axios|fetch|getmapping"),
        ("db", r"sqlalchemy|psycopg2|gorm|database/sql|entitymanager|jpa|mongoose|redis"),
        ("cli", r"argparse|click|cobra|commander|swift-argument-parser"),
        ("ml", r"torch|tensorflow|keras|sklearn"),
        ("queue", r"kafka|rabbitmq|pubsub|sqs"),
        ("cloud", r"aws|gcp|azure|s3|bigquery|pubsub|blob|cosmos"),
        ("test", r"pytest|jest|vitest|xctest|go test|cargo test"),
    )
}


class DocMode(StrEnum):
    LOCAL = auto()
    FETCH = auto()


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class DocImport(_Model):
    """One import statement found in a source file.

    Attributes:
        file: Absolute path of the importing file.
        language: Language of the importing file.
        raw: Module specifier as written.
        is_internal: Whether it points inside the project.
        resolved_path: Absolute path of the imported file, when resolved.
    """

    file: str
    language: str
    raw: str
    is_internal: bool = False
    resolved_path: str | None = None


class FetchedDoc(_Model):
    uri: str
    title: str
    content_preview: str = ""


class MegaDocReport(_Model):
    """Everything `megadoc` learned about a codebase or a set of documents."""

    generated_at: str = Field(default_factory=now_iso)
    mode: DocMode = DocMode.LOCAL
    root_path: str = ""
    languages: list[str] = Field(default_factory=list)
    directory_tree: str = ""
    import_graph: str = ""
    imports: list[DocImport] = Field(default_factory=list)
    external_dependencies: dict[str, int] = Field(default_factory=dict)
    purpose_summary: str = ""
    fetched_docs: list[FetchedDoc] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_xml(self) -> str:
        parts = [f'<documentation generatedAt="{escape_attr(self.generated_at)}" mode="{self.mode.value}">']
        if self.root_path:
            parts.append(f"  <root>{cdata(self.root_path)}</root>")
        if self.languages:
            parts.append("  <languages>")
            parts.extend(f'    <language name="{escape_attr(lang)}"/>' for lang in self.languages)
            parts.append("  </languages>")
        tree = cdata(f"\n{self.directory_tree}\n")
        graph = cdata(f"\n{self.import_graph}\n")
        parts.append(f"  <directory_tree>{tree}</directory_tree>")
        parts.append(f"  <import_graph>{graph}</import_graph>")
        if self.imports:
            parts.append("  <imports>")
            for imp in self.imports:
                internal = "true" if imp.is_internal else "false"
                parts.append(
                    f'    <import file="{escape_attr(imp.file)}" language="{escape_attr(imp.language)}" '
                    f'internal="{internal}">',
                )
                parts.append(f"      <raw>{cdata(imp.raw)}</raw>")
                if imp.resolved_path is not None:
                    parts.append(f"      <resolved_path>{cdata(imp.resolved_path)}</resolved_path>")
                parts.append("    </import>")
            parts.append("  </imports>")
        if self.external_dependencies:
            parts.append("  <external_dependencies>")
            parts.extend(
                f'    <dep name="{escape_attr(dep)}" count="{count}"/>'
                for dep, count in sorted(self.external_dependencies.items())
            )
            parts.append("  </external_dependencies>")
        parts.append(f"  <purpose>{cdata(self.purpose_summary)}</purpose>")
        if self.fetched_docs:
            parts.append("  <fetched_docs>")
            for doc in self.fetched_docs:
                parts.append(f'    <doc uri="{escape_attr(doc.uri)}" title="{escape_attr(doc.title)}">')
                parts.append(f"      <preview>{cdata(doc.content_preview)}</preview>")
                parts.append("    </doc>")
            parts.append("  </fetched_docs>")
        parts.append("</documentation>")
        return "\n".join(parts)


def build_dir_tree(
    root: Path,
    max_depth: int,
    ignore_names: Sequence[str] = (),
    ignore_globs: Sequence[str] = (),
    languages: Sequence[str] = (),
) -> str:
    """Render the project layout as an indented tree.

    Hidden entries, the directories pruned for `languages` and the caller's
    ignores are left out. Depth is clamped to at least 1.

    Args:
        root (Path): project root
        max_depth (int): deepest level to list
        ignore_names (Sequence[str]): extra directory or file names to leave out
        ignore_globs (Sequence[str]): root-relative globs to leave out
        languages (Sequence[str]): detected languages whose build dirs are pruned

    Returns:
        str: the tree, one entry per line, first line being the root name
    """
    pruned_names = build_rules(languages).prune_dirs | set(ignore_names)
    globs = tuple(ignore_globs)

    def pruned(path: Path) -> bool:
        rel = relpath(path, root)
        if any(seg in pruned_names for seg in rel.split("/")):
            return True
        return match_any(rel, globs)

    return "\n".join(build_tree_lines(root, max_depth=max(1, max_depth), prune=pruned))


def _find_readme(root: Path) -> Path | None:
    for name in README_NAMES:
        if (root / name).is_file():
            return root / name
    return None


def guess_purpose(
    root: Path,
    files: Sequence[Path],
    languages: Sequence[str],
    max_analyze_bytes: int,
) -> str:
    """Summarize what the project is probably for.

    Combines the head of the README, the detected languages and capability
    hints (web, db, cli, ml, queue, cloud, test) found in the first 40 files.

    Returns:
        str: a short multi-line summary
    """
    lines: list[str] = []
    readme = _find_readme(root)
    if readme is not None:
        text = read_head(readme, max_analyze_bytes).strip()
        if text:
            lines.append("README summary (first lines):")
            lines.append("\n".join(text.split("\n")[:README_HEAD_LINES]))
    if languages:
        lines += ["", "Detected languages: " + ", ".join(languages)]

    counts: dict[str, int] = {}
    for path in files[:PURPOSE_SAMPLE_FILES]:
        lower = read_head(path, max_analyze_bytes).lower()
        for name, pattern in CAPABILITY_HINTS.items():
            if pattern.search(lower):
                counts[name] = counts.get(name, 0) + 1
    if counts:
        ranked = sorted(counts, key=lambda name: counts[name], reverse=True)
        lines += ["", "Capability hints: " + ", ".join(ranked)]

    if not lines:
        first = languages[0] if languages else "unknown language"
        return f"No README and limited hints; likely a library or service in {first}"
    return "\n".join(lines)


def generate_doc_prompt(report: MegaDocReport) -> str:
    """Build the instruction text for an LLM reading the documentation report."""
    lines = [
        "You are a documentation-aware agent. Use the structure and imports to understand "
        "this codebase and/or the fetched docs.",
        "",
        f"Mode: {report.mode.value}",
    ]
    if report.languages:
        lines.append("Languages: " + ", ".join(report.languages))
    lines.append("")
    if report.root_path:
        lines += ["Directory tree:", report.directory_tree, "", "Import/dependency graph:", report.import_graph]
    if report.external_dependencies:
        lines += ["", "External dependencies (approximate):"]
        lines.extend(
            f"  - {dep}: {count} reference(s)" for dep, count in sorted(report.external_dependencies.items())
        )
    lines += ["", "Purpose summary:", report.purpose_summary]
    if report.fetched_docs:
        lines += ["", "Fetched docs:"]
        lines.extend(f"- {d.title} [{d.uri}]" for d in report.fetched_docs[:PROMPT_MAX_DOCS])
        if len(report.fetched_docs) > PROMPT_MAX_DOCS:
            lines.append(f"... {len(report.fetched_docs) - PROMPT_MAX_DOCS} more")
    lines += [
        "",
        "Instructions:",
        "- Extract architectural overview, key modules, and responsibilities.",
        "- Use the import graph to identify entrypoints, service boundaries, and data sources.",
        "- Relate external dependencies to specific modules and features.",
        "- If fetch mode: summarize content relevance to the codebase or to the requested topic.",
        "- Return a concise outline plus follow-up questions if crucial information is missing.",
    ]
    return "\n".join(lines)

"""Regex-based extraction of test subjects from source files.

Nothing here parses code properly. Each analyzer looks for declaration
shapes that are common in its language, and every subject gets a risk score
and I/O flags computed from keyword counts over the surrounding source.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from megaprompter.config import ANALYZERS, EXT2LANG, register_analyzer
from megaprompter.rules import file_ext
from megaprompter.testplan import IOCapabilities, SubjectKind, SubjectParam, TestSubject

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

MAX_RISK = 10
LONG_FILE_LINES = 200
BLOCK_BEFORE = 10
BLOCK_AFTER = 40

BRANCH_WORDS = (" if", " else", " switch", " case", " for", " while", " try", " catch", " guard", " defer", " when", " match")  # fmt: skip
CONCURRENCY_WORDS = ("async", "await", "goroutine", "go ", "chan", "thread", "dispatchqueue", "task", "tokio", "spawn", "executor", "completablefuture")  # fmt: skip
FS_WORDS = ("fs.", "filemanager", "open(", "readfile", "writefile", "os.open", "os.create", "pathlib", "io.open", "java.nio", "files.")  # fmt: skip
NET_WORDS = ("http.", "fetch", "urlsession", "requests", "axios", "reqwest", "net/http", ".get(", "@getmapping", "#[get(", "httpclient")  # fmt: skip
DB_WORDS = ("database/sql", "gorm", "sqlalchemy", "psycopg2", "pg.", "mongoose", "mongoclient", "redis", "jpa", "entitymanager", "coredata", "orm")  # fmt: skip
ENV_WORDS = ("process.env", "os.environ", "getenv", "environment.")

READS_FS_HINTS = ("readfile", "open(", "os.open", "filemanager", "io.open", "files.read")
WRITES_FS_HINTS = ("writefile", "fs.write", "os.create", "os.write", "filemanager.default.create", "files.write")  # fmt: skip
NETWORK_HINTS = ("http.", "fetch", "urlsession", "requests", "axios", "reqwest", "net/http", "httpclient")  # fmt: skip
DB_HINTS = ("database/sql", "gorm", "sqlalchemy", "psycopg2", "mongo", "mongoose", "redis", "entitymanager", "jpa")  # fmt: skip
CONCURRENCY_HINTS = ("async", "await", "go ", "chan", "thread", "dispatchqueue", "task", "tokio", "spawn", "executor", "completablefuture")  # fmt: skip


def _count(lower: str, needles: Iterable[str]) -> int:
    return sum(lower.count(n) for n in needles)


def _has(lower: str, needles: Iterable[str]) -> bool:
    return any(n in lower for n in needles)


def risk_score(text: str) -> tuple[int, list[str]]:
    """Score how risky a piece of code looks, from 1 to 10.

    Branching keywords add up to 5 points, concurrency hints 2, and each kind
    of I/O (filesystem, network, database, environment) 1 or 2 more. Files
    longer than 200 lines add a point.

    Args:
        text (str): the code to score, usually a whole file

    Returns:
        tuple[int, list[str]]: the score and the factors that raised it
    """
    lower = text.lower()
    score = 1
    factors: list[str] = []

    branches = _count(lower, BRANCH_WORDS)
    score += min(5, branches // 2)
    if branches:
        factors.append(f"branches ~{branches}")

    if _count(lower, CONCURRENCY_WORDS):
        score += 2
        factors.append("concurrency hints")

    io: list[str] = []
    for label, words, weight in (
        ("fs", FS_WORDS, 1),
        ("network", NET_WORDS, 1),
        ("db", DB_WORDS, 2),
        ("env", ENV_WORDS, 1),
    ):
        if _has(lower, words):
            score += weight
            io.append(label)
    if io:
        factors.append("io: " + ",".join(io))

    lines = len([ln for ln in text.split("\n") if ln])
    if lines > LONG_FILE_LINES:
        score += 1
        factors.append(f"long file (~{lines} lines)")

    return max(1, min(MAX_RISK, score)), factors


def io_capabilities(text: str) -> IOCapabilities:
    lower = text.lower()
    return IOCapabilities(
        reads_fs=_has(lower, READS_FS_HINTS),
        writes_fs=_has(lower, WRITES_FS_HINTS),
        network=_has(lower, NETWORK_HINTS),
        db=_has(lower, DB_HINTS),
        env=_has(lower, ENV_WORDS),
        concurrency=_has(lower, CONCURRENCY_HINTS),
    )


def language_for(path: Path | str) -> str | None:
    """Language of a file when an analyzer exists for it."""
    lang = EXT2LANG.get(file_ext(path))
    return lang if lang in ANALYZERS else None


def analyze_file(path: Path, content: str, language: str) -> list[TestSubject]:
    """Run the registered analyzer for `language` over one file's content."""
    analyzer = ANALYZERS.get(language)
    if analyzer is None:
        return []
    return analyzer(path, content, language)


def _subject(
    path: Path,
    *,
    kind: SubjectKind,
    language: str,
    name: str,
    scored_text: str,
    content: str,
    signature: str | None = None,
    exported: bool = True,
    params: list[SubjectParam] | None = None,
) -> TestSubject:
    score, factors = risk_score(scored_text)
    tag = "fn" if kind == SubjectKind.FUNCTION else "class"
    return TestSubject(
        id=f"{path}#{tag}:{name}",
        kind=kind,
        language=language,
        name=name,
        path=str(path),
        signature=signature,
        exported=exported,
        params=params or [],
        risk_score=score,
        risk_factors=factors,
        io=io_capabilities(content),
    )


def _endpoint(path: Path, language: str, method: str, route: str, content: str) -> TestSubject:
    score, factors = risk_score(content)
    name = f"{method} {route}"
    return TestSubject(
        id=f"{path}#endpoint:{name}",
        kind=SubjectKind.ENDPOINT,
        language=language,
        name=name,
        path=str(path),
        exported=True,
        risk_score=score,
        risk_factors=["http route", *factors],
        io=io_capabilities(content),
        meta={"method": method, "path": route},
    )


def _split_params(plist: str) -> list[str]:
    return [p.strip() for p in plist.split(",") if p.strip()]


# JavaScript / TypeScript

JS_FUNCTION_RE = re.compile(
    r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+([A-Za-z_$][\w$]*)\s*\(([^)]*)\)",
    re.MULTILINE,
)
JS_ARROW_RE = re.compile(
    r"^\s*(export\s+)?(?:const|let)\s+([A-Za-z_$][\w$]*)\s*(?::[^=\n]+)?=\s*(?:async\s+)?"
    r"\(([^)]*)\)\s*(?::[^=\n]+)?=>",
    re.MULTILINE,
)
JS_CLASS_RE = re.compile(r"^\s*(export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)", re.MULTILINE)
JS_ROUTE_RE = re.compile(r"\b(?:app|router)\.(get|post|put|delete|patch)\(\s*['\"]([^'\"]+)['\"]")


def parse_params_ts(plist: str) -> list[SubjectParam]:
    """`a: number, b?: string, c = 1` -> params with type hints and optionality."""
    params = []
    for raw in _split_params(plist):
        name_part, _, type_part = raw.partition(":")
        name_part = name_part.split("=")[0].strip()
        type_hint = type_part.split("=")[0].strip() or None
        optional = name_part.endswith("?") or "=" in raw
        params.append(SubjectParam(name=name_part.rstrip("?"), type_hint=type_hint, optional=optional))
    return params


def block_for(name: str, content: str) -> str | None:
    """Lines around the first mention of `name` (10 before, 40 after)."""
    lines = content.split("\n")
    for i, line in enumerate(lines):
        if name in line:
            return "\n".join(lines[max(0, i - BLOCK_BEFORE) : i + BLOCK_AFTER])
    return None


@register_analyzer(["typescript", "javascript"])
def analyze_js(path: Path, content: str, language: str) -> list[TestSubject]:
    """Functions, exported arrow functions, classes and Express routes."""
    out: list[TestSubject] = []
    for m in JS_FUNCTION_RE.finditer(content):
        name = m[1]
        out.append(
            _subject(
                path,
                kind=SubjectKind.FUNCTION,
                language=language,
                name=name,
                scored_text=block_for(name, content) or content,
                content=content,
                signature=f"function {name}({m[2]})",
                exported="export" in m[0],
                params=parse_params_ts(m[2]),
            ),
        )
    for m in JS_ARROW_RE.finditer(content):
        name = m[2]
        out.append(
            _subject(
                path,
                kind=SubjectKind.FUNCTION,
                language=language,
                name=name,
                scored_text=block_for(name, content) or content,
                content=content,
                signature=f"const {name} = ({m[3]}) =>",
                exported=bool(m[1]),
                params=parse_params_ts(m[3]),
            ),
        )
    for m in JS_CLASS_RE.finditer(content):
        name = m[2]
        out.append(
            _subject(
                path,
                kind=SubjectKind.CLASS,
                language=language,
                name=name,
                scored_text=content,
                content=content,
                signature=f"class {name}",
                exported=bool(m[1]),
            ),
        )
    out.extend(_endpoint(path, language, m[1].upper(), m[2], content) for m in JS_ROUTE_RE.finditer(content))
    return out


# Python

PY_FUNCTION_RE = re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)\s*\(([^)]*)\)", re.MULTILINE)
PY_CLASS_RE = re.compile(r"^\s*class\s+([A-Za-z_]\w*)", re.MULTILINE)
PY_ROUTE_RE = re.compile(
    r"^\s*@(?:app|router|bp|blueprint)\.(get|post|put|delete|patch|route)\(\s*['\"]([^'\"]+)['\"]",
    re.MULTILINE,
)


def parse_params_py(plist: str) -> list[SubjectParam]:
    params = []
    for raw in _split_params(plist):
        name_part, _, type_part = raw.partition(":")
        name = name_part.split("=")[0].strip()
        if name in {"self", "cls", "*", "/"}:
            continue
        type_hint = type_part.split("=")[0].strip() or None
        optional = "=" in raw or (type_hint is not None and "None" in type_hint)
        params.append(SubjectParam(name=name, type_hint=type_hint, optional=optional))
    return params


@register_analyzer("python")
def analyze_python(path: Path, content: str, language: str) -> list[TestSubject]:
    """`def`/`async def`, classes and Flask/FastAPI route decorators."""
    out = [
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"def {m[1]}({m[2]}):",
            exported=not m[1].startswith("_"),
            params=parse_params_py(m[2]),
        )
        for m in PY_FUNCTION_RE.finditer(content)
    ]
    out.extend(
        _subject(
            path,
            kind=SubjectKind.CLASS,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"class {m[1]}",
            exported=not m[1].startswith("_"),
        )
        for m in PY_CLASS_RE.finditer(content)
    )
    for m in PY_ROUTE_RE.finditer(content):
        method = "GET" if m[1] == "route" else m[1].upper()
        out.append(_endpoint(path, language, method, m[2], content))
    return out


# Go

GO_FUNCTION_RE = re.compile(r"^\s*func\s*(?:\([^)]+\)\s*)?([A-Za-z_]\w*)\s*\(([^)]*)\)", re.MULTILINE)
GO_ROUTE_RE = re.compile(
    r"(?:http\.HandleFunc|\.HandleFunc|\.(GET|POST|PUT|DELETE|PATCH))\(\s*[\"'`]([^\"'`]+)[\"'`]",
)


def parse_params_go(plist: str) -> list[SubjectParam]:
    params = []
    for raw in _split_params(plist):
        name, _, type_hint = raw.partition(" ")
        params.append(SubjectParam(name=name, type_hint=type_hint.strip() or None))
    return params


@register_analyzer("go")
def analyze_go(path: Path, content: str, language: str) -> list[TestSubject]:
    """Functions and methods (exported when capitalized), net/http and gin routes."""
    out = [
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"func {m[1]}({m[2]})",
            exported=m[1][0].isupper(),
            params=parse_params_go(m[2]),
        )
        for m in GO_FUNCTION_RE.finditer(content)
    ]
    out.extend(_endpoint(path, language, m[1] or "GET", m[2], content) for m in GO_ROUTE_RE.finditer(content))
    return out


# Rust

RUST_FUNCTION_RE = re.compile(r"^\s*pub(?:\([^)]*\))?\s+(?:async\s+)?fn\s+([A-Za-z_]\w*)\s*(?:<[^>]*>)?\s*\(([^)]*)\)", re.MULTILINE)  # fmt: skip
RUST_ROUTE_RE = re.compile(r"^\s*#\[\s*(get|post|put|delete|patch)\s*\(\s*[\"']([^\"']+)[\"']", re.MULTILINE)


def parse_params_rust(plist: str) -> list[SubjectParam]:
    params = []
    for raw in _split_params(plist):
        name, _, type_hint = raw.partition(":")
        if name.strip().lstrip("&").startswith(("self", "mut self")):
            continue
        params.append(SubjectParam(name=name.strip(), type_hint=type_hint.strip() or None))
    return params


@register_analyzer("rust")
def analyze_rust(path: Path, content: str, language: str) -> list[TestSubject]:
    out = [
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"pub fn {m[1]}({m[2]})",
            params=parse_params_rust(m[2]),
        )
        for m in RUST_FUNCTION_RE.finditer(content)
    ]
    out.extend(_endpoint(path, language, m[1].upper(), m[2], content) for m in RUST_ROUTE_RE.finditer(content))
    return out


# Swift

SWIFT_ACCESS = r"(?:(?:public|open|internal|fileprivate|private|static|final|@\w+)\s+)*"
SWIFT_FUNCTION_RE = re.compile(rf"^\s*{SWIFT_ACCESS}func\s+([A-Za-z_]\w*)\s*(?:<[^>]*>)?\s*\(([^)]*)\)", re.MULTILINE)
SWIFT_TYPE_RE = re.compile(rf"^\s*{SWIFT_ACCESS}(class|struct|enum|actor)\s+([A-Za-z_]\w*)", re.MULTILINE)


def parse_params_swift(plist: str) -> list[SubjectParam]:
    """`_ x: Int, label y: String? = nil` -> the internal names with types."""
    params = []
    for raw in _split_params(plist):
        name_part, _, type_part = raw.partition(":")
        name = name_part.split()[-1] if name_part.split() else name_part
        type_hint = type_part.split("=")[0].strip() or None
        optional = "=" in raw or (type_hint is not None and "?" in type_hint)
        params.append(SubjectParam(name=name.strip(), type_hint=type_hint, optional=optional))
    return params


@register_analyzer("swift")
def analyze_swift(path: Path, content: str, language: str) -> list[TestSubject]:
    out = [
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"func {m[1]}({m[2]})",
            exported="private" not in m[0],
            params=parse_params_swift(m[2]),
        )
        for m in SWIFT_FUNCTION_RE.finditer(content)
    ]
    out.extend(
        _subject(
            path,
            kind=SubjectKind.CLASS,
            language=language,
            name=m[2],
            scored_text=content,
            content=content,
            signature=f"{m[1]} {m[2]}",
            exported="private" not in m[0],
        )
        for m in SWIFT_TYPE_RE.finditer(content)
    )
    return out


# Java

JAVA_CLASS_RE = re.compile(r"^\s*public\s+(?:final\s+|abstract\s+)?(?:class|interface|record|enum)\s+([A-Za-z_]\w*)", re.MULTILINE)  # fmt: skip
JAVA_METHOD_RE = re.compile(
    r"^\s*(public|protected|private)\s+(?:static\s+)?(?:final\s+)?[A-Za-z0-9_<>\[\], ?]+?\s+([A-Za-z_]\w*)\s*\(([^)]*)\)\s*(?:throws\s+[\w.,\s]+)?\{",  # noqa: E501
    re.MULTILINE,
)
JAVA_ROUTE_RE = re.compile(r"^\s*@(Get|Post|Put|Delete|Patch)Mapping\(\s*(?:value\s*=\s*|path\s*=\s*)?[\"']([^\"']+)[\"']", re.MULTILINE)  # fmt: skip


def parse_params_java(plist: str) -> list[SubjectParam]:
    params = []
    for raw in _split_params(plist):
        tokens = [t for t in raw.split() if not t.startswith("@") and t != "final"]
        if len(tokens) < 2:  # noqa: PLR2004
            continue
        params.append(SubjectParam(name=tokens[-1], type_hint=" ".join(tokens[:-1])))
    return params


@register_analyzer("java")
def analyze_java(path: Path, content: str, language: str) -> list[TestSubject]:
    """Public classes, methods and Spring `@XxxMapping` endpoints."""
    out = [
        _subject(
            path,
            kind=SubjectKind.CLASS,
            language=language,
            name=m[1],
            scored_text=content,
            content=content,
            signature=f"public class {m[1]}",
        )
        for m in JAVA_CLASS_RE.finditer(content)
    ]
    out.extend(
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[2],
            scored_text=content,
            content=content,
            signature=f"method {m[2]}({m[3]})",
            exported=m[1] != "private",
            params=parse_params_java(m[3]),
        )
        for m in JAVA_METHOD_RE.finditer(content)
    )
    out.extend(_endpoint(path, language, m[1].upper(), m[2], content) for m in JAVA_ROUTE_RE.finditer(content))
    return out


# Kotlin

KOTLIN_MODIFIERS = r"(?:(?:public|private|internal|protected|override|open|abstract|suspend|inline|operator|infix|data|sealed|enum|inner)\s+)*"  # noqa: E501
KOTLIN_FUNCTION_RE = re.compile(
    rf"^\s*({KOTLIN_MODIFIERS})fun\s+(?:<[^>]*>\s*)?(?:[A-Za-z_][\w.]*\.)?([A-Za-z_]\w*)\s*\(([^)]*)\)",
    re.MULTILINE,
)
KOTLIN_CLASS_RE = re.compile(rf"^\s*({KOTLIN_MODIFIERS})(class|object|interface)\s+([A-Za-z_]\w*)", re.MULTILINE)
KOTLIN_ROUTE_RE = re.compile(
    r"^\s*(?:@(Get|Post|Put|Delete|Patch)Mapping\(\s*[\"']([^\"']+)[\"']"
    r"|(get|post|put|delete|patch)\(\s*\"([^\"]+)\"\s*\)\s*\{)",
    re.MULTILINE,
)


def parse_params_kotlin(plist: str) -> list[SubjectParam]:
    """`name: String, retries: Int = 3, tag: String?`"""
    params = []
    for raw in _split_params(plist):
        name_part, _, type_part = raw.partition(":")
        name = name_part.split()[-1] if name_part.split() else name_part.strip()
        type_hint = type_part.split("=")[0].strip() or None
        optional = "=" in raw or (type_hint is not None and type_hint.endswith("?"))
        params.append(SubjectParam(name=name, type_hint=type_hint, optional=optional))
    return params


@register_analyzer("kotlin")
def analyze_kotlin(path: Path, content: str, language: str) -> list[TestSubject]:
    """Top-level and member `fun`s, classes/objects, Spring and Ktor routes."""
    out = [
        _subject(
            path,
            kind=SubjectKind.FUNCTION,
            language=language,
            name=m[2],
            scored_text=block_for(f"fun {m[2]}", content) or content,
            content=content,
            signature=f"fun {m[2]}({m[3]})",
            exported="private" not in m[1],
            params=parse_params_kotlin(m[3]),
        )
        for m in KOTLIN_FUNCTION_RE.finditer(content)
    ]
    out.extend(
        _subject(
            path,
            kind=SubjectKind.CLASS,
            language=language,
            name=m[3],
            scored_text=content,
            content=content,
            signature=f"{m[1]}{m[2]} {m[3]}".strip(),
            exported="private" not in m[1],
        )
        for m in KOTLIN_CLASS_RE.finditer(content)
    )
    for m in KOTLIN_ROUTE_RE.finditer(content):
        method = (m[1] or m[3]).upper()
        out.append(_endpoint(path, language, method, m[2] or m[4], content))
    return out


# Lean

LEAN_DECL_RE = re.compile(
    r"^\s*(?:(?:private|protected|noncomputable|partial|unsafe|@\[[^\]]*\])\s+)*"
    r"(def|abbrev|theorem|lemma|structure|inductive|class)\s+([A-Za-z_][A-Za-z0-9_'.]*)",
    re.MULTILINE,
)
LEAN_TYPE_DECLS = frozenset({"structure", "inductive", "class"})
LEAN_RISK = 2


@register_analyzer("lean")
def analyze_lean(path: Path, content: str, language: str) -> list[TestSubject]:
    """Lean 4 declarations.

    Testing Lean mostly means getting proofs and definitions to check, so
    each declaration gets a flat low risk and no I/O.
    """
    out: list[TestSubject] = []
    for m in LEAN_DECL_RE.finditer(content):
        decl, name = m[1], m[2]
        out.append(
            TestSubject(
                id=f"{path}#lean:{decl}:{name}",
                kind=SubjectKind.CLASS if decl in LEAN_TYPE_DECLS else SubjectKind.FUNCTION,
                language=language,
                name=name,
                path=str(path),
                signature=f"{decl} {name}",
                exported="private" not in m[0],
                risk_score=LEAN_RISK,
                risk_factors=[f"lean declaration: {decl}"],
                meta={"lean_decl": decl},
            ),
        )
    return out

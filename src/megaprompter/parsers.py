"""Turn compiler and linter output into `Diagnostic` records.

Every parser takes `(stdout, stderr)` and scans `stdout + "\\n" + stderr`,
since tools disagree about which stream carries their messages.
"""

from __future__ import annotations

import re

from megaprompter.diagnostics import Diagnostic, Severity

SWIFT_RE = re.compile(r"^(.+?):(\d+):(\d+):\s+(error|warning):\s+(.+)$", re.MULTILINE)
TSC_RE = re.compile(
    r"^(.+?\.(?:ts|tsx)):(\d+):(\d+)\s*-\s*(error|warning)\s*TS(\d+):\s*(.+)$",
    re.MULTILINE | re.IGNORECASE,
)
GO_RE = re.compile(r"^(.+?\.go):(\d+)(?::(\d+))?:\s+(.*)$", re.MULTILINE)
RUST_ERROR_RE = re.compile(r"^error(?:\[(E\d+)\])?:\s*(.+)$")
RUST_WARNING_RE = re.compile(r"^warning:\s*(.+)$")
RUST_LOCATION_RE = re.compile(r"^\s*-->\s+(.+?):(\d+):(\d+)$")
PY_FILE_RE = re.compile(r'^\s*File\s+"(.+?)",\s+line\s+(\d+).*$')
PY_ERROR_RE = re.compile(r"^(SyntaxError|IndentationError|TabError|NameError|TypeError):\s*(.+)$")
JAVA_RE = re.compile(r"^(.+?\.java):(\d+):\s+(error|warning):\s+(.+)$", re.MULTILINE)
UNIX_RE = re.compile(r"^(.+?):(\d+):(\d+):\s*(.+)$", re.MULTILINE)
LEAN_RE = re.compile(
    r"^(?:(error|warning|info):\s+)?(.+?\.lean):(\d+):(\d+):\s+(?:(error|warning|info):\s+)?(.+)$",
    re.MULTILINE,
)


def _combined(stdout: str, stderr: str) -> str:
    return stdout + "\n" + stderr


def _int(value: str | None) -> int | None:
    return int(value) if value else None


def _severity(word: str | None, default: Severity = Severity.ERROR) -> Severity:
    if not word:
        return default
    return Severity(word.lower())


def parse_swift(stdout: str, stderr: str) -> list[Diagnostic]:
    """`/path/file.swift:10:5: error: cannot find 'X' in scope`"""
    return [
        Diagnostic(
            tool="swift build",
            language="swift",
            file=m[1],
            line=int(m[2]),
            column=int(m[3]),
            severity=_severity(m[4]),
            message=m[5],
        )
        for m in SWIFT_RE.finditer(_combined(stdout, stderr))
    ]


def parse_typescript(stdout: str, stderr: str) -> list[Diagnostic]:
    """`path.ts:10:7 - error TS1234: message`"""
    return [
        Diagnostic(
            tool="tsc",
            language="typescript",
            file=m[1],
            line=int(m[2]),
            column=int(m[3]),
            code="TS" + m[5],
            severity=_severity(m[4]),
            message=m[6],
        )
        for m in TSC_RE.finditer(_combined(stdout, stderr))
    ]


def parse_go(stdout: str, stderr: str) -> list[Diagnostic]:
    """`path/file.go:12:5: message` or `path/file.go:12: message`; always errors."""
    return [
        Diagnostic(
            tool="go build",
            language="go",
            file=m[1],
            line=int(m[2]),
            column=_int(m[3]),
            severity=Severity.ERROR,
            message=m[4],
        )
        for m in GO_RE.finditer(_combined(stdout, stderr))
    ]


def _rust_location(lines: list[str], start: int, stop_prefixes: tuple[str, ...]) -> re.Match[str] | None:
    for line in lines[start:]:
        loc = RUST_LOCATION_RE.match(line)
        if loc:
            return loc
        if line.startswith(stop_prefixes):
            return None
    return None


def parse_rust(stdout: str, stderr: str) -> list[Diagnostic]:
    """Parse `cargo check` output.

    An `error[E0599]: msg` or `warning: msg` header is paired with the next
    `--> file:line:col` line, looking ahead until another header starts.
    Errors without a location are dropped; warnings without one are kept
    with an empty file.
    """
    tool = "cargo check"
    lines = _combined(stdout, stderr).split("\n")
    results: list[Diagnostic] = []
    for i, line in enumerate(lines):
        if m := RUST_ERROR_RE.match(line):
            loc = _rust_location(lines, i + 1, ("error",))
            if loc:
                results.append(
                    Diagnostic(
                        tool=tool,
                        language="rust",
                        file=loc[1],
                        line=int(loc[2]),
                        column=int(loc[3]),
                        code=m[1] or None,
                        severity=Severity.ERROR,
                        message=m[2] or "error",
                    ),
                )
        if w := RUST_WARNING_RE.match(line):
            loc = _rust_location(lines, i + 1, ("warning", "error"))
            results.append(
                Diagnostic(
                    tool=tool,
                    language="rust",
                    file=loc[1] if loc else "",
                    line=int(loc[2]) if loc else None,
                    column=int(loc[3]) if loc else None,
                    severity=Severity.WARNING,
                    message=w[1],
                ),
            )
    return results


def parse_python(stdout: str, stderr: str) -> list[Diagnostic]:
    """Parse `python -m py_compile` tracebacks.

    Each `File "x.py", line N` line yields one error; the message and code
    come from the next `SyntaxError: ...`-style line, if any.
    """
    lines = _combined(stdout, stderr).split("\n")
    results: list[Diagnostic] = []
    for i, line in enumerate(lines):
        m = PY_FILE_RE.match(line)
        if not m:
            continue
        code: str | None = None
        message = "SyntaxError"
        for follow in lines[i + 1 :]:
            if em := PY_ERROR_RE.match(follow):
                code, message = em[1], em[2]
                break
        results.append(
            Diagnostic(
                tool="python -m py_compile",
                language="python",
                file=m[1],
                line=int(m[2]),
                code=code,
                severity=Severity.ERROR,
                message=message,
            ),
        )
    return results


def parse_java(stdout: str, stderr: str) -> list[Diagnostic]:
    """`path/File.java:10: error: message` (javac, maven, gradle)."""
    return [
        Diagnostic(
            tool="javac/maven",
            language="java",
            file=m[1],
            line=int(m[2]),
            severity=_severity(m[3]),
            message=m[4],
        )
        for m in JAVA_RE.finditer(_combined(stdout, stderr))
    ]


def parse_unix_style(stdout: str, stderr: str, *, language: str, tool: str) -> list[Diagnostic]:
    """`path:line:column: message`, as printed by `eslint -f unix`; always warnings."""
    return [
        Diagnostic(
            tool=tool,
            language=language,
            file=m[1],
            line=int(m[2]),
            column=int(m[3]),
            severity=Severity.WARNING,
            message=m[4],
        )
        for m in UNIX_RE.finditer(_combined(stdout, stderr))
    ]


def parse_lean(stdout: str, stderr: str) -> list[Diagnostic]:
    """`./Foo/Bar.lean:12:3: error: msg`, also `error: ./Foo/Bar.lean:12:3: msg` from lake."""
    return [
        Diagnostic(
            tool="lake build",
            language="lean",
            file=m[2],
            line=int(m[3]),
            column=int(m[4]),
            severity=_severity(m[5] or m[1]),
            message=m[6],
        )
        for m in LEAN_RE.finditer(_combined(stdout, stderr))
    ]

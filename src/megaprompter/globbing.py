"""Minimal glob matching over root-relative POSIX paths.

Supports `**` (any run of characters, across directories), `*` (within one
path segment) and `?` (one character). Everything else is literal.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path

from megaprompter.file_manipulation import relpath
from megaprompter.logging import logger


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored regular expression.

    Args:
        pattern (str): glob pattern such as `.github/workflows/*.yml`

    Returns:
        str: regular expression source anchored with `^` and `$`
    """
    out = ["^"]
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "*":
            if i + 1 < len(pattern) and pattern[i + 1] == "*":
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    out.append("$")
    return "".join(out)


@lru_cache(maxsize=512)
def _compiled(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(glob_to_regex(pattern))
    except re.error:
        logger.warning("Invalid glob pattern %r", pattern)
        return None


def match(rel_path: str, pattern: str) -> bool:
    """Check whether a root-relative POSIX path matches `pattern` in full."""
    regex = _compiled(pattern)
    if regex is None:
        return False
    return regex.fullmatch(rel_path) is not None


def match_any(rel_path: str, patterns: list[str] | tuple[str, ...]) -> bool:
    return any(match(rel_path, p) for p in patterns)


def find_matches(root: Path, pattern: str) -> list[Path]:
    """Return paths under `root` whose relative path matches `pattern`.

    Literal patterns test a single path directly. Wildcard patterns walk the
    tree, skipping hidden entries; without `**` the walk stops at the depth
    the pattern can reach.

    Args:
        root (Path): directory to search
        pattern (str): glob relative to `root`

    Returns:
        list[Path]: matching files and directories, sorted
    """
    if "*" not in pattern and "?" not in pattern:
        direct = root / pattern
        return [direct] if direct.exists() else []

    max_depth = None if "**" in pattern else pattern.count("/") + 1
    matches: list[Path] = []
    for current, dirs, files in os.walk(root):
        here = Path(current)
        depth = 0 if here == root else len(here.relative_to(root).parts)
        dirs[:] = [d for d in dirs if not d.startswith(".")]
        for name in [*dirs, *files]:
            if name.startswith("."):
                continue
            candidate = here / name
            if match(relpath(candidate, root), pattern):
                matches.append(candidate)
        if max_depth is not None and depth + 1 >= max_depth:
            dirs[:] = []
    return sorted(matches)

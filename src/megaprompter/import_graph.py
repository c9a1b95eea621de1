from __future__ import annotations

import re
from collections import Counter, defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from megaprompter.documentation import DocImport
from megaprompter.file_manipulation import read_head
from megaprompter.logging import logger
from megaprompter.rules import file_ext

if TYPE_CHECKING:
    from collections.abc import Sequence

IMPORT_LANGUAGES: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".swift": "swift",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".lean": "lean",
}

IMPORT_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "typescript": (
        re.compile(r"""^\s*import\s+(?:[^'"]*\s+from\s+)?['"]([^'"]+)['"]""", re.MULTILINE),
        re.compile(r"""^\s*export\s+[^'"]*\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
        re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
        re.compile(r"""import\(\s*['"]([^'"]+)['"]\s*\)"""),
    ),
    "python": (
        re.compile(r"^\s*import\s+([A-Za-z0-9_.]+)", re.MULTILINE),
        re.compile(r"^\s*from\s+([A-Za-z0-9_.]+)\s+import\s+", re.MULTILINE),
    ),
    "go": (re.compile(r'^\s*import\s+(?:[A-Za-z_.]+\s+)?"([^"]+)"', re.MULTILINE),),
    "rust": (re.compile(r"^\s*(?:pub\s+)?use\s+([A-Za-z0-9_:]+)", re.MULTILINE),),
    "swift": (re.compile(r"^\s*(?:@testable\s+)?import\s+([A-Za-z0-9_]+)", re.MULTILINE),),
    "java": (re.compile(r"^\s*import\s+(?:static\s+)?([A-Za-z0-9_.]+)", re.MULTILINE),),
    "lean": (re.compile(r"^\s*import\s+([A-Za-z0-9_.' \t]+?)\s*$", re.MULTILINE),),
}
IMPORT_PATTERNS["javascript"] = IMPORT_PATTERNS["typescript"]
IMPORT_PATTERNS["kotlin"] = IMPORT_PATTERNS["java"]

GO_BLOCK_RE = re.compile(r"import\s*\(\s*([^)]+)\)", re.DOTALL)
GO_QUOTED_RE = re.compile(r'"([^"]+)"')

RELATIVE_EXTS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".rs", ".swift", ".java", ".kt", ".kts", ".lean")  # fmt: skip
INDEX_FILES = ("index.ts", "index.tsx", "index.js", "mod.rs", "lib.rs", "__init__.py")


def parse_imports(content: str, language: str) -> list[str]:
    """Module specifiers imported by `content`, in order of appearance per pattern."""
    found: list[str] = []
    for pattern in IMPORT_PATTERNS.get(language, ()):
        found.extend(m[1] for m in pattern.finditer(content))
    if language == "go":
        for block in GO_BLOCK_RE.finditer(content):
            found.extend(m[1] for m in GO_QUOTED_RE.finditer(block[1]))
    if language == "lean":
        # `import A.B C.D` declares several modules on one line.
        found = [mod for line in found for mod in line.split()]
    return [raw.strip() for raw in found if raw.strip()]


class StemIndex:
    """Lookup of project files by file name and by name without extension."""

    def __init__(self, files: Sequence[Path]) -> None:
        self._by_stem: dict[str, list[Path]] = defaultdict(list)
        for f in files:
            self._by_stem[f.stem].append(f)
            self._by_stem[f.name].append(f)

    def unique(self, stem: str) -> Path | None:
        hits = self._by_stem.get(stem.strip(), [])
        return hits[0] if len(hits) == 1 else None


def is_likely_external(raw: str, language: str) -> bool:
    """Whether a specifier should not be resolved by file-name lookup.

    npm scopes, `node:` builtins and slash paths are external for JS/TS;
    dotted module paths with a slash are external for Go.
    """
    if language in {"typescript", "javascript"}:
        return raw.startswith(("@", "node:")) or "/" in raw
    if language == "go":
        return "." in raw and "/" in raw
    return False


def _probe(candidate: Path) -> Path | None:
    if candidate.is_file():
        return candidate
    for ext in RELATIVE_EXTS:
        with_ext = candidate.with_name(candidate.name + ext)
        if with_ext.is_file():
            return with_ext
    if candidate.is_dir():
        for index in INDEX_FILES:
            if (candidate / index).is_file():
                return candidate / index
    return None


def _resolve_dotted(root: Path, source: Path, raw: str, language: str) -> Path | None:
    """Resolve `A.B` (Lean, Python) to `A/B.<ext>` under the root or next to the source."""
    if language == "python" and raw.startswith("."):
        base = source.parent
        dots = len(raw) - len(raw.lstrip("."))
        for _ in range(dots - 1):
            base = base.parent
        rest = raw.lstrip(".")
        return _probe(base.joinpath(*rest.split("."))) if rest else _probe(base)
    ext = ".lean" if language == "lean" else ".py"
    parts = raw.split(".")
    for base in (root, root / "src", source.parent):
        candidate = base.joinpath(*parts[:-1], parts[-1] + ext)
        if candidate.is_file():
            return candidate
        if language == "python" and (base.joinpath(*parts) / "__init__.py").is_file():
            return base.joinpath(*parts) / "__init__.py"
    return None


def resolve_import(
    root: Path,
    source: Path,
    raw: str,
    language: str,
    index: StemIndex,
) -> tuple[bool, Path | None]:
    """Classify one import as internal or external and locate its file.

    Relative specifiers are always internal, even when no file matches.
    URLs and likely-external packages are external. Dotted Lean and Python
    modules are looked up as paths. Anything else is internal only when
    exactly one project file has that name.

    Returns:
        tuple[bool, Path | None]: (is_internal, resolved file)
    """
    if raw.startswith(("./", "../")):
        return True, _probe(source.parent / raw)
    if "://" in raw:
        return False, None
    if language in {"lean", "python"}:
        resolved = _resolve_dotted(root, source, raw, language)
        if resolved is not None or raw.startswith("."):
            return True, resolved
    if is_likely_external(raw, language):
        return False, None
    stem = raw.rsplit("/", 1)[-1]
    resolved = index.unique(stem)
    return (True, resolved) if resolved is not None else (False, None)


def _relativize(path: str, root: Path) -> str:
    return path.removeprefix(str(root).rstrip("/") + "/")


def render_ascii(root: Path, imports: Sequence[DocImport]) -> str:
    """One block per importing file, internal targets first, each sorted.

    ```
    src/app.ts
      └─> src/util.ts (internal)
      └─> react (external)
    ```
    """
    by_source: dict[str, set[tuple[bool, str]]] = defaultdict(set)
    for imp in imports:
        target = _relativize(imp.resolved_path or imp.raw, root) if imp.is_internal else imp.raw
        by_source[_relativize(imp.file, root)].add((imp.is_internal, target))

    lines: list[str] = []
    for source in sorted(by_source):
        lines.append(source)
        for internal, target in sorted(by_source[source], key=lambda t: (not t[0], t[1])):
            lines.append(f"  └─> {target} {'(internal)' if internal else '(external)'}")
    return "\n".join(lines)


def build_import_graph(
    root: Path,
    files: Sequence[Path],
    max_analyze_bytes: int,
) -> tuple[list[DocImport], str]:
    """Extract and resolve the imports of every supported source file.

    Args:
        root (Path): project root
        files (Sequence[Path]): files to read, usually from `ProjectScanner`
        max_analyze_bytes (int): bytes read per file

    Returns:
        tuple[list[DocImport], str]: the imports and their ASCII graph
    """
    root = Path(root)
    index = StemIndex(files)
    imports: list[DocImport] = []
    for path in files:
        language = IMPORT_LANGUAGES.get(file_ext(path))
        if language is None:
            continue
        content = read_head(path, max_analyze_bytes)
        for raw in parse_imports(content, language):
            internal, resolved = resolve_import(root, path, raw, language, index)
            imports.append(
                DocImport(
                    file=str(path),
                    language=language,
                    raw=raw,
                    is_internal=internal,
                    resolved_path=str(resolved) if resolved is not None else None,
                ),
            )
    logger.info("Import graph: %d import(s) across %d file(s)", len(imports), len(files))
    return imports, render_ascii(root, imports)


def external_summary(imports: Sequence[DocImport]) -> dict[str, int]:
    """How many times each external module is imported."""
    return dict(Counter(imp.raw for imp in imports if not imp.is_internal))

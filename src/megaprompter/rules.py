from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from megaprompter.config import (
    BASE_ALLOWED_EXTS,
    BASE_EXCLUDE_EXTS,
    BASE_EXCLUDE_NAMES,
    BASE_FORCE_GLOBS,
    BASE_FORCE_NAMES,
    BASE_PRUNE_DIRS,
    LANGUAGE_PRUNE_DIRS,
    TEST_DIR_NAMES,
    TEST_NAME_MARKERS,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from megaprompter.settings import ProjectConfig


class IncludeRules(BaseModel):
    """Include/exclude policy derived from the detected languages.

    Attributes:
        allowed_exts: Lowercase extensions (with dot) whose files are included.
        force_include_names: Exact file names always included.
        force_include_globs: Root-relative globs always included.
        prune_dirs: Directory names never descended into.
        exclude_names: Exact file names never included.
        exclude_exts: Name suffixes never included (may span dots, e.g. `.min.js`).
    """

    model_config = ConfigDict(frozen=True)

    allowed_exts: frozenset[str] = Field(..., description="Allowed extensions")
    force_include_names: frozenset[str] = Field(..., description="Always-included names")
    force_include_globs: tuple[str, ...] = Field(..., description="Always-included globs")
    prune_dirs: frozenset[str] = Field(..., description="Pruned directory names")
    exclude_names: frozenset[str] = Field(..., description="Excluded names")
    exclude_exts: frozenset[str] = Field(..., description="Excluded name suffixes")

    def has_excluded_suffix(self, name: str) -> bool:
        lower = name.lower()
        return any(lower.endswith(ext) for ext in self.exclude_exts)


def build_rules(
    languages: Iterable[str],
    overrides: ProjectConfig | None = None,
) -> IncludeRules:
    """Build the include rules for a set of detected languages.

    TypeScript projects drop `.js`/`.jsx` from the allowed extensions (`.mjs`
    and `.cjs` stay for tool configs). Each detected language may add build
    output directories to the prune set. Project overrides are applied last.

    Args:
        languages (Iterable[str]): detected language identifiers
        overrides (ProjectConfig | None): optional per-project adjustments

    Returns:
        IncludeRules: the resulting policy
    """
    langs = set(languages)
    allowed = set(BASE_ALLOWED_EXTS)
    prune = set(BASE_PRUNE_DIRS)

    if "typescript" in langs:
        allowed -= {".js", ".jsx"}

    for lang, extra in LANGUAGE_PRUNE_DIRS.items():
        if lang in langs:
            prune.update(extra)

    if overrides is not None:
        allowed.update(_normalize_ext(e) for e in overrides.extra_allowed_exts)
        allowed.difference_update(_normalize_ext(e) for e in overrides.removed_allowed_exts)
        prune.update(overrides.extra_prune_dirs)

    return IncludeRules(
        allowed_exts=frozenset(allowed),
        force_include_names=BASE_FORCE_NAMES,
        force_include_globs=BASE_FORCE_GLOBS,
        prune_dirs=frozenset(prune),
        exclude_names=BASE_EXCLUDE_NAMES,
        exclude_exts=BASE_EXCLUDE_EXTS,
    )


def _normalize_ext(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else "." + ext


def file_ext(path: Path | str) -> str:
    """Lowercase final extension with its dot, or "" when there is none."""
    return PurePosixPath(str(path)).suffix.lower()


def is_test_file(path: Path | str, root: Path | None = None) -> bool:
    """Heuristically decide whether `path` is a test source.

    Matches common naming conventions (`foo.test.ts`, `foo_test.go`,
    `test_foo.py`, ...) or any directory segment named like a test folder.
    When `root` is given only segments below it are considered.
    """
    p = Path(path)
    lower = p.name.lower()
    if lower.startswith("test_") or any(m in lower for m in TEST_NAME_MARKERS):
        return True
    if root is not None:
        try:
            p = p.relative_to(root)
        except ValueError:
            pass
    return any(part.lower() in TEST_DIR_NAMES for part in p.parts)

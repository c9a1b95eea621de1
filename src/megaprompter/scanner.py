from __future__ import annotations

from typing import TYPE_CHECKING

from megaprompter.file_manipulation import file_size, is_regular_file, relpath, walk_tree
from megaprompter.globbing import match_any
from megaprompter.logging import logger
from megaprompter.rules import build_rules, file_ext

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from megaprompter.detection import ProjectProfile
    from megaprompter.rules import IncludeRules


class ProjectScanner:
    """Select the source and config files that belong in a megaprompt.

    A single top-down walk; any directory or file whose root-relative path
    contains a pruned segment (or matches a user prune glob) is skipped
    together with its subtree, so dependency checkouts like
    `.build/checkouts/...` are never traversed.
    """

    def __init__(
        self,
        profile: ProjectProfile,
        max_file_bytes: int,
        extra_prune_dir_names: Sequence[str] = (),
        extra_prune_globs: Sequence[str] = (),
        rules: IncludeRules | None = None,
    ) -> None:
        self.profile = profile
        self.root = profile.root
        self.rules = rules or build_rules(profile.languages)
        self.max_file_bytes = max_file_bytes
        self.prune_names = set(self.rules.prune_dirs) | set(extra_prune_dir_names)
        self.prune_globs = tuple(extra_prune_globs)

    def collect_files(self) -> list[Path]:
        """Return eligible files sorted by their root-relative path."""
        selected = [
            path
            for path in walk_tree(self.root, prune=self.is_pruned)
            if self._should_consider(path) and self._should_include(path)
        ]
        selected.sort(key=lambda p: relpath(p, self.root))
        logger.info("Scanner selected %d file(s) under %s", len(selected), self.root)
        return selected

    def is_pruned(self, path: Path) -> bool:
        rel = relpath(path, self.root)
        if any(part in self.prune_names for part in rel.split("/")):
            return True
        return bool(self.prune_globs) and match_any(rel, self.prune_globs)

    def _should_consider(self, path: Path) -> bool:
        if not is_regular_file(path):
            return False
        name = path.name
        if name in self.rules.exclude_names:
            return False
        if self.rules.has_excluded_suffix(name):
            return False
        if name.startswith(".env"):
            return False
        size = file_size(path)
        return size is not None and size <= self.max_file_bytes

    def _should_include(self, path: Path) -> bool:
        name = path.name
        ext = file_ext(path)
        rel = relpath(path, self.root)

        if name in self.rules.force_include_names:
            return True
        if match_any(rel, self.rules.force_include_globs):
            return True
        if not ext and name.lower() in {"dockerfile", "makefile"}:
            return True
        if ext in self.rules.allowed_exts:
            return True
        return name.lower() in {"readme", "readme.md"}

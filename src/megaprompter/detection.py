from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from megaprompter.config import EXT2LANG, LANGUAGE_MARKERS
from megaprompter.exceptions import NotADirectoryTargetError
from megaprompter.file_manipulation import relpath
from megaprompter.globbing import find_matches
from megaprompter.logging import logger
from megaprompter.rules import file_ext
from megaprompter.settings import DEFAULT_MIN_SOURCE_FILES


class ProjectProfile(BaseModel):
    """Summary of what the detector found at a project root.

    Attributes:
        root: Absolute project root.
        languages: Detected language identifiers.
        markers: Root-relative paths of marker files that proved a language.
        is_code_project: Whether the safety check passed.
        why: Human-readable evidence lines, in discovery order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root: Path = Field(..., description="Project root")
    languages: frozenset[str] = Field(default_factory=frozenset, description="Detected languages")
    markers: frozenset[str] = Field(default_factory=frozenset, description="Marker paths")
    is_code_project: bool = Field(default=False, description="Safety check outcome")
    why: list[str] = Field(default_factory=list, description="Evidence lines")

    @property
    def uses_typescript(self) -> bool:
        return "typescript" in self.languages

    @property
    def uses_javascript(self) -> bool:
        return "javascript" in self.languages


class ProjectDetector:
    """Decide whether a directory is a code project and which stacks it uses.

    Conservative on purpose: a directory without any marker file needs at
    least `min_source_files` recognizable source files to qualify.
    """

    def __init__(self, min_source_files: int = DEFAULT_MIN_SOURCE_FILES) -> None:
        self.min_source_files = min_source_files

    def detect(self, root: Path) -> ProjectProfile:
        """Inspect `root` and build its profile.

        Args:
            root (Path): directory to inspect

        Raises:
            NotADirectoryTargetError: if `root` is not an existing directory.

        Returns:
            ProjectProfile: detected languages, markers and evidence
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise NotADirectoryTargetError(path=root)

        languages: set[str] = set()
        markers: set[str] = set()
        why: list[str] = []

        for lang, patterns in LANGUAGE_MARKERS.items():
            for pattern in patterns:
                for hit in find_matches(root, pattern):
                    rel = relpath(hit, root)
                    languages.add(lang)
                    markers.add(rel)
                    why.append(f"{lang} marker: {rel}")

        source_count = 0
        for path in self._iter_visible_files(root):
            lang = EXT2LANG.get(file_ext(path))
            if lang:
                languages.add(lang)
                source_count += 1

        is_project = bool(markers) or source_count >= self.min_source_files
        if not is_project:
            why.append(f"source file count: {source_count}")
        logger.info(
            "Detected project languages=%s markers=%d sources=%d",
            sorted(languages),
            len(markers),
            source_count,
        )
        return ProjectProfile(
            root=root,
            languages=frozenset(languages),
            markers=frozenset(markers),
            is_code_project=is_project,
            why=why,
        )

    @staticmethod
    def _iter_visible_files(root: Path) -> list[Path]:
        def on_error(err: OSError) -> None:
            logger.warning("Error enumerating %s: %s", err.filename, err.strerror)

        found: list[Path] = []
        for current, dirs, files in os.walk(root, onerror=on_error):
            # hidden entries include .git, .github and friends
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            found.extend(Path(current) / f for f in files if not f.startswith("."))
        return [p for p in found if p.is_file()]

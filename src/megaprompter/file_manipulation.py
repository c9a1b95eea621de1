from __future__ import annotations

import os
import stat
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from megaprompter.exceptions import ArtifactWriteError
from megaprompter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the file name.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.name


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def is_regular_file(path: Path) -> bool:
    """Return True if `path` is a regular file; symlinks are not followed."""
    try:
        st = path.lstat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def file_size(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


def read_utf8(path: Path) -> str | None:
    """Read a whole file as strict UTF-8.

    Args:
        path (Path): the file to read

    Returns:
        str | None: the decoded content, or None when the file cannot be read
            or is not valid UTF-8
    """
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def read_head(path: Path, max_bytes: int) -> str:
    """Read at most `max_bytes` bytes of a file, decoding leniently.

    Used by the analyzers, which only need an approximate view of large
    files. Undecodable bytes are replaced; unreadable files yield "".
    """
    try:
        with path.open("rb") as f:
            data = f.read(max(0, max_bytes))
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return ""
    return data.decode("utf-8", errors="replace")


def walk_tree(
    root: Path,
    *,
    prune: Callable[[Path], bool],
    skip_hidden: bool = False,
) -> list[Path]:
    """Walk `root` top-down and return every regular file not pruned.

    Pruned directories are removed from the walk so their subtree is never
    visited. Enumeration errors are logged and the walk continues.

    Args:
        root (Path): directory to walk
        prune (Callable[[Path], bool]): predicate for directories and files to skip
        skip_hidden (bool): also skip dot-prefixed entries

    Returns:
        list[Path]: absolute file paths in walk order
    """

    def on_error(err: OSError) -> None:
        logger.warning("Error enumerating %s: %s", err.filename, err.strerror)

    results: list[Path] = []
    for current, dirs, files in os.walk(root, onerror=on_error):
        here = Path(current)
        dirs[:] = sorted(
            d for d in dirs if not (skip_hidden and is_hidden(d)) and not prune(here / d)
        )
        for name in sorted(files):
            if skip_hidden and is_hidden(name):
                continue
            candidate = here / name
            if prune(candidate):
                continue
            results.append(candidate)
    return results


def build_tree_lines(
    root: Path,
    *,
    max_depth: int,
    prune: Callable[[Path], bool],
) -> list[str]:
    """Render the directory tree under `root` with box-drawing connectors.

    Hidden and pruned entries are omitted and siblings are sorted by name.
    The first line is the root's own name; depth 1 is its direct children.

    Args:
        root (Path): directory to render
        max_depth (int): deepest level listed
        prune (Callable[[Path], bool]): predicate for entries to leave out

    Returns:
        list[str]: the rendered lines
    """
    lines: list[str] = [root.name]

    def walk(directory: Path, depth: int, prefix: str) -> None:
        if depth > max_depth:
            return
        try:
            children = list(directory.iterdir())
        except OSError as e:
            logger.warning("Cannot list %s: %s", directory, e)
            return
        entries = sorted(
            (c for c in children if not is_hidden(c.name) and not prune(c)),
            key=lambda p: p.name,
        )
        for idx, entry in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + entry.name)
            if entry.is_dir():
                walk(entry, depth + 1, prefix + ("    " if last else "│   "))

    walk(root, 1, "")
    return lines


def now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def timestamp_slug() -> str:
    """Local timestamp used in artifact file names (`YYYYMMDD_HHMMSS`)."""
    return datetime.now().astimezone().strftime("%Y%m%d_%H%M%S")


def write_text_checked(path: Path, content: str) -> Path:
    """Write `content` to `path` and verify the file landed non-empty.

    Args:
        path (Path): destination file
        content (str): text to write as UTF-8

    Raises:
        ArtifactWriteError: if the write fails or the file is missing/empty afterwards.

    Returns:
        Path: the written path
    """
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ArtifactWriteError(path=path, reason=str(e)) from e
    size = file_size(path)
    if not size:
        raise ArtifactWriteError(path=path, reason="file missing or empty after write")
    return path


def update_symlink(link: Path, target: Path) -> bool:
    """Point `link` at `target`, replacing any existing symlink.

    Best effort: failures are logged and reported through the return value.
    A file or symlink already at `link` is replaced; a directory is not.

    Returns:
        bool: True if the link now points at `target`.
    """
    try:
        if link.is_symlink() or link.is_file():
            link.unlink()
        elif link.exists():
            logger.warning("Not replacing directory %s", link)
            return False
        link.symlink_to(target.name if target.parent == link.parent else target)
    except OSError as e:
        logger.warning("Could not update symlink %s: %s", link, e)
        return False
    return True

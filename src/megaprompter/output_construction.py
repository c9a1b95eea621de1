from __future__ import annotations

import io
from pathlib import Path
from typing import TYPE_CHECKING

from megaprompter.file_manipulation import (
    read_utf8,
    relpath,
    timestamp_slug,
    update_symlink,
    write_text_checked,
)
from megaprompter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

CDATA_END = "]]>"


def cdata_safe(text: str) -> str:
    """Make `text` safe to embed inside a CDATA section.

    A literal `]]>` would end the section early, so it is split across two
    sections (`]]]]><![CDATA[>`), which reads back as the original text.
    """
    return text.replace(CDATA_END, "]]]]><![CDATA[>")


def cdata(text: str) -> str:
    return f"<![CDATA[{cdata_safe(text)}]]>"


def escape_attr(value: str) -> str:
    """Escape a string for use inside a double-quoted XML attribute."""
    return (
        value.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def build_megaprompt(root: Path, files: Sequence[Path]) -> str:
    """Build the pseudo-XML megaprompt for the selected files.

    Element names are the root-relative POSIX paths themselves, so the
    result is not strict XML; it is meant for LLM consumption. Files that are
    unreadable or not valid UTF-8 are skipped with a warning and produce no
    element at all.

    Args:
        root (Path): project root used to relativise file paths
        files (Sequence[Path]): files to embed, in output order

    Returns:
        str: the megaprompt text
    """
    out = io.StringIO()
    out.write("<context>")
    included = 0
    for path in files:
        content = read_utf8(path)
        rel = relpath(path, root)
        if content is None:
            logger.warning("Skipping non-UTF-8 or unreadable file %s", rel)
            continue
        out.write(f"\n<{rel}>\n<![CDATA[\n{cdata_safe(content)}\n]]>\n</{rel}>")
        included += 1
    out.write("\n</context>")
    logger.info("Built megaprompt with %d of %d file(s)", included, len(files))
    return out.getvalue()


def write_megaprompt(root: Path, content: str) -> Path:
    """Persist the megaprompt as `.MEGAPROMPT_<timestamp>` in `root`."""
    return write_text_checked(root / f".MEGAPROMPT_{timestamp_slug()}", content)


def artifact_name(prefix: str, *, hidden: bool = False, suffix: str | None = None) -> str:
    """Artifact file name such as `MEGADIAG_20250101_120000` or `.MEGADIAG_latest`."""
    name = f"{prefix}_{suffix or timestamp_slug()}"
    return "." + name if hidden else name


def build_artifact(tag: str, generated_at: str, sections: Sequence[tuple[str, str]]) -> str:
    """Wrap several payloads in a single pseudo-XML artifact envelope.

    Args:
        tag (str): envelope element name, e.g. `diagnostics_artifact`
        generated_at (str): timestamp placed in the `generatedAt` attribute
        sections (Sequence[tuple[str, str]]): (element name, payload) pairs,
            each written as a CDATA section

    Returns:
        str: the envelope text
    """
    out = io.StringIO()
    out.write(f'<{tag} generatedAt="{escape_attr(generated_at)}">\n')
    for name, payload in sections:
        out.write(f"  <{name}><![CDATA[\n{cdata_safe(payload)}\n  ]]></{name}>\n")
    out.write(f"</{tag}>")
    return out.getvalue()


def write_artifact(
    directory: Path,
    prefix: str,
    content: str,
    *,
    hidden: bool = False,
) -> Path:
    """Write an artifact file and refresh its `<prefix>_latest` symlink.

    The symlink update is best effort; a failure there is logged and does not
    affect the returned path.

    Raises:
        ArtifactWriteError: if the artifact itself could not be written.

    Returns:
        Path: the artifact path
    """
    directory = Path(directory)
    path = write_text_checked(directory / artifact_name(prefix, hidden=hidden), content)
    update_symlink(directory / artifact_name(prefix, hidden=hidden, suffix="latest"), path)
    logger.info("Wrote artifact %s", path)
    return path


def preview_lines(text: str, limit: int) -> str:
    """First `limit` lines of `text`, followed by an ellipsis line if truncated."""
    lines = text.splitlines()
    head = "\n".join(lines[:limit])
    return head + ("\n..." if len(lines) > limit else "")

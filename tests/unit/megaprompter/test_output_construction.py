from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pytest

from megaprompter.output_construction import (
    artifact_name,
    build_artifact,
    build_megaprompt,
    cdata,
    cdata_safe,
    escape_attr,
    preview_lines,
    write_artifact,
    write_megaprompt,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_escape_attr_escapes_xml_specials() -> None:
    assert escape_attr('a & "b" <c>') == "a &amp; &quot;b&quot; &lt;c&gt;"


@pytest.mark.unit
def test_cdata_splits_terminator() -> None:
    assert cdata_safe("x]]>y") == "x]]]]><![CDATA[>y"
    assert cdata("plain") == "<![CDATA[plain]]>"
    assert cdata("]]>").count("<![CDATA[") == 2


@pytest.mark.unit
def test_build_megaprompt_layout(tmp_path: Path) -> None:
    a = tmp_path / "src" / "a.py"
    a.parent.mkdir()
    a.write_text("print('a')", encoding="utf-8")

    blob = build_megaprompt(tmp_path, [a])

    assert blob == "<context>\n<src/a.py>\n<![CDATA[\nprint('a')\n]]>\n</src/a.py>\n</context>"


@pytest.mark.unit
def test_build_megaprompt_skips_non_utf8(tmp_path: Path) -> None:
    good = tmp_path / "good.py"
    bad = tmp_path / "bad.py"
    good.write_text("x = 1", encoding="utf-8")
    bad.write_bytes(b"\xc3\x28 invalid")

    blob = build_megaprompt(tmp_path, [bad, good])

    assert "<bad.py>" not in blob
    assert "<good.py>" in blob


@pytest.mark.unit
def test_build_megaprompt_keeps_cdata_terminator_intact(tmp_path: Path) -> None:
    f = tmp_path / "tricky.xml"
    f.write_text("<a><![CDATA[x]]></a>", encoding="utf-8")

    blob = build_megaprompt(tmp_path, [f])

    assert "x]]]]><![CDATA[></a>" in blob


@pytest.mark.unit
def test_write_megaprompt_uses_hidden_timestamped_name(tmp_path: Path) -> None:
    path = write_megaprompt(tmp_path, "<context>\n</context>")

    assert re.fullmatch(r"\.MEGAPROMPT_\d{8}_\d{6}", path.name)
    assert path.read_text(encoding="utf-8") == "<context>\n</context>"


@pytest.mark.unit
def test_artifact_name_variants() -> None:
    assert artifact_name("MEGATEST", suffix="latest") == "MEGATEST_latest"
    assert artifact_name("MEGATEST", hidden=True, suffix="latest") == ".MEGATEST_latest"
    assert re.fullmatch(r"MEGADOC_\d{8}_\d{6}", artifact_name("MEGADOC"))


@pytest.mark.unit
def test_build_artifact_envelope() -> None:
    text = build_artifact(
        "diagnostics_artifact",
        'now"',
        [("xml", "<diagnostics/>"), ("json", "{}"), ("fix_prompt", "fix ]]> this")],
    )

    assert text.startswith('<diagnostics_artifact generatedAt="now&quot;">\n')
    assert "  <xml><![CDATA[\n<diagnostics/>\n  ]]></xml>" in text
    assert "  <json><![CDATA[\n{}\n  ]]></json>" in text
    assert "fix ]]]]><![CDATA[> this" in text
    assert text.endswith("</diagnostics_artifact>")


@pytest.mark.unit
def test_write_artifact_creates_latest_symlink(tmp_path: Path) -> None:
    path = write_artifact(tmp_path, "MEGATEST", "<x/>")

    latest = tmp_path / "MEGATEST_latest"
    assert re.fullmatch(r"MEGATEST_\d{8}_\d{6}", path.name)
    assert latest.is_symlink()
    assert latest.read_text(encoding="utf-8") == "<x/>"


@pytest.mark.unit
def test_write_artifact_hidden(tmp_path: Path) -> None:
    path = write_artifact(tmp_path, "MEGADIAG", "<x/>", hidden=True)

    assert path.name.startswith(".MEGADIAG_")
    assert (tmp_path / ".MEGADIAG_latest").is_symlink()


@pytest.mark.unit
def test_preview_lines() -> None:
    assert preview_lines("a\nb\nc", 2) == "a\nb\n..."
    assert preview_lines("a\nb", 5) == "a\nb"

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from megaprompter.doc_fetcher import DocFetcher, extract_links, extract_title, is_doc_file, preview
from megaprompter.documentation import FetchedDoc

PAGES = {
    "https://docs.example.com/": (
        "<html><head><title> Home </title></head><body>"
        '<a href="/guide#intro">Guide</a> <a href="https://other.example.org/x">Other</a>'
        "</body></html>"
    ),
    "https://docs.example.com/guide": '<html><body><a href="deep">Deep</a></body></html>',
    "https://docs.example.com/deep": "<html><title>Deep</title></html>",
}


def _client(requested: list[str]) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested.append(url)
        if url in PAGES:
            return httpx.Response(200, text=PAGES[url])
        return httpx.Response(404, text="missing")

    return httpx.Client(transport=httpx.MockTransport(handler))


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
def test_helpers() -> None:
    assert extract_title("<TITLE>Docs</TITLE>") == "Docs"
    assert extract_title("<p>no title</p>") is None
    assert extract_links('<a class="x" href="../a.html#top">', "https://h/b/c.html") == ["https://h/a.html"]
    assert preview("\n\n a\n\nb \n") == "a\nb"
    assert preview("   ") == ""
    assert is_doc_file(Path("docs/README"))
    assert not is_doc_file(Path("src/app.py"))


@pytest.mark.unit
def test_single_page_fetch_by_default() -> None:
    requested: list[str] = []
    with DocFetcher(client=_client(requested)) as fetcher:
        docs = fetcher.fetch("https://docs.example.com/")

    assert requested == ["https://docs.example.com/"]
    assert [(d.uri, d.title) for d in docs] == [("https://docs.example.com/", "Home")]


@pytest.mark.unit
def test_crawl_stays_on_host_and_respects_depth() -> None:
    requested: list[str] = []
    fetcher = DocFetcher(max_depth=2, client=_client(requested))

    docs = fetcher.fetch("https://docs.example.com/")

    assert requested == ["https://docs.example.com/", "https://docs.example.com/guide"]
    # no <title>: the last path segment is used
    assert [d.title for d in docs] == ["Home", "guide"]


@pytest.mark.unit
def test_deeper_crawl_follows_relative_links() -> None:
    requested: list[str] = []
    fetcher = DocFetcher(max_depth=3, client=_client(requested))

    docs = fetcher.fetch("https://docs.example.com/")

    assert [d.uri for d in docs] == [
        "https://docs.example.com/",
        "https://docs.example.com/guide",
        "https://docs.example.com/deep",
    ]


@pytest.mark.unit
def test_disallowed_domain_is_skipped() -> None:
    requested: list[str] = []
    fetcher = DocFetcher(allow_domains=["docs.example.com"], client=_client(requested))

    assert fetcher.fetch("https://other.example.org/x") == []
    assert requested == []


@pytest.mark.unit
def test_http_errors_are_skipped() -> None:
    requested: list[str] = []
    fetcher = DocFetcher(client=_client(requested))

    assert fetcher.fetch("https://docs.example.com/nope") == []
    assert requested == ["https://docs.example.com/nope"]


@pytest.mark.unit
def test_non_utf8_pages_are_skipped() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda _: httpx.Response(200, content=b"\xff\xfe\xfa")))

    assert DocFetcher(client=client).fetch("https://docs.example.com/") == []


@pytest.mark.unit
def test_local_directory_collects_sorted_doc_files(tmp_path: Path) -> None:
    _write(tmp_path, "b.md", "# B\n\nbody\n")
    _write(tmp_path, "a/guide.rst", "Guide\n=====\n")
    _write(tmp_path, "README", "read me\n")
    _write(tmp_path, "main.py", "print('x')\n")
    _write(tmp_path, ".hidden/secret.md", "no\n")

    docs = DocFetcher().fetch(str(tmp_path))

    assert [d.title for d in docs] == ["README", "guide.rst", "b.md"]
    assert docs[2].content_preview == "# B\nbody"


@pytest.mark.unit
def test_local_file_and_file_uri(tmp_path: Path) -> None:
    doc = _write(tmp_path, "notes.txt", "hello\n")

    assert DocFetcher().fetch(f"file://{doc}") == [FetchedDoc(uri=str(doc), title="notes.txt", content_preview="hello")]
    assert DocFetcher().fetch(str(tmp_path / "missing")) == []


@pytest.mark.unit
def test_summarize() -> None:
    docs = [FetchedDoc(uri=f"u{i}", title=f"t{i}") for i in range(13)]

    assert DocFetcher.summarize([]) == "No docs fetched."
    summary = DocFetcher.summarize(docs).split("\n")
    assert summary[0] == "Fetched 13 doc(s):"
    assert summary[1] == "- t0 [u0]"
    assert summary[-1] == "... 1 more"
    assert len(summary) == 14

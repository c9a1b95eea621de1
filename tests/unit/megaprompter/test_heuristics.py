from __future__ import annotations

from pathlib import Path

import pytest

from megaprompter import heuristics
from megaprompter.testplan import SubjectKind

TS_HANDLER = """\
import { Request, Response } from "express";

export const orchestrateETL = async (req: Request, res: Response) => {
  if (!req.body) {
    return res.status(400).send("missing");
  }
  await fetch("https://example.com");
};

export function add(a: number, b?: number) {
  return a + (b ?? 0);
}

class Hidden {}

app.get("/health", (req, res) => res.send("ok"));
router.post('/items', handler);
"""

PY_SOURCE = """\
from fastapi import FastAPI

app = FastAPI()


@app.get("/items")
async def list_items(limit: int = 10, q: str | None = None):
    return []


@app.route("/legacy")
def legacy(self, value):
    return value


def _helper(x):
    return x


class Store:
    pass
"""


def _by_name(subjects):
    return {s.name: s for s in subjects}


@pytest.mark.unit
def test_typescript_async_arrow_function_is_a_subject() -> None:
    path = Path("/p/src/etl.ts")
    subjects = _by_name(heuristics.analyze_file(path, TS_HANDLER, "typescript"))

    etl = subjects["orchestrateETL"]
    assert etl.kind == SubjectKind.FUNCTION
    assert etl.exported is True
    assert etl.id == "/p/src/etl.ts#fn:orchestrateETL"
    assert [(p.name, p.type_hint) for p in etl.params] == [("req", "Request"), ("res", "Response")]
    assert etl.io.network is True
    assert etl.io.concurrency is True


@pytest.mark.unit
def test_typescript_functions_classes_and_routes() -> None:
    subjects = _by_name(heuristics.analyze_file(Path("/p/a.ts"), TS_HANDLER, "typescript"))

    add = subjects["add"]
    assert [(p.name, p.optional) for p in add.params] == [("a", False), ("b", True)]
    assert subjects["Hidden"].kind == SubjectKind.CLASS
    assert subjects["Hidden"].exported is False

    health = subjects["GET /health"]
    assert health.kind == SubjectKind.ENDPOINT
    assert health.meta == {"method": "GET", "path": "/health"}
    assert health.risk_factors[0] == "http route"
    assert "POST /items" in subjects


@pytest.mark.unit
def test_python_async_defs_and_route_decorators() -> None:
    subjects = _by_name(heuristics.analyze_file(Path("/p/app.py"), PY_SOURCE, "python"))

    items = subjects["list_items"]
    assert items.kind == SubjectKind.FUNCTION
    assert [(p.name, p.optional) for p in items.params] == [("limit", True), ("q", True)]
    assert [p.name for p in subjects["legacy"].params] == ["value"]
    assert subjects["_helper"].exported is False
    assert subjects["Store"].kind == SubjectKind.CLASS
    assert subjects["GET /items"].meta["method"] == "GET"
    # `@app.route` without methods is treated as GET
    assert "GET /legacy" in subjects


@pytest.mark.unit
def test_go_exported_functions_and_routes() -> None:
    source = """\
package api

func Serve(addr string, retries int) error {
    http.HandleFunc("/ping", ping)
    r.POST("/jobs", createJob)
    return nil
}

func (s *Server) helper() {}
"""
    subjects = _by_name(heuristics.analyze_file(Path("/p/api.go"), source, "go"))

    assert subjects["Serve"].exported is True
    assert [(p.name, p.type_hint) for p in subjects["Serve"].params] == [("addr", "string"), ("retries", "int")]
    assert subjects["helper"].exported is False
    assert subjects["GET /ping"].kind == SubjectKind.ENDPOINT
    assert "POST /jobs" in subjects


@pytest.mark.unit
def test_kotlin_functions_classes_and_routes() -> None:
    source = """\
data class User(val name: String)

class UserService {
    suspend fun load(id: Long, cache: Boolean = true): User? = null
    private fun secret() {}
}

@GetMapping("/users")
fun users(): List<User> = listOf()
"""
    subjects = _by_name(heuristics.analyze_file(Path("/p/User.kt"), source, "kotlin"))

    assert subjects["User"].kind == SubjectKind.CLASS
    assert subjects["UserService"].signature == "class UserService"
    load = subjects["load"]
    assert [(p.name, p.optional) for p in load.params] == [("id", False), ("cache", True)]
    assert subjects["secret"].exported is False
    assert subjects["GET /users"].kind == SubjectKind.ENDPOINT


@pytest.mark.unit
def test_lean_declarations_get_flat_risk() -> None:
    source = """\
structure Point where
  x : Nat

private def helper (n : Nat) : Nat := n

theorem add_comm' (a b : Nat) : a + b = b + a := by omega
"""
    subjects = heuristics.analyze_file(Path("/p/Geo.lean"), source, "lean")

    assert [s.id for s in subjects] == [
        "/p/Geo.lean#lean:structure:Point",
        "/p/Geo.lean#lean:def:helper",
        "/p/Geo.lean#lean:theorem:add_comm'",
    ]
    assert {s.risk_score for s in subjects} == {2}
    assert subjects[0].kind == SubjectKind.CLASS
    assert subjects[1].exported is False
    assert subjects[2].meta == {"lean_decl": "theorem"}


@pytest.mark.unit
def test_risk_score_counts_branches_and_io() -> None:
    text = "def f():\n    if a:\n        pass\n    else:\n        pass\n    for x in y:\n        open('f')\n    os.environ['X']\n"

    score, factors = heuristics.risk_score(text)

    assert score == 1 + 1 + 1 + 1
    assert factors == ["branches ~3", "io: fs,env"]


@pytest.mark.unit
def test_risk_score_is_capped() -> None:
    text = " if" * 40 + " async redis sqlalchemy http. open( os.environ" + "\nline" * 250

    score, factors = heuristics.risk_score(text)

    assert score == heuristics.MAX_RISK
    assert "concurrency hints" in factors
    assert factors[-1].startswith("long file")


@pytest.mark.unit
def test_plain_code_has_minimum_risk() -> None:
    assert heuristics.risk_score("x = 1\n") == (1, [])


@pytest.mark.unit
def test_language_for_only_reports_analyzed_languages() -> None:
    assert heuristics.language_for("a/b.tsx") == "typescript"
    assert heuristics.language_for("Main.kt") == "kotlin"
    assert heuristics.language_for("notes.md") is None

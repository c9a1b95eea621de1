from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from megaprompter import parsers
from megaprompter.config import BASE_PRUNE_DIRS
from megaprompter.diagnostics import Diagnostic, DiagnosticsReport, LanguageDiagnostics
from megaprompter.file_manipulation import now_iso, relpath, walk_tree
from megaprompter.globbing import match_any
from megaprompter.logging import logger
from megaprompter.process import run_command, which
from megaprompter.rules import file_ext, is_test_file

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from megaprompter.detection import ProjectProfile

MIN_TIMEOUT_SECONDS = 10
PYTHON_FILE_TIMEOUT_CAP = 30
DEV_NULL = "NUL" if os.name == "nt" else "/dev/null"
TS_TEST_GLOBS = ["**/*.test.ts", "**/*.spec.ts", "**/*.test.tsx", "**/*.spec.tsx"]
JS_TEST_GLOBS = ["**/*.test.js", "**/*.spec.js", "**/*.test.jsx", "**/*.spec.jsx"]


def relabel(issues: list[Diagnostic], *, language: str, tool: str) -> list[Diagnostic]:
    return [d.model_copy(update={"language": language, "tool": tool}) for d in issues]


class DiagnosticsRunner:
    """Run each applicable language toolchain and collect its diagnostics.

    Languages are attempted based on root-level markers (Python is attempted
    whenever `.py` files exist). A missing tool is logged and leaves an empty
    entry; every attempted language stays in the report even with no issues.
    """

    def __init__(
        self,
        root: Path,
        timeout_seconds: int,
        ignore_names: Sequence[str] = (),
        ignore_globs: Sequence[str] = (),
        *,
        include_tests: bool = False,
    ) -> None:
        self.root = Path(root)
        self.timeout = max(MIN_TIMEOUT_SECONDS, int(timeout_seconds))
        self.ignore_names = set(ignore_names)
        self.ignore_globs = list(ignore_globs)
        self.include_tests = include_tests

    def _has(self, *names: str) -> bool:
        return any((self.root / n).exists() for n in names)

    def run(self, profile: ProjectProfile | None = None) -> DiagnosticsReport:
        """Run every applicable checker.

        Args:
            profile (ProjectProfile | None): detection result; only logged, since
                checkers key off root-level build files directly

        Returns:
            DiagnosticsReport: one entry per attempted language, in a fixed order
        """
        if profile is not None:
            logger.info("Diagnosing %s (languages=%s)", self.root, sorted(profile.languages))
        steps: list[tuple[bool, Callable[[], LanguageDiagnostics]]] = [
            (self._has("Package.swift"), self.run_swift),
            (self._has("tsconfig.json", "package.json"), self.run_typescript_or_javascript),
            (self._has("go.mod"), self.run_go),
            (self._has("Cargo.toml"), self.run_rust),
            (True, self.run_python),
            (self._has("pom.xml", "build.gradle", "build.gradle.kts"), self.run_java),
            (self._has("lakefile.lean", "lean-toolchain"), self.run_lean),
        ]
        languages: list[LanguageDiagnostics] = []
        for applicable, step in steps:
            if not applicable:
                continue
            result = step()
            if result is not None:
                languages.append(self.filter_ignored(result))
        return DiagnosticsReport(languages=languages, generated_at=now_iso())

    def _exec(self, exe: str, args: list[str], timeout: int | None = None) -> tuple[str, str]:
        res = run_command(exe, args, self.root, timeout or self.timeout)
        if res.timed_out:
            logger.warning("%s %s timed out; partial output parsed", exe, " ".join(args))
        return res.stdout, res.stderr

    def run_swift(self) -> LanguageDiagnostics:
        issues: list[Diagnostic] = []
        swift = which("swift")
        if swift:
            args = ["build", "-c", "debug"]
            if self.include_tests:
                args.append("--build-tests")
            issues += parsers.parse_swift(*self._exec(swift, args))
        else:
            logger.warning("swift not found in PATH; skipping Swift diagnostics")
        return LanguageDiagnostics(name="swift", tool="swift build", issues=issues)

    def run_lean(self) -> LanguageDiagnostics:
        issues: list[Diagnostic] = []
        lake = which("lake")
        if lake:
            # may download toolchains on a first run
            issues += parsers.parse_lean(*self._exec(lake, ["build"]))
        else:
            logger.warning("lake not found in PATH; skipping Lean diagnostics (install Lean 4 via elan)")
        return LanguageDiagnostics(name="lean", tool="lake build", issues=issues)

    def _npm_build_as_typescript(self) -> list[Diagnostic]:
        for name, args in (
            ("npm", ["run", "-s", "build"]),
            ("yarn", ["build", "--silent"]),
            ("pnpm", ["-s", "build"]),
        ):
            exe = which(name)
            if exe:
                return parsers.parse_typescript(*self._exec(exe, args))
        logger.warning("No npm/yarn/pnpm found for JS/TS; skipping")
        return []

    def run_typescript_or_javascript(self) -> LanguageDiagnostics:
        """Type-check TypeScript, or JavaScript through the TS checker, eslint and the build script."""
        issues: list[Diagnostic] = []
        has_ts = self._has("tsconfig.json")
        npx = which("npx")

        if has_ts:
            tool = "tsc"
            tsc = which("tsc")
            if npx:
                issues += parsers.parse_typescript(*self._exec(npx, ["-y", "tsc", "-p", ".", "--noEmit"]))
            elif tsc:
                issues += parsers.parse_typescript(*self._exec(tsc, ["-p", ".", "--noEmit"]))
            else:
                logger.warning("tsc not found; attempting npm run build")
                tool = "npm run build"
                issues += self._npm_build_as_typescript()
        else:
            tool = "js diagnostics"
            if npx:
                checked = parsers.parse_typescript(
                    *self._exec(npx, ["-y", "tsc", "--allowJs", "--checkJs", "--noEmit"]),
                )
                if checked:
                    tool = "tsc --allowJs --checkJs"
                    issues += relabel(checked, language="javascript", tool=tool)
                if not issues:
                    linted = parsers.parse_unix_style(
                        *self._exec(npx, ["-y", "eslint", "-f", "unix", "."]),
                        language="javascript",
                        tool="eslint",
                    )
                    if linted:
                        tool = "eslint -f unix"
                    issues += linted
            if not issues:
                tool = "npm run build"
                issues += relabel(self._npm_build_as_typescript(), language="javascript", tool=tool)

        if self.include_tests:
            language = "typescript" if has_ts else "javascript"
            globs = TS_TEST_GLOBS if has_ts else JS_TEST_GLOBS
            eslint = which("eslint")
            if npx:
                out = self._exec(npx, ["-y", "eslint", "-f", "unix", *globs])
                issues += parsers.parse_unix_style(*out, language=language, tool="eslint")
            elif eslint:
                out = self._exec(eslint, ["-f", "unix", *globs])
                issues += parsers.parse_unix_style(*out, language=language, tool="eslint")
            else:
                logger.warning("eslint not found; skipping JS/TS test file diagnostics")

        return LanguageDiagnostics(name="typescript" if has_ts else "javascript", tool=tool, issues=issues)

    def run_go(self) -> LanguageDiagnostics:
        """Build all packages at once, then each package on its own.

        `-gcflags=all=-e` lifts the per-package error cap, and building
        packages individually keeps one broken package from hiding the rest.
        """
        issues: list[Diagnostic] = []
        go = which("go")
        if not go:
            logger.warning("go not found; skipping Go diagnostics")
            return LanguageDiagnostics(name="go", tool="go build", issues=issues)

        issues += parsers.parse_go(*self._exec(go, ["build", "-gcflags=all=-e", "./..."]))

        packages = [p for p in self._list_go_packages(go) if not self._is_ignored_import_path(p)]
        if not packages:
            packages = self._go_package_dirs()
        for pkg in packages:
            issues += parsers.parse_go(*self._exec(go, ["build", "-gcflags=all=-e", pkg]))
            if self.include_tests:
                issues += parsers.parse_go(*self._exec(go, ["test", "-c", "-o", DEV_NULL, pkg]))

        return LanguageDiagnostics(name="go", tool="go build (per-package, -gcflags=all=-e)", issues=issues)

    def _list_go_packages(self, go: str) -> list[str]:
        res = run_command(go, ["list", "./..."], self.root, self.timeout)
        if res.exit_code != 0 and not res.stdout and not res.stderr:
            return []
        found = {line.strip() for line in res.stdout.splitlines()}
        return sorted(p for p in found if p and p != "std" and " " not in p)

    def _go_package_dirs(self) -> list[str]:
        dirs: set[str] = set()
        for path in walk_tree(self.root, prune=self.is_ignored, skip_hidden=True):
            if file_ext(path) != ".go":
                continue
            rel = relpath(path.parent, self.root) if path.parent != self.root else ""
            if "vendor" in rel.split("/"):
                continue
            dirs.add("./" + rel if rel else ".")
        return sorted(dirs)

    def _is_ignored_import_path(self, pkg: str) -> bool:
        return any(part in self.ignore_names for part in pkg.split("/"))

    def run_rust(self) -> LanguageDiagnostics:
        issues: list[Diagnostic] = []
        cargo = which("cargo")
        if cargo:
            issues += parsers.parse_rust(*self._exec(cargo, ["check", "--color", "never"]))
            if self.include_tests:
                issues += parsers.parse_rust(*self._exec(cargo, ["test", "--no-run", "--color", "never"]))
        else:
            logger.warning("cargo not found; skipping Rust diagnostics")
        return LanguageDiagnostics(name="rust", tool="cargo check", issues=issues)

    def python_files(self) -> list[Path]:
        """`.py` files under the root, skipping pruned dirs, ignores and (by default) tests."""
        return [
            path
            for path in walk_tree(self.root, prune=self._python_prune, skip_hidden=True)
            if file_ext(path) == ".py" and (self.include_tests or not is_test_file(path, self.root))
        ]

    def _python_prune(self, path: Path) -> bool:
        if path.name in BASE_PRUNE_DIRS or path.name == "site-packages":
            return True
        return self.is_ignored(path)

    def run_python(self) -> LanguageDiagnostics | None:
        files = self.python_files()
        if not files:
            return None
        issues: list[Diagnostic] = []
        python = which("python3") or which("python")
        if python:
            timeout = min(self.timeout, PYTHON_FILE_TIMEOUT_CAP)
            for path in files:
                out = self._exec(python, ["-m", "py_compile", str(path)], timeout=timeout)
                issues += parsers.parse_python(*out)
        else:
            logger.warning("python3/python not found; skipping Python diagnostics")
        return LanguageDiagnostics(name="python", tool="python -m py_compile", issues=issues)

    def run_java(self) -> LanguageDiagnostics:
        issues: list[Diagnostic] = []
        mvn = which("mvn")
        if self._has("pom.xml") and mvn:
            goal = "test-compile" if self.include_tests else "compile"
            issues += parsers.parse_java(*self._exec(mvn, ["-q", "-DskipTests", goal]))
            return LanguageDiagnostics(name="java", tool=f"mvn {goal}", issues=issues)
        gradle = which("gradle") or which("gradlew")
        local_wrapper = self.root / "gradlew"
        if gradle is None and local_wrapper.is_file() and os.access(local_wrapper, os.X_OK):
            gradle = str(local_wrapper)
        if self._has("build.gradle", "build.gradle.kts") and gradle:
            task = "testClasses" if self.include_tests else "classes"
            issues += parsers.parse_java(*self._exec(gradle, ["-q", task]))
            return LanguageDiagnostics(name="java", tool=f"gradle {task}", issues=issues)
        logger.warning("No Maven/Gradle found; skipping Java diagnostics")
        return LanguageDiagnostics(name="java", tool="javac/maven", issues=issues)

    def _relative(self, file: str) -> str:
        p = Path(file)
        if p.is_absolute():
            return relpath(p, self.root)
        return file.removeprefix("./")

    def is_ignored(self, path: Path | str) -> bool:
        rel = self._relative(str(path))
        if any(part in self.ignore_names for part in Path(rel).parts):
            return True
        return bool(self.ignore_globs) and match_any(rel, self.ignore_globs)

    def filter_ignored(self, lang: LanguageDiagnostics) -> LanguageDiagnostics:
        """Drop issues located in ignored files; issues without a file are kept."""
        if not self.ignore_names and not self.ignore_globs:
            return lang
        kept = [d for d in lang.issues if not d.file or not self.is_ignored(d.file)]
        return LanguageDiagnostics(name=lang.name, tool=lang.tool, issues=kept)

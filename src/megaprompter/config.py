from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

# Detection markers per language: exact root-level names or glob patterns.
LANGUAGE_MARKERS: dict[str, tuple[str, ...]] = {
    "typescript": ("tsconfig.json",),
    "javascript": ("package.json",),
    "python": ("pyproject.toml", "requirements.txt", "Pipfile", "setup.py", "setup.cfg", "tox.ini"),
    "go": ("go.mod",),
    "rust": ("Cargo.toml",),
    "java": ("pom.xml", "build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts"),
    "kotlin": ("build.gradle.kts",),
    "csharp": ("*.sln", "*.csproj"),
    "cpp": ("CMakeLists.txt",),
    "php": ("composer.json",),
    "ruby": ("Gemfile",),
    "swift": ("Package.swift", "*.xcodeproj"),
    "terraform": ("*.tf",),
    "docker": ("Dockerfile",),
    "latex": ("main.tex", "latexmkrc", ".latexmkrc"),
    "lean": ("lakefile.lean", "lakefile.toml", "lean-toolchain"),
}

EXT2LANG: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".c": "cpp",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".h": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".tf": "terraform",
    ".scala": "scala",
    ".sbt": "scala",
    ".scss": "styles",
    ".sass": "styles",
    ".less": "styles",
    ".css": "styles",
    ".html": "html",
    ".graphql": "graphql",
    ".gql": "graphql",
    ".sql": "sql",
    ".sh": "shell",
    ".zsh": "shell",
    ".bash": "shell",
    ".tex": "latex",
    ".bib": "latex",
    ".lean": "lean",
}

BASE_PRUNE_DIRS: frozenset[str] = frozenset({
    "vendor",
    ".expo",
    "node_modules",
    "app-example",
    ".git",
    ".next",
    "env",
    "venv",
    ".env",
    ".venv",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    "lightning_logs",
    ".build",
    ".swiftpm",
    "Build",
    "builds",
    ".idea",
    ".vscode",
    ".gradle",
    ".cache",
    ".parcel-cache",
    ".turbo",
    ".sass-cache",
    ".nyc_output",
    ".coverage",
    "coverage",
    "dist",
    "build",
    "out",
    "target",
    "bin",
    "obj",
    ".tox",
    ".ruff_cache",
    ".terraform",
    "terraform.d",
    ".docusaurus",
    ".vitepress",
    ".astro",
    ".nuxt",
    ".svelte-kit",
    ".yarn",
    ".pnpm-store",
    ".history",
    "Pods",
    "DerivedData",
    ".hg",
    ".svn",
    ".mvn",
    ".direnv",
    ".lake",
})

BASE_ALLOWED_EXTS: frozenset[str] = frozenset({
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".go", ".rs", ".java", ".kt", ".kts",
    ".c", ".cc", ".cpp", ".cxx", ".h", ".hpp", ".hh",
    ".cs", ".php", ".rb", ".swift", ".tf",
    ".graphql", ".gql", ".sql", ".sh", ".bash", ".zsh",
    ".yml", ".yaml", ".json", ".toml", ".ini", ".cfg", ".conf",
    ".html", ".css", ".scss", ".sass", ".less",
    ".md", ".xml", ".gradle",
    ".tex", ".bib", ".sty", ".cls",
    ".lean",
})  # fmt: skip

BASE_EXCLUDE_NAMES: frozenset[str] = frozenset({
    "package-lock.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "go.sum",
    "Cargo.lock",
    "Package.resolved",
    ".DS_Store",
    ".gitignore",
})

BASE_EXCLUDE_EXTS: frozenset[str] = frozenset({
    ".min.js", ".map", ".pem", ".crt", ".key",
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico", ".pdf",
    ".zip", ".tar", ".gz", ".tgz", ".xz", ".7z", ".rar",
    ".so", ".dylib", ".dll", ".class", ".jar", ".war", ".wasm",
})  # fmt: skip

BASE_FORCE_NAMES: frozenset[str] = frozenset({
    "package.json",
    "pyproject.toml",
    "requirements.txt",
    "Pipfile",
    "setup.py",
    "setup.cfg",
    "tox.ini",
    "mypy.ini",
    "go.mod",
    "Cargo.toml",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "settings.gradle",
    "settings.gradle.kts",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    ".gitattributes",
    "tsconfig.json",
    "jsconfig.json",
    "next.config.js",
    "next.config.mjs",
    "next.config.ts",
    "vite.config.ts",
    "vite.config.js",
    "vite.config.mjs",
    "webpack.config.js",
    "webpack.config.ts",
    "babel.config.js",
    "babel.config.ts",
    "eslint.config.js",
    "eslint.config.mjs",
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yaml",
    ".eslintrc.yml",
    ".prettierrc",
    ".prettierrc.json",
    ".prettierrc.yaml",
    ".prettierrc.yml",
    ".prettierrc.js",
    ".prettierrc.cjs",
    "prettier.config.js",
    "prettier.config.cjs",
    "prettier.config.ts",
    "Makefile",
    "CMakeLists.txt",
    "Pipfile.lock",
    "lakefile.lean",
    "lakefile.toml",
    "lean-toolchain",
})

BASE_FORCE_GLOBS: tuple[str, ...] = (
    ".github/workflows/*.yml",
    ".github/workflows/*.yaml",
    ".github/actions/**/*.yml",
    ".github/actions/**/*.yaml",
    ".circleci/config.yml",
    ".circleci/config.yaml",
    ".gitlab-ci.yml",
    "azure-pipelines.yml",
    ".github/dependabot.yml",
)

# Extra directories pruned once a language is detected.
LANGUAGE_PRUNE_DIRS: dict[str, tuple[str, ...]] = {
    "python": ("site-packages",),
    "java": ("target", "build", ".gradle"),
    "csharp": ("bin", "obj"),
    "cpp": ("build", "cmake-build-debug", "cmake-build-release"),
    "rust": ("target",),
    "go": ("vendor",),
}

TEST_DIR_NAMES: frozenset[str] = frozenset({"test", "tests", "__tests__", "spec", "specs"})
TEST_NAME_MARKERS: tuple[str, ...] = (".test.", ".spec.", "_test.", "-test.", "_spec.")

ARTIFACT_PREFIXES: dict[str, str] = {
    "prompt": ".MEGAPROMPT",
    "diagnostics": "MEGADIAG",
    "testplan": "MEGATEST",
    "documentation": "MEGADOC",
}

ANALYZERS: dict[str, Callable[..., list[Any]]] = {}


def register_analyzer(
    language: str | list[str],
) -> Callable[[Callable[..., list[Any]]], Callable[..., list[Any]]]:
    """Decorator registering a source analyzer for one or more languages.

    The test planner looks up `ANALYZERS[language]` for every file whose
    extension maps to that language and calls it with the file path, the
    (possibly truncated) content and the language key.

    Args:
        language (str | list[str]): Language key(s) from `EXT2LANG`.

    Returns:
        Callable: A decorator that registers and returns the analyzer.
    """

    def decorator(func: Callable[..., list[Any]]) -> Callable[..., list[Any]]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> list[Any]:  # noqa: ANN401
            return func(*args, **kwargs)

        if isinstance(language, list):
            for lang in language:
                ANALYZERS[lang] = wrapper
        else:
            ANALYZERS[language] = wrapper
        return wrapper

    return decorator

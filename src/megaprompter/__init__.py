"""Build LLM-ready artifacts (megaprompts, diagnostics, test plans, docs) from a project tree."""

__version__ = "0.3.0"

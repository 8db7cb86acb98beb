"""
llm-context-gen - turn a source tree into plain-text LLM context files.

This package walks a directory tree, filters files through .gitignore-style
rules and built-in exclusions, skips binaries and oversized files, and writes
one text artifact per kept file plus a rendered project tree.
"""

__version__ = "0.2.0"

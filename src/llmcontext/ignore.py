"""
Ignore rules for llmcontext.

Rules come from three places, in increasing priority: a built-in denylist,
``.gitignore``-style files discovered below the root, and patterns supplied
by the caller. Each rule is tied to the directory that declared it and only
applies below that directory. The last matching rule wins, so deeper files
and user patterns can re-include what an earlier rule excluded.
"""

from __future__ import annotations

from collections.abc import Set as AbstractSet
from enum import Enum
from pathlib import Path, PurePath
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

import pathspec

from .errors import ConfigFileError, InvalidRootError

PathLike = Union[str, PurePath]

# Dependency/build output, VCS metadata, editor/OS clutter, secrets and the
# rule files themselves.
DEFAULT_PATTERNS: List[str] = [
    "node_modules/",
    "target/",
    "dist/",
    "build/",
    "out/",
    "coverage/",
    "__pycache__/",
    ".next/",
    ".turbo/",
    ".vercel/",
    ".git/",
    ".hg/",
    ".svn/",
    ".idea/",
    ".vscode/",
    ".DS_Store",
    "Thumbs.db",
    ".env",
    ".gitignore",
    ".ignore",
]

# Per directory, lowest priority first.
IGNORE_FILENAMES: Tuple[str, ...] = (".gitignore", ".ignore")
ROOT_EXCLUDE_FILE = Path(".git") / "info" / "exclude"


class RuleOrigin(str, Enum):
    BUILTIN = "built-in"
    IGNORE_FILE = "ignore-file"
    USER = "user"


class IgnoreRule(NamedTuple):
    """One compiled pattern, the directory it applies below, and where it came from."""

    scope: str
    pattern: "pathspec.Pattern"
    origin: RuleOrigin
    source: str

    @property
    def excludes(self) -> bool:
        return bool(self.pattern.include)

    def applies_to(self, rel: str) -> bool:
        return not self.scope or rel.startswith(self.scope + "/")

    def matches(self, rel: str, is_dir: bool) -> bool:
        local = rel[len(self.scope) + 1:] if self.scope else rel
        # Directory-only patterns ("build/") need the trailing slash to hit.
        if is_dir:
            local += "/"
        return bool(self.pattern.match_file(local))

    def describe(self) -> str:
        verb = "ignored" if self.excludes else "re-included"
        return f"{verb} by {self.source}"


def order_patterns(patterns: Iterable[str]) -> List[str]:
    """Give caller patterns a fixed evaluation order.

    Sets have no order of their own, so exclusions come first and negations
    last (each sorted), letting re-includes win. Sequences keep their order,
    and a repeated pattern counts at its last position.
    """
    if isinstance(patterns, AbstractSet):
        negations = sorted(p for p in patterns if p.startswith("!"))
        return sorted(p for p in patterns if not p.startswith("!")) + negations
    return list(dict.fromkeys(reversed(list(patterns))))[::-1]


def compile_patterns(
    lines: Iterable[str],
    on_error: Optional[Callable[[str], None]] = None,
) -> List["pathspec.Pattern"]:
    """Compile gitwildmatch *lines*, dropping blanks and comments.

    A malformed line raises ``ValueError``, unless *on_error* is given: then
    it is reported there and skipped, the way git skips bad lines.
    """
    compiled: List["pathspec.Pattern"] = []
    for lineno, line in enumerate(lines, 1):
        try:
            spec = pathspec.PathSpec.from_lines("gitwildmatch", [line])
        except ValueError as e:
            if on_error is None:
                raise ValueError(f"line {lineno}: {e}") from e
            on_error(f"line {lineno}: {e}")
            continue
        compiled.extend(p for p in spec.patterns if p.include is not None)
    return compiled


def normalize(path: PathLike) -> str:
    """Return *path* as a slash-separated path without leading ``./`` or ``/``."""
    rel = path.as_posix() if isinstance(path, PurePath) else str(path).replace("\\", "/")
    while rel.startswith("./"):
        rel = rel[2:]
    rel = rel.strip("/")
    return "" if rel == "." else rel


def resolve_root(root: PathLike) -> Path:
    """Resolve *root* and make sure it is an existing directory."""
    try:
        resolved = Path(root).expanduser().resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not resolved.exists():
        raise InvalidRootError(f"Root directory '{resolved}' does not exist")
    if not resolved.is_dir():
        raise InvalidRootError(f"Root path '{resolved}' is not a directory")
    return resolved


def load_extra_patterns(config_path: Path) -> List[str]:
    """Read newline-separated patterns from *config_path*, skipping comments."""
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")


class IgnoreMatcher:
    """Answer ``is_ignored`` for paths relative to *root*.

    Rule files are read the first time a path below their directory is
    queried, then cached. Unreadable rule files are recorded in
    ``load_errors`` and otherwise skipped.
    """

    def __init__(self, root: Path, extra_patterns: Iterable[str] = ()) -> None:
        self.root = root
        self.builtin_rules = [
            IgnoreRule("", p, RuleOrigin.BUILTIN, "built-in defaults")
            for p in compile_patterns(DEFAULT_PATTERNS)
        ]
        try:
            user_patterns = compile_patterns(order_patterns(extra_patterns))
        except ValueError as e:
            raise ConfigFileError(f"Invalid extra ignore pattern, {e}")
        self.user_rules = [
            IgnoreRule("", p, RuleOrigin.USER, "user patterns") for p in user_patterns
        ]
        self.load_errors: List[Tuple[str, str]] = []
        self._scoped: Dict[str, List[IgnoreRule]] = {}

    @classmethod
    def build(cls, root: PathLike, extra_patterns: Iterable[str] = ()) -> "IgnoreMatcher":
        return cls(resolve_root(root), extra_patterns)

    # Rule discovery

    def _read_rule_file(self, scope: str, path: Path) -> List[IgnoreRule]:
        source = path.relative_to(self.root).as_posix()
        if not path.is_file():
            return []
        try:
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                lines = fh.read().splitlines()
        except OSError as e:
            self.load_errors.append((source, str(e)))
            return []
        patterns = compile_patterns(
            lines, on_error=lambda problem: self.load_errors.append((source, problem))
        )
        return [IgnoreRule(scope, p, RuleOrigin.IGNORE_FILE, source) for p in patterns]

    def scope_rules(self, scope: str) -> List[IgnoreRule]:
        """Rules declared by the rule files in directory *scope*."""
        if scope not in self._scoped:
            directory = self.root / scope if scope else self.root
            rules: List[IgnoreRule] = []
            if not scope:
                rules.extend(self._read_rule_file(scope, directory / ROOT_EXCLUDE_FILE))
            for name in IGNORE_FILENAMES:
                rules.extend(self._read_rule_file(scope, directory / name))
            self._scoped[scope] = rules
        return self._scoped[scope]

    def rules_for(self, path: PathLike) -> List[IgnoreRule]:
        """Every rule that can apply to *path*, lowest priority first."""
        rel = normalize(path)
        parts = rel.split("/")[:-1] if rel else []
        rules = list(self.builtin_rules)
        scope = ""
        rules.extend(self.scope_rules(scope))
        for part in parts:
            scope = f"{scope}/{part}" if scope else part
            rules.extend(self.scope_rules(scope))
        rules.extend(self.user_rules)
        return rules

    # Matching

    def match(self, path: PathLike, is_dir: bool = False) -> Optional[IgnoreRule]:
        """Return the rule deciding *path*, or ``None`` when nothing matches."""
        rel = normalize(path)
        if not rel:
            return None
        decided = None
        for rule in self.rules_for(rel):
            if rule.applies_to(rel) and rule.matches(rel, is_dir):
                decided = rule
        return decided

    def is_ignored(self, path: PathLike, is_dir: bool = False) -> bool:
        rule = self.match(path, is_dir)
        return rule is not None and rule.excludes

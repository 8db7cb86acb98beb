"""
Directory traversal for llmcontext.

The walk is depth-first and visits the entries of each directory in
lexicographic order, using an explicit stack instead of recursion. Every
entry gets exactly one classification. Only ``text`` files are emitted;
everything else ends up in ``WalkResult.skipped``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .ignore import IgnoreMatcher, PathLike, resolve_root

DEFAULT_MAX_FILE_SIZE = 500_000
PROBE_BYTES = 8192
CONTROL_RATIO = 0.30

BINARY_EXTENSIONS = frozenset(
    {
        "png", "jpg", "jpeg", "gif", "bmp", "tiff", "ico", "webp",
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
        "zip", "tar", "gz", "bz2", "xz", "rar", "7z", "jar",
        "exe", "dll", "so", "dylib", "bin", "o", "a", "pyc", "class",
        "mp3", "mp4", "wav", "avi", "mov", "flac", "ogg",
        "ttf", "otf", "woff", "woff2",
    }
)

# Printable ASCII, everything >= 0x80 (UTF-8 continuation bytes) and the
# usual whitespace controls, minus DEL.
_TEXT_BYTES = bytes(
    sorted({7, 8, 9, 10, 12, 13, 27} | set(range(0x20, 0x100)) - {0x7F})
)


class Classification(str, Enum):
    TEXT = "text"
    BINARY = "binary"
    OVERSIZED = "oversized"
    IGNORED = "ignored"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    CYCLE = "cycle"
    UNREADABLE = "unreadable"
    DEPTH = "depth"
    LIMIT = "limit"


@dataclass(frozen=True)
class FileEntry:
    """A classified entry of the walk."""

    path: Path
    relative: str
    size: Optional[int]
    classification: Classification
    reason: Optional[str] = None

    @property
    def included(self) -> bool:
        return self.classification is Classification.TEXT


@dataclass
class TreeNode:
    """A directory in the rendered tree: subdirectories plus included file names."""

    name: str
    children: List["TreeNode"] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.children and not self.files


@dataclass
class WalkResult:
    root: Path
    tree: TreeNode
    files: List[FileEntry] = field(default_factory=list)
    skipped: List[FileEntry] = field(default_factory=list)
    directories: int = 0

    def pairs(self) -> List[Tuple[str, Path]]:
        """``(relative_path, absolute_path)`` for every file to emit, in order."""
        return [(e.relative, e.path) for e in self.files]

    def counts(self) -> "Counter[Classification]":
        tally: Counter[Classification] = Counter(e.classification for e in self.skipped)
        tally[Classification.TEXT] = len(self.files)
        return tally

    def skipped_as(self, classification: Classification) -> List[FileEntry]:
        return [e for e in self.skipped if e.classification is classification]


def is_binary(data: bytes, path: Optional[Path] = None) -> bool:
    """Guess whether *data*, the head of a file, is binary.

    Empty files are text. A null byte, a well-known binary extension, or
    more than ``CONTROL_RATIO`` control bytes makes it binary.
    """
    if not data:
        return False
    if b"\0" in data:
        return True
    if path is not None and path.suffix.lower().lstrip(".") in BINARY_EXTENSIONS:
        return True
    control = data.translate(None, _TEXT_BYTES)
    return len(control) / len(data) > CONTROL_RATIO


def read_head(path: Path, size: int = PROBE_BYTES) -> bytes:
    with path.open("rb") as fh:
        return fh.read(size)


class _Frame:
    """A directory on the current traversal path."""

    __slots__ = ("node", "parent", "depth", "real", "attached")

    def __init__(
        self,
        node: TreeNode,
        parent: Optional["_Frame"],
        depth: int,
        real: Path,
        attached: bool = False,
    ) -> None:
        self.node = node
        self.parent = parent
        self.depth = depth
        self.real = real
        self.attached = attached

    def lineage(self) -> Iterator["_Frame"]:
        frame: Optional[_Frame] = self
        while frame is not None:
            yield frame
            frame = frame.parent


class TreeWalker:
    """Walk *root* once and collect a :class:`WalkResult`."""

    def __init__(
        self,
        root: PathLike,
        matcher: IgnoreMatcher,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
        follow_symlinks: bool = False,
        *,
        max_depth: Optional[int] = None,
        max_files: Optional[int] = None,
        exclude: Iterable[PathLike] = (),
        progress: Optional[Callable[[FileEntry], None]] = None,
    ) -> None:
        self.root = resolve_root(root)
        self.matcher = matcher
        self.max_file_size_bytes = max_file_size_bytes
        self.follow_symlinks = follow_symlinks
        self.max_depth = max_depth
        self.max_files = max_files
        self.exclude = {Path(p).resolve() for p in exclude}
        self.progress = progress
        self.result = WalkResult(root=self.root, tree=TreeNode("."))
        self._stack: List[Tuple[Path, str, _Frame]] = []

    # Bookkeeping

    def _record(
        self,
        path: Path,
        rel: str,
        classification: Classification,
        size: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> FileEntry:
        entry = FileEntry(path, rel, size, classification, reason)
        if classification is Classification.TEXT:
            self.result.files.append(entry)
        elif classification is Classification.DIRECTORY:
            self.result.directories += 1
        else:
            self.result.skipped.append(entry)
        if self.progress is not None:
            self.progress(entry)
        return entry

    def _include(self, frame: _Frame, path: Path, rel: str, size: int) -> None:
        self._record(path, rel, Classification.TEXT, size)
        frame.node.files.append(path.name)
        # Directories join the tree only once they hold an included file.
        while not frame.attached and frame.parent is not None:
            frame.parent.node.children.append(frame.node)
            frame.attached = True
            frame = frame.parent

    # Traversal

    def _too_deep(self, depth: int) -> bool:
        return self.max_depth is not None and depth >= self.max_depth

    def _enter(self, path: Path, rel: str, frame: _Frame) -> None:
        """List *path* and schedule its children, smallest name on top."""
        try:
            children = sorted(path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            self._record(path, rel or ".", Classification.UNREADABLE, reason=str(e))
            return
        for child in reversed(children):
            child_rel = f"{rel}/{child.name}" if rel else child.name
            self._stack.append((child, child_rel, frame))

    def _visit_dir(self, path: Path, rel: str, frame: _Frame, is_link: bool) -> None:
        try:
            real = path.resolve() if is_link else frame.real / path.name
        except (OSError, RuntimeError) as e:
            self._record(path, rel, Classification.UNREADABLE, reason=str(e))
            return
        if is_link and any(f.real == real for f in frame.lineage()):
            self._record(path, rel, Classification.CYCLE,
                         reason=f"symlink to ancestor {real}")
            return
        if self._too_deep(frame.depth + 1):
            self._record(path, rel, Classification.DEPTH,
                         reason=f"deeper than max depth {self.max_depth}")
            return
        self._record(path, rel, Classification.DIRECTORY)
        child = _Frame(TreeNode(path.name), frame, frame.depth + 1, real)
        self._enter(path, rel, child)

    def _visit_file(self, path: Path, rel: str, frame: _Frame) -> None:
        if self.max_files is not None and len(self.result.files) >= self.max_files:
            self._record(path, rel, Classification.LIMIT,
                         reason=f"file limit {self.max_files} reached")
            return
        try:
            size = path.stat().st_size
            head = read_head(path)
        except OSError as e:
            self._record(path, rel, Classification.UNREADABLE, reason=str(e))
            return
        if is_binary(head, path):
            self._record(path, rel, Classification.BINARY, size)
        elif size > self.max_file_size_bytes:
            self._record(path, rel, Classification.OVERSIZED, size,
                         reason=f"{size} bytes > {self.max_file_size_bytes}")
        else:
            self._include(frame, path, rel, size)

    def _visit(self, path: Path, rel: str, frame: _Frame) -> None:
        if path in self.exclude:
            self._record(path, rel, Classification.IGNORED, reason="excluded")
            return
        try:
            is_link = path.is_symlink()
            is_dir = path.is_dir() if (self.follow_symlinks or not is_link) else False
            is_file = path.is_file() if (self.follow_symlinks or not is_link) else False
        except OSError as e:
            self._record(path, rel, Classification.UNREADABLE, reason=str(e))
            return

        rule = self.matcher.match(rel, is_dir)
        if rule is not None and rule.excludes:
            self._record(path, rel, Classification.IGNORED, reason=rule.describe())
            return
        if is_link and not self.follow_symlinks:
            self._record(path, rel, Classification.SYMLINK, reason="symlink not followed")
            return

        if is_dir:
            self._visit_dir(path, rel, frame, is_link)
        elif is_file:
            self._visit_file(path, rel, frame)
        elif is_link:
            self._record(path, rel, Classification.UNREADABLE, reason="broken symlink")
        else:
            self._record(path, rel, Classification.UNREADABLE, reason="not a regular file")

    def run(self) -> WalkResult:
        top = _Frame(self.result.tree, None, 0, self.root, attached=True)
        if self._too_deep(0):
            self._record(self.root, ".", Classification.DEPTH,
                         reason=f"deeper than max depth {self.max_depth}")
            return self.result
        self._enter(self.root, "", top)
        while self._stack:
            self._visit(*self._stack.pop())
        return self.result


def walk(
    root: PathLike,
    matcher: IgnoreMatcher,
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
    follow_symlinks: bool = False,
    **options,
) -> WalkResult:
    """Walk *root* and classify every entry; see :class:`TreeWalker`."""
    return TreeWalker(root, matcher, max_file_size_bytes, follow_symlinks, **options).run()

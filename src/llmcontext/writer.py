"""
Output side of llmcontext: the tree renderer and the artifact writer.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from .errors import OutputError
from .walker import TreeNode, WalkResult

TREE_FILENAME = "file-tree.txt"
MAX_STEM = 150


@dataclass(frozen=True)
class WriteFailure:
    relative: str
    reason: str


@dataclass
class WriteReport:
    out_dir: Path
    written: List[Path] = field(default_factory=list)
    failures: List[WriteFailure] = field(default_factory=list)
    bytes_written: int = 0


def prepare_output_dir(out_dir: Path, root: Optional[Path] = None) -> Path:
    """Create *out_dir* if needed and make sure we can write into it.

    When *root* is given, *out_dir* must not be the root or one of its
    ancestors, otherwise a re-run would read its own earlier artifacts.
    """
    try:
        out_dir = out_dir.expanduser().resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{out_dir}': {e}")
    if root is not None and (out_dir == root or out_dir in root.parents):
        raise OutputError(
            f"Output directory '{out_dir}' must not contain the root directory '{root}'"
        )
    if out_dir.exists() and not out_dir.is_dir():
        raise OutputError(f"Output path '{out_dir}' is not a directory")
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Could not create directory '{out_dir}': {e}")
    if not os.access(out_dir, os.W_OK | os.X_OK):
        raise OutputError(f"Output directory '{out_dir}' is not writable")
    return out_dir


# project-tree renderer
def _tree_items(node: TreeNode, prefix: str) -> List[Tuple[str, Optional[TreeNode], str, bool]]:
    items: List[Tuple[str, Optional[TreeNode]]] = [
        (child.name + "/", child) for child in sorted(node.children, key=lambda n: n.name)
    ]
    items += [(name, None) for name in sorted(node.files)]
    return [
        (label, child, prefix, idx == len(items) - 1)
        for idx, (label, child) in enumerate(items)
    ]


def render_tree(tree: TreeNode) -> str:
    """
    Return the tree as text, one line per node (à la the Unix ``tree`` utility).

    • The first line is ``.``, the traversal root.
    • Directories come before files, each sorted by name, and end in ``/``.
      This differs from the walk's emission order, which interleaves
      directories and files by name.
    • Uses ``├──``, ``└──`` and ``│   `` connectors.
    """
    lines: List[str] = ["."]
    pending = list(reversed(_tree_items(tree, "")))
    while pending:
        label, child, prefix, last = pending.pop()
        connector = "└── " if last else "├── "
        lines.append(f"{prefix}{connector}{label}")
        if child is not None:
            pending.extend(reversed(_tree_items(child, prefix + ("    " if last else "│   "))))
    return "\n".join(lines) + "\n"


# Per-file artifacts
def artifact_name(relative: str, taken: Set[str]) -> str:
    """Flatten *relative* into a unique ``.txt`` file name and claim it in *taken*."""
    stem = relative.replace("/", "_").replace("\\", "_")[:MAX_STEM]
    # File systems cap names in bytes, not characters.
    while len(stem.encode("utf-8")) > MAX_STEM:
        stem = stem[:-1]
    name = f"{stem}.txt"
    n = 2
    # Compare case-insensitively so the names also stay apart on macOS/Windows.
    while name.lower() in taken:
        name = f"{stem}-{n}.txt"
        n += 1
    taken.add(name.lower())
    return name


def write_artifacts(result: WalkResult, out_dir: Path, verbose: bool = False) -> WriteReport:
    """Write ``file-tree.txt`` plus one artifact per included file into *out_dir*.

    Each artifact holds the relative path, a blank line and the raw file bytes.
    A file that cannot be read or written is recorded in ``failures``; the
    remaining files are still written.
    """
    report = WriteReport(out_dir=out_dir)
    taken: Set[str] = {TREE_FILENAME}

    tree_path = out_dir / TREE_FILENAME
    try:
        with tree_path.open("w", encoding="utf-8", newline="\n") as out_fh:
            out_fh.write(render_tree(result.tree))
        report.written.append(tree_path)
    except OSError as e:
        report.failures.append(WriteFailure(TREE_FILENAME, str(e)))

    for rel, path in result.pairs():
        target = out_dir / artifact_name(rel, taken)
        try:
            data = path.read_bytes()
        except OSError as e:
            report.failures.append(WriteFailure(rel, f"could not read source: {e}"))
            continue
        try:
            with target.open("wb") as out_fh:
                out_fh.write(f"{rel}\n\n".encode("utf-8"))
                out_fh.write(data)
        except OSError as e:
            report.failures.append(WriteFailure(rel, f"could not write {target.name}: {e}"))
            continue
        report.written.append(target)
        report.bytes_written += len(data)
        if verbose:
            print(f"[llm-context] + {rel} -> {target.name}")
    return report

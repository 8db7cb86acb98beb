"""Shared fixtures: build small source trees under tmp_path."""

import os
from pathlib import Path
from typing import Dict, Union

import pytest

Content = Union[str, bytes]


def write_tree(root: Path, files: Dict[str, Content]) -> Path:
    """Create *files* (relative path -> content) below *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path):
    def _make(files: Dict[str, Content], name: str = "project") -> Path:
        root = tmp_path / name
        root.mkdir(exist_ok=True)
        return write_tree(root, files)

    return _make


@pytest.fixture
def symlink_or_skip():
    def _link(link: Path, target: Path, is_dir: bool = False) -> None:
        try:
            os.symlink(target, link, target_is_directory=is_dir)
        except (OSError, NotImplementedError) as e:
            pytest.skip(f"symlinks unavailable: {e}")

    return _link

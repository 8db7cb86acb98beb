"""
Tests for the tree renderer and artifact writer.
"""

import os

import pytest

from llmcontext.errors import OutputError
from llmcontext.ignore import IgnoreMatcher
from llmcontext.walker import TreeNode, walk
from llmcontext.writer import (
    TREE_FILENAME,
    artifact_name,
    prepare_output_dir,
    render_tree,
    write_artifacts,
)


class TestRenderTree:
    """Box-drawing rendering of TreeNode."""

    def test_empty_tree(self):
        assert render_tree(TreeNode(".")) == ".\n"

    def test_dirs_before_files_with_connectors(self):
        tree = TreeNode(
            ".",
            children=[
                TreeNode("src", children=[TreeNode("pkg", files=["mod.py"])], files=["main.py"]),
                TreeNode("docs", files=["index.md"]),
            ],
            files=["setup.py", "README.md"],
        )

        assert render_tree(tree) == (
            ".\n"
            "├── docs/\n"
            "│   └── index.md\n"
            "├── src/\n"
            "│   ├── pkg/\n"
            "│   │   └── mod.py\n"
            "│   └── main.py\n"
            "├── README.md\n"
            "└── setup.py\n"
        )

    def test_last_directory_uses_blank_indent(self):
        tree = TreeNode(".", children=[TreeNode("only", files=["a", "b"])])

        assert render_tree(tree) == ".\n└── only/\n    ├── a\n    └── b\n"

    def test_deep_tree_renders_without_recursion(self):
        tree = node = TreeNode(".")
        for i in range(1500):
            child = TreeNode(f"d{i}")
            node.children.append(child)
            node = child
        node.files.append("leaf.txt")

        lines = render_tree(tree).splitlines()

        assert len(lines) == 1502
        assert lines[-1].endswith("└── leaf.txt")


class TestArtifactName:
    """Flattened, unique artifact file names."""

    def test_flattens_separators(self):
        assert artifact_name("src/pkg/mod.py", set()) == "src_pkg_mod.py.txt"

    def test_collisions_get_suffix(self):
        taken = {TREE_FILENAME}

        assert artifact_name("a/b.py", taken) == "a_b.py.txt"
        assert artifact_name("a_b.py", taken) == "a_b.py-2.txt"
        assert artifact_name("A_B.py", taken) == "A_B.py-3.txt"

    def test_tree_file_is_reserved(self):
        assert artifact_name("file-tree", {TREE_FILENAME}) == "file-tree-2.txt"

    def test_long_paths_are_capped(self):
        name = artifact_name("d/" * 100 + "f.py", set())

        assert len(name) == 150 + len(".txt")

    def test_cap_counts_utf8_bytes(self):
        name = artifact_name("é" * 200, set())

        assert name.endswith(".txt")
        assert len(name.encode("utf-8")) <= 150 + len(".txt")
        assert name[:-len(".txt")] == "é" * 75


class TestPrepareOutputDir:
    """Fatal output-directory checks happen before anything is written."""

    def test_creates_nested_directory(self, tmp_path):
        out = prepare_output_dir(tmp_path / "a" / "b")

        assert out.is_dir()

    def test_file_in_the_way(self, tmp_path):
        blocker = tmp_path / "out"
        blocker.write_text("x")

        with pytest.raises(OutputError):
            prepare_output_dir(blocker)

    def test_root_cannot_be_output(self, tmp_path):
        root = tmp_path.resolve()

        with pytest.raises(OutputError):
            prepare_output_dir(root, root)

    def test_ancestor_of_root_cannot_be_output(self, tmp_path):
        root = (tmp_path / "project").resolve()
        root.mkdir()

        with pytest.raises(OutputError):
            prepare_output_dir(root.parent, root)

    def test_sibling_of_root_is_fine(self, tmp_path):
        root = (tmp_path / "project").resolve()
        root.mkdir()

        assert prepare_output_dir(tmp_path / "ctx", root).is_dir()

    @pytest.mark.skipif(
        os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permissions are not enforced",
    )
    def test_read_only_parent(self, tmp_path):
        parent = tmp_path / "ro"
        parent.mkdir()
        parent.chmod(0o555)
        try:
            with pytest.raises(OutputError):
                prepare_output_dir(parent / "out")
        finally:
            parent.chmod(0o755)


class TestWriteArtifacts:
    """One artifact per included file plus file-tree.txt."""

    def test_writes_path_blank_line_and_raw_content(self, make_tree, tmp_path):
        root = make_tree({
            "src/app.py": b"print('hi')\r\n",
            "README.md": b"# Title\n",
            "logo.png": b"\x89PNG\x00",
        })
        out = prepare_output_dir(tmp_path / "out")

        result = walk(root, IgnoreMatcher.build(root))
        report = write_artifacts(result, out)

        assert report.failures == []
        assert sorted(p.name for p in out.iterdir()) == [
            "README.md.txt",
            TREE_FILENAME,
            "src_app.py.txt",
        ]
        assert (out / "src_app.py.txt").read_bytes() == b"src/app.py\n\nprint('hi')\r\n"
        assert (out / TREE_FILENAME).read_text(encoding="utf-8") == (
            ".\n"
            "├── src/\n"
            "│   └── app.py\n"
            "└── README.md\n"
        )
        assert report.bytes_written == len(b"print('hi')\r\n") + len(b"# Title\n")

    def test_rerun_is_byte_identical(self, make_tree, tmp_path):
        root = make_tree({"a/b.txt": "b", "c.txt": "c", "a/d/e.txt": "e"})
        first = prepare_output_dir(tmp_path / "one")
        second = prepare_output_dir(tmp_path / "two")

        write_artifacts(walk(root, IgnoreMatcher.build(root)), first)
        write_artifacts(walk(root, IgnoreMatcher.build(root)), second)

        assert (first / TREE_FILENAME).read_bytes() == (second / TREE_FILENAME).read_bytes()

    def test_vanished_source_is_recorded(self, make_tree, tmp_path):
        root = make_tree({"a.txt": "a", "b.txt": "b"})
        out = prepare_output_dir(tmp_path / "out")
        result = walk(root, IgnoreMatcher.build(root))
        (root / "a.txt").unlink()

        report = write_artifacts(result, out)

        assert [f.relative for f in report.failures] == ["a.txt"]
        assert (out / "b.txt.txt").read_text() == "b.txt\n\nb"

    def test_unwritable_target_is_recorded(self, make_tree, tmp_path):
        root = make_tree({"a.txt": "a", "b.txt": "b"})
        out = prepare_output_dir(tmp_path / "out")
        (out / "a.txt.txt").mkdir()
        result = walk(root, IgnoreMatcher.build(root))

        report = write_artifacts(result, out)

        assert [f.relative for f in report.failures] == ["a.txt"]
        assert (out / "b.txt.txt").exists()

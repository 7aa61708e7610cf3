"""
Tests for the file tree of a course page.

These tests focus on:
- building a nested tree from a flat worktree.json manifest
- order: folders first, then files, case-insensitive names,
  independent of manifest order
- exclusion of repository boilerplate and dotfiles
- <Files>/<Folder>/<File> rendering and URL encoding
"""

import json
import random
import tempfile
import unittest
from pathlib import Path

from coursedocs.model import File, Folder
from coursedocs.tree import (
    build_tree,
    download_url,
    format_timestamp,
    jsx_attr,
    load_manifest,
    manifest_entries,
    render_files_block,
    render_tree,
)

MANIFEST = {
    "notes/lecture1.pdf": {"size": 1024, "time": 1640000000},
    "notes/Lecture0.pdf": {"size": 10, "time": 1640000000},
    "exams/2021/final.pdf": {"size": 2048, "time": 1650000000},
    "b.txt": {"size": 1},
    "A.txt": {"size": 2},
    "README.md": {"size": 5},
    ".github/workflows/ci.yml": {"size": 5},
    "course.toml": {"size": 5},
    "notes/.gitkeep": {"size": 0},
    "only_hidden/.gitkeep": {"size": 0},
}


def _names(folder: Folder) -> list:
    return [c.name for c in folder.children]


class TestManifest(unittest.TestCase):
    def test_format_timestamp(self) -> None:
        self.assertEqual(format_timestamp(1640000000), "2021-12-20")

    def test_download_url_encodes_segments(self) -> None:
        url = download_url("COMP2001", ("课件", "第 1 章.pdf"))
        self.assertEqual(
            url,
            "https://gh.hoa.moe/github.com/HITSZ-OpenAuto/COMP2001/raw/main/"
            "%E8%AF%BE%E4%BB%B6/%E7%AC%AC%201%20%E7%AB%A0.pdf",
        )

    def test_manifest_entries(self) -> None:
        entries = manifest_entries({"notes/a.pdf": {"size": 3, "time": 1640000000}, "b": None}, "R")
        by_path = {e.path: e for e in entries}
        self.assertEqual(by_path[("notes", "a.pdf")].size, 3)
        self.assertEqual(by_path[("notes", "a.pdf")].last_modified, "2021-12-20")
        self.assertIsNone(by_path[("b",)].size)

    def test_invalid_manifest(self) -> None:
        with self.assertRaises(ValueError):
            manifest_entries(["not", "a", "mapping"], "R")
        with self.assertRaises(ValueError):
            manifest_entries({"a.pdf": {"size": "big"}}, "R")

    def test_load_manifest_from_disk(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "R.json"
            p.write_text(json.dumps(MANIFEST), encoding="utf-8")
            self.assertEqual(len(load_manifest(p, "R")), len(MANIFEST))

            p.write_text("{broken", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_manifest(p, "R")


class TestBuildTree(unittest.TestCase):
    def test_structure_and_order(self) -> None:
        root = build_tree(manifest_entries(MANIFEST, "R"))
        self.assertEqual(_names(root), ["exams", "notes", "A.txt", "b.txt"])

        exams = root.children[0]
        self.assertIsInstance(exams, Folder)
        self.assertEqual(_names(exams), ["2021"])
        self.assertEqual(_names(exams.children[0]), ["final.pdf"])

        notes = root.children[1]
        self.assertEqual(_names(notes), ["Lecture0.pdf", "lecture1.pdf"])
        self.assertIsInstance(notes.children[0], File)
        self.assertEqual(notes.children[1].date, "2021-12-20")

    def test_excluded_entries_never_appear(self) -> None:
        root = build_tree(manifest_entries(MANIFEST, "R"))

        def walk(node):
            yield node
            if isinstance(node, Folder):
                for c in node.children:
                    yield from walk(c)

        names = {n.name for n in walk(root)}
        for excluded in ("README.md", ".github", "ci.yml", "course.toml", ".gitkeep", "only_hidden"):
            self.assertNotIn(excluded, names)

    def test_order_does_not_depend_on_input_order(self) -> None:
        entries = manifest_entries(MANIFEST, "R")
        expected = build_tree(entries)
        rng = random.Random(7)
        for _ in range(50):
            shuffled = list(entries)
            rng.shuffle(shuffled)
            self.assertEqual(build_tree(shuffled), expected)
        self.assertEqual(build_tree(reversed(entries)), expected)

    def test_case_tie_break_is_stable(self) -> None:
        root = build_tree(manifest_entries({"a.txt": {}, "A.txt": {}}, "R"))
        self.assertEqual(_names(root), ["A.txt", "a.txt"])

    def test_empty_manifest(self) -> None:
        root = build_tree([])
        self.assertEqual(root.children, ())
        self.assertEqual(render_tree(root), "")

    def test_custom_exclusion(self) -> None:
        root = build_tree(manifest_entries({"a.pdf": {}, "b.doc": {}}, "R"), exclude=lambda n, d: n.endswith(".doc"))
        self.assertEqual(_names(root), ["a.pdf"])


class TestRender(unittest.TestCase):
    def test_render_files_block(self) -> None:
        root = build_tree(manifest_entries({"notes/lecture1.pdf": {"size": 1024, "time": 1640000000}}, "COMP2001"))
        out = render_files_block(root, "COMP2001")
        self.assertEqual(
            out,
            '<Files url="https://open.osa.moe/openauto/COMP2001">\n'
            '  <Folder name="notes">\n'
            '    <File name="lecture1.pdf" '
            'url="https://gh.hoa.moe/github.com/HITSZ-OpenAuto/COMP2001/raw/main/notes/lecture1.pdf" '
            'date="2021-12-20" size={1024} />\n'
            "  </Folder>\n"
            "</Files>",
        )

    def test_empty_files_block_is_valid(self) -> None:
        out = render_files_block(Folder(name=""), "R")
        self.assertEqual(out, '<Files url="https://open.osa.moe/openauto/R">\n</Files>')

    def test_file_without_metadata(self) -> None:
        root = build_tree(manifest_entries({"x.pdf": {}}, "R"))
        line = render_tree(root)
        self.assertNotIn("date=", line)
        self.assertNotIn("size=", line)

    def test_jsx_attr_escapes_unsafe_values(self) -> None:
        self.assertEqual(jsx_attr("name", "a b.pdf"), 'name="a b.pdf"')
        self.assertEqual(jsx_attr("name", 'say "hi"'), 'name={"say \\"hi\\""}')
        self.assertEqual(jsx_attr("name", "{x}"), 'name={"{x}"}')


if __name__ == "__main__":
    unittest.main()

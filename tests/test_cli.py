"""
Tests for CLI entry points.

These tests focus on:
- build: plans + resources -> formatted page tree, exit code 0
- fatal errors (broken plan, missing directory) exit with 1 and write nothing
- format: rewrites existing pages in place
- fetch: repository selection (arguments, allow-list, plans)
"""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from coursedocs.cli import main

PLAN = """
[info]
year = "2022"
major_code = "010101"
major_name = "计算机科学与技术"

[[courses]]
course_code = "COMP2001"
course_name = "数据结构"
recommended_year_semester = "第一学年秋季"
"""


def _setup(root: Path, plan: str = PLAN) -> dict:
    data = root / "data"
    (data / "plans").mkdir(parents=True)
    (data / "plans" / "2022_010101.toml").write_text(plan, encoding="utf-8")
    repos = root / "repos"
    repos.mkdir()
    (repos / "COMP2001.mdx").write_text(
        "# COMP2001 - 数据结构\n\n<!-- todo -->\n正文<br>\n\n\n\n$x^{2}$\n", encoding="utf-8"
    )
    return {"data": data, "repos": repos, "out": root / "out", "filter": root / "repos_list.txt"}


def _build_args(paths: dict) -> list:
    return [
        "build",
        "--data-dir", str(paths["data"]),
        "--repos-dir", str(paths["repos"]),
        "--out-dir", str(paths["out"]),
        "--filter-file", str(paths["filter"]),
    ]


class TestCLI(unittest.TestCase):
    def test_build_writes_formatted_pages(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d))
            with self.assertRaises(SystemExit) as ctx:
                main(_build_args(paths))
            self.assertEqual(ctx.exception.code, 0)

            page = (paths["out"] / "2022" / "010101" / "fresh-autumn" / "COMP2001.mdx").read_text(encoding="utf-8")
            self.assertIn("正文<br />", page)
            self.assertIn("$x^\\{2\\}$", page)
            self.assertNotIn("<!--", page)
            self.assertNotIn("\n\n\n", page)
            self.assertTrue((paths["out"] / "2022" / "010101" / "index.mdx").exists())

    def test_build_no_format(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d))
            with self.assertRaises(SystemExit) as ctx:
                main(_build_args(paths) + ["--no-format"])
            self.assertEqual(ctx.exception.code, 0)
            page = (paths["out"] / "2022" / "010101" / "fresh-autumn" / "COMP2001.mdx").read_text(encoding="utf-8")
            self.assertIn("正文<br>", page)

    def test_unknown_semester_label_aborts_without_output(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d), PLAN.replace("第一学年秋季", "第六学年秋季"))
            with self.assertRaises(SystemExit) as ctx:
                main(_build_args(paths))
            self.assertEqual(ctx.exception.code, 1)
            self.assertFalse(paths["out"].exists())

    def test_missing_resource_directory_aborts(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d))
            paths["repos"] = Path(d) / "nowhere"
            with self.assertRaises(SystemExit) as ctx:
                main(_build_args(paths))
            self.assertEqual(ctx.exception.code, 1)
            self.assertFalse(paths["out"].exists())

    def test_build_respects_allow_list(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d))
            paths["filter"].write_text("MATH1001\n", encoding="utf-8")
            with self.assertRaises(SystemExit) as ctx:
                main(_build_args(paths))
            self.assertEqual(ctx.exception.code, 0)
            self.assertFalse((paths["out"] / "2022" / "010101" / "fresh-autumn").exists())

    def test_format_command(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            page = Path(d) / "page.mdx"
            page.write_text("a<br>b\n", encoding="utf-8")
            with self.assertRaises(SystemExit) as ctx:
                main(["format", "--out-dir", d])
            self.assertEqual(ctx.exception.code, 0)
            self.assertEqual(page.read_text(encoding="utf-8"), "a<br />b\n")

    def test_format_missing_directory(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(SystemExit) as ctx:
                main(["format", "--out-dir", str(Path(d) / "missing")])
            self.assertNotEqual(ctx.exception.code, 0)

    def test_fetch_uses_plans_when_no_allow_list(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            paths = _setup(Path(d))
            with mock.patch("coursedocs.cli.resolve_github_token", return_value="t"), \
                    mock.patch("coursedocs.cli.fetch_repos", return_value=(1, [])) as fetch:
                with self.assertRaises(SystemExit) as ctx:
                    main([
                        "fetch",
                        "--data-dir", str(paths["data"]),
                        "--repos-dir", str(paths["repos"]),
                        "--filter-file", str(paths["filter"]),
                    ])
            self.assertEqual(ctx.exception.code, 0)
            args, kwargs = fetch.call_args
            self.assertEqual(args[0], ["COMP2001"])
            self.assertEqual(kwargs["token"], "t")

    def test_fetch_explicit_repos(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with mock.patch("coursedocs.cli.resolve_github_token", return_value=None), \
                    mock.patch("coursedocs.cli.fetch_repos", return_value=(2, ["B/README.md: 404"])) as fetch:
                with self.assertRaises(SystemExit) as ctx:
                    main(["fetch", "A", "B", "--repos-dir", d])
            self.assertEqual(ctx.exception.code, 0)
            self.assertEqual(fetch.call_args[0][0], ["A", "B"])


if __name__ == "__main__":
    unittest.main()

"""
Tests for downloading course resources from GitHub.

The HTTP layer is replaced by unittest.mock; no network access happens.
"""

import base64
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from coursedocs.fetch import fetch_file, fetch_repo, fetch_repos, resolve_github_token


def _response(text: str) -> mock.Mock:
    resp = mock.Mock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {
        "encoding": "base64",
        "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
    }
    return resp


def _session_for(files: dict) -> mock.MagicMock:
    """Fake session: files maps 'repo/path' to text; anything else is a 404."""

    def get(url, params=None, timeout=None):
        key = url.split("/repos/HITSZ-OpenAuto/", 1)[1].replace("/contents/", "/")
        if key in files:
            return _response(files[key])
        resp = mock.Mock()
        resp.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        return resp

    session = mock.MagicMock()
    session.get.side_effect = get
    session.__enter__.return_value = session
    return session


class TestFetch(unittest.TestCase):
    def test_fetch_file_decodes_content(self) -> None:
        session = _session_for({"COMP2001/README.md": "# 数据结构\n"})
        self.assertEqual(fetch_file(session, "COMP2001", "README.md"), "# 数据结构\n")

    def test_fetch_file_passes_branch(self) -> None:
        session = _session_for({"COMP2001/worktree.json": "{}"})
        fetch_file(session, "COMP2001", "worktree.json", ref="worktree")
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["params"], {"ref": "worktree"})

    def test_fetch_file_rejects_directory_listing(self) -> None:
        session = mock.MagicMock()
        session.get.return_value.json.return_value = [{"name": "a"}]
        with self.assertRaises(ValueError):
            fetch_file(session, "COMP2001", "docs")

    def test_fetch_repo_writes_both_files(self) -> None:
        session = _session_for({"COMP2001/README.md": "# readme\n", "COMP2001/worktree.json": '{"a.pdf": {}}'})
        with tempfile.TemporaryDirectory() as d:
            errors = fetch_repo(session, "COMP2001", Path(d))
            self.assertEqual(errors, [])
            self.assertEqual((Path(d) / "COMP2001.mdx").read_text(encoding="utf-8"), "# readme\n")
            self.assertEqual((Path(d) / "COMP2001.json").read_text(encoding="utf-8"), '{"a.pdf": {}}')

    def test_existing_files_are_kept_unless_refresh(self) -> None:
        session = _session_for({"COMP2001/README.md": "new", "COMP2001/worktree.json": "{}"})
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / "COMP2001.mdx").write_text("old", encoding="utf-8")
            fetch_repo(session, "COMP2001", Path(d))
            self.assertEqual((Path(d) / "COMP2001.mdx").read_text(encoding="utf-8"), "old")
            self.assertEqual(session.get.call_count, 1)

            fetch_repo(session, "COMP2001", Path(d), refresh=True)
            self.assertEqual((Path(d) / "COMP2001.mdx").read_text(encoding="utf-8"), "new")

    def test_one_failing_repo_does_not_stop_the_rest(self) -> None:
        session = _session_for({"GOOD/README.md": "ok", "GOOD/worktree.json": "{}"})
        with tempfile.TemporaryDirectory() as d:
            with mock.patch("coursedocs.fetch._session", return_value=session):
                n, errors = fetch_repos(["MISSING", "GOOD", "GOOD"], d, sleep_seconds=0)
            self.assertEqual(n, 2)
            self.assertEqual(len(errors), 2)
            self.assertTrue(all(e.startswith("MISSING/") for e in errors))
            self.assertTrue((Path(d) / "GOOD.mdx").exists())
            self.assertFalse((Path(d) / "MISSING.mdx").exists())


class TestToken(unittest.TestCase):
    def test_token_from_environment(self) -> None:
        with mock.patch.dict(os.environ, {"PERSONAL_ACCESS_TOKEN": "", "GITHUB_TOKEN": "gh-abc"}):
            self.assertEqual(resolve_github_token(), "gh-abc")
        with mock.patch.dict(os.environ, {"PERSONAL_ACCESS_TOKEN": "pat-1", "GITHUB_TOKEN": "gh-abc"}):
            self.assertEqual(resolve_github_token(), "pat-1")

    def test_no_token_available(self) -> None:
        with mock.patch.dict(os.environ, {"PERSONAL_ACCESS_TOKEN": "", "GITHUB_TOKEN": ""}):
            with mock.patch("coursedocs.fetch.subprocess.run", side_effect=FileNotFoundError):
                self.assertIsNone(resolve_github_token())

    def test_token_from_gh_cli(self) -> None:
        done = mock.Mock(returncode=0, stdout="gho_xyz\n")
        with mock.patch.dict(os.environ, {"PERSONAL_ACCESS_TOKEN": "", "GITHUB_TOKEN": ""}):
            with mock.patch("coursedocs.fetch.subprocess.run", return_value=done):
                self.assertEqual(resolve_github_token(), "gho_xyz")


if __name__ == "__main__":
    unittest.main()

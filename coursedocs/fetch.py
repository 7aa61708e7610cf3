from __future__ import annotations

import base64
import os
import subprocess
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import requests

from coursedocs import config


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def resolve_github_token() -> Optional[str]:
    """
    Token lookup order: PERSONAL_ACCESS_TOKEN, GITHUB_TOKEN, `gh auth token`.
    """
    for var in ("PERSONAL_ACCESS_TOKEN", "GITHUB_TOKEN"):
        token = os.environ.get(var, "").strip()
        if token:
            return token

    try:
        proc = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return None
    token = proc.stdout.strip()
    return token if proc.returncode == 0 and token else None


def _session(token: Optional[str]) -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": "coursedocs", "Accept": "application/vnd.github+json"})
    if token:
        s.headers["Authorization"] = f"Bearer {token}"
    return s


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def fetch_file(
    session: requests.Session,
    repo: str,
    path: str,
    ref: Optional[str] = None,
    org: str = config.GITHUB_ORG,
) -> str:
    """
    Download one file through the GitHub contents API and return its text.

    Raises requests.HTTPError for non-2xx responses and ValueError for
    payloads that are not base64 file content.
    """
    url = f"{config.GITHUB_API}/repos/{org}/{repo}/contents/{path}"
    params = {"ref": ref} if ref else None
    resp = session.get(url, params=params, timeout=30)
    resp.raise_for_status()

    payload = resp.json()
    if not isinstance(payload, dict) or "content" not in payload:
        raise ValueError(f"unexpected response for {repo}/{path}")
    if payload.get("encoding") == "base64":
        return base64.b64decode(payload["content"].replace("\n", "")).decode("utf-8")
    return str(payload["content"])


def fetch_repo(
    session: requests.Session,
    repo: str,
    repos_dir: Path,
    refresh: bool = False,
) -> List[str]:
    """
    Save README.md as <repo>.mdx and worktree.json as <repo>.json.

    Returns error messages for the files that could not be fetched;
    existing files are kept unless refresh is set.
    """
    targets = (
        (repos_dir / f"{repo}{config.PAGE_SUFFIX}", "README.md", None),
        (repos_dir / f"{repo}.json", "worktree.json", config.WORKTREE_BRANCH),
    )
    errors: List[str] = []
    for out_file, remote, ref in targets:
        if out_file.exists() and not refresh:
            print(f"SKIP  {repo}/{remote}")
            continue
        print(f"FETCH {repo}/{remote}")
        try:
            text = fetch_file(session, repo, remote, ref=ref)
        except (requests.RequestException, ValueError, UnicodeDecodeError) as exc:
            errors.append(f"{repo}/{remote}: {exc}")
            continue
        out_file.write_text(text, encoding="utf-8")
    return errors


def fetch_repos(
    repo_ids: Iterable[str],
    repos_dir: str | Path,
    token: Optional[str] = None,
    refresh: bool = False,
    sleep_seconds: float = 0.2,
) -> Tuple[int, List[str]]:
    """
    Fetch the resources of every repository, one after another.

    One failing repository does not stop the others.
    Returns (number of repositories processed, error messages).
    """
    out_dir = Path(repos_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    repos = sorted(set(repo_ids))
    print(f"Fetching {len(repos)} repositories")

    errors: List[str] = []
    with _session(token) as session:
        for repo in repos:
            errors.extend(fetch_repo(session, repo, out_dir, refresh=refresh))
            time.sleep(sleep_seconds)

    print("Fetching finished.")
    return len(repos), errors

"""
Configuration constants.

All default paths, URL templates and fixed page strings live here so that
the generator, the tree renderer and the CLI agree on them.
The CLI exposes the directories as options; these values are the defaults.
"""

from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Default locations (relative to the working directory)
# ---------------------------------------------------------------------------

DATA_DIR = Path("data")
REPOS_DIR = Path("repos")
OUTPUT_DIR = Path("content") / "docs"
FILTER_FILE = Path("repos_list.txt")

# Optional enrichment files inside DATA_DIR
PLANS_SUBDIR = "plans"
GRADES_SUMMARY_FILE = "grades_summary.json"
LOOKUP_TABLE_FILE = "lookup_table.toml"
SHARED_CATEGORIES_FILE = "shared_categories.toml"

# ---------------------------------------------------------------------------
# Hosting / links
# ---------------------------------------------------------------------------

GITHUB_ORG = "HITSZ-OpenAuto"
GITHUB_API = "https://api.github.com"
WORKTREE_BRANCH = "worktree"

# {repo} and {path} are substituted; path segments are percent-encoded
DOWNLOAD_URL_TEMPLATE = "https://gh.hoa.moe/github.com/" + GITHUB_ORG + "/{repo}/raw/main/{path}"
FILES_URL_TEMPLATE = "https://open.osa.moe/openauto/{repo}"

# Prefix of every <Card href="..."> link
BASE_HREF = "/docs"

# ---------------------------------------------------------------------------
# Page strings
# ---------------------------------------------------------------------------

PAGE_SUFFIX = ".mdx"
INDEX_PAGE = "index" + PAGE_SUFFIX
META_FILE = "meta.json"
INDEX_TITLE = "目录"
RESOURCES_HEADING = "## 资源下载"
COURSE_INFO_TAG = "<CourseInfo />"

"""
Course allow-list.

The allow-list is a plain text file (repos_list.txt), one course/repository
code per line. It decides which courses get pages:

- no file            -> None  -> every course is included
- file, no entries   -> empty set -> no course is included

These two cases are deliberately different, so the loader returns
Optional[frozenset] and never collapses a missing file into an empty set.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

CourseFilterSet = Optional[frozenset]


def parse_course_filter(lines: Iterable[str]) -> frozenset[str]:
    """
    Build the allow-list from text lines: entries are stripped,
    blank lines and '#' comments are ignored.
    """
    out: set[str] = set()
    for line in lines:
        code = line.strip()
        if code and not code.startswith("#"):
            out.add(code)
    return frozenset(out)


def load_course_filter(path: str | Path | None) -> CourseFilterSet:
    """
    Load the allow-list file.

    Returns None when no path is given or the file does not exist
    (meaning: no filtering).
    """
    if path is None:
        return None
    filter_path = Path(path)
    if not filter_path.exists():
        return None
    return parse_course_filter(filter_path.read_text(encoding="utf-8").splitlines())


def should_include(code: str, filter_set: CourseFilterSet) -> bool:
    """True if the course passes the allow-list (always True without one)."""
    if filter_set is None:
        return True
    return code in filter_set

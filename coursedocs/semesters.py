"""
Semester lookup table.

Plan files name semesters with source-language labels ("第一学年秋季").
Pages are written to stable folder names ("fresh-autumn") and shown with a
short display title ("大一·秋").

The table is a closed enumeration: a label that is not listed is an error,
never a silent default, so a typo in a plan file cannot produce a wrong folder.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from coursedocs.errors import UnknownSemesterError
from coursedocs.model import SemesterKey

_ROWS = (
    ("第一学年秋季", "fresh-autumn", "大一·秋"),
    ("第一学年春季", "fresh-spring", "大一·春"),
    ("第一学年夏季", "fresh-summer", "大一·夏"),
    ("第二学年秋季", "sophomore-autumn", "大二·秋"),
    ("第二学年春季", "sophomore-spring", "大二·春"),
    ("第二学年夏季", "sophomore-summer", "大二·夏"),
    ("第三学年秋季", "junior-autumn", "大三·秋"),
    ("第三学年春季", "junior-spring", "大三·春"),
    ("第三学年夏季", "junior-summer", "大三·夏"),
    ("第四学年秋季", "senior-autumn", "大四·秋"),
    ("第四学年春季", "senior-spring", "大四·春"),
    ("第四学年夏季", "senior-summer", "大四·夏"),
    ("第五学年秋季", "fifth-autumn", "大五·秋"),
    ("第五学年春季", "fifth-spring", "大五·春"),
    ("第五学年夏季", "fifth-summer", "大五·夏"),
)

SEMESTERS: tuple[SemesterKey, ...] = tuple(
    SemesterKey(label=label, folder=folder, title=title, order=i)
    for i, (label, folder, title) in enumerate(_ROWS)
)

_BY_LABEL: Dict[str, SemesterKey] = {s.label: s for s in SEMESTERS}
_BY_FOLDER: Dict[str, SemesterKey] = {s.folder: s for s in SEMESTERS}

# "第三学年秋季,第四学年秋季" / "第三学年秋季，第四学年秋季" / "...、..."
_LABEL_SEPARATORS = re.compile(r"[,，、]")


def resolve_semester(label: str) -> SemesterKey:
    """
    Map one semester label to its table row.

    Raises UnknownSemesterError for labels that are not in the table.
    """
    key = _BY_LABEL.get(label.strip())
    if key is None:
        raise UnknownSemesterError(label)
    return key


def semester_by_folder(folder: str) -> Optional[SemesterKey]:
    return _BY_FOLDER.get(folder)


def parse_semester_labels(raw: str) -> List[SemesterKey]:
    """
    Parse a semester field that may list several semesters.

    Empty tokens are ignored, duplicates keep their first position.
    Every non-empty token must resolve, otherwise UnknownSemesterError is raised.
    """
    out: List[SemesterKey] = []
    seen: set[str] = set()
    for token in _LABEL_SEPARATORS.split(raw):
        token = token.strip()
        if not token:
            continue
        key = resolve_semester(token)
        if key.folder not in seen:
            seen.add(key.folder)
            out.append(key)
    return out

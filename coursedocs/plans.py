"""
Plan store (TOML -> PlanRecord).

- Reads every curriculum plan under data/plans/ (recursively, *.toml)
- Enriches courses with grade details from grades_summary.json
- Maps course codes to resource repositories via lookup_table.toml
- Groups courses by semester using the fixed semester table

All files are read once in load_plans(); afterwards every query is answered
from memory. A plan that cannot be parsed aborts the whole load, because a
partially loaded curriculum would silently produce an incomplete site.
"""

from __future__ import annotations

import json
import tomllib
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from coursedocs import config
from coursedocs.errors import FatalConfigError, FatalParseError, UnknownSemesterError
from coursedocs.model import CourseEntry, GradeDetail, HourDistribution, PlanRecord
from coursedocs.semesters import SEMESTERS, parse_semester_labels

# course_code -> {"2022_010101": [GradeDetail, ...], "default": [...]}
GradesSummary = Dict[str, Dict[str, List[GradeDetail]]]
# course_code -> {"<plan_ID>" | "DEFAULT": repo_id}
LookupTable = Dict[str, Dict[str, str]]

_HOUR_FIELDS = ("theory", "lab", "practice", "exercise", "computer", "tutoring")


# ---------------------------------------------------------------------------
# Optional enrichment files
# ---------------------------------------------------------------------------


def _grade_details(raw: Any) -> List[GradeDetail]:
    out: List[GradeDetail] = []
    if not isinstance(raw, list):
        return out
    for item in raw:
        if not isinstance(item, dict) or "name" not in item:
            continue
        percent = item.get("percent")
        out.append(GradeDetail(name=str(item["name"]), percent=None if percent is None else str(percent)))
    return out


def load_grades_summary(data_dir: Path) -> GradesSummary:
    """
    Load grades_summary.json if present.

    Missing or broken file -> empty summary (grade details are optional).
    """
    path = Path(data_dir) / config.GRADES_SUMMARY_FILE
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return {}
    if not isinstance(raw, dict):
        return {}

    summary: GradesSummary = {}
    for code, variants in raw.items():
        if isinstance(variants, dict):
            summary[str(code)] = {str(k): _grade_details(v) for k, v in variants.items()}
    return summary


def load_lookup_table(data_dir: Path) -> LookupTable:
    """
    Load lookup_table.toml if present.

    Missing or broken file -> empty table (every course maps to itself).
    """
    path = Path(data_dir) / config.LOOKUP_TABLE_FILE
    if not path.exists():
        return {}
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError):
        return {}

    table: LookupTable = {}
    for code, mapping in raw.items():
        if isinstance(mapping, dict):
            table[code] = {str(k): str(v) for k, v in mapping.items()}
    return table


def select_grade_details(
    summary: GradesSummary,
    course_code: str,
    year: str,
    major_code: str,
    major_name: str,
) -> List[GradeDetail]:
    """
    Pick grade details for one course, most specific key first:

        {year}_{major_code}, {year}_{major_name}, {year}_default, default

    Empty lists fall through to the next key.
    """
    entry = summary.get(course_code)
    if not entry:
        return []
    for key in (f"{year}_{major_code}", f"{year}_{major_name}", f"{year}_default", "default"):
        details = entry.get(key)
        if details:
            return list(details)
    return []


def resolve_repo_id(table: LookupTable, course_code: str, plan_id: str) -> str:
    """
    Resource repository of a course: plan-specific mapping, then DEFAULT,
    then the course code itself.
    """
    mapping = table.get(course_code, {})
    for key in (plan_id, "DEFAULT", "default"):
        repo_id = mapping.get(key, "").strip()
        if repo_id:
            return repo_id
    return course_code


# ---------------------------------------------------------------------------
# Plan files
# ---------------------------------------------------------------------------


def _require_str(table: dict[str, Any], key: str, source: Path, where: str) -> str:
    value = table.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise FatalParseError(source, f"missing '{key}' in {where}")
    if isinstance(value, (dict, list)):
        raise FatalParseError(source, f"'{key}' in {where} must be a string")
    return str(value).strip()


def _hours(raw: Any, source: Path, where: str) -> Optional[HourDistribution]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise FatalParseError(source, f"'hours' in {where} must be a table")
    values: Dict[str, int] = {}
    for name in _HOUR_FIELDS:
        value = raw.get(name)
        if value is None:
            continue
        # hours are whole, non-negative numbers
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise FatalParseError(source, f"hours.{name} in {where} is not a whole number: {value!r}")
        try:
            hours = int(value)
        except (TypeError, ValueError):
            raise FatalParseError(source, f"hours.{name} in {where} is not a number: {value!r}") from None
        if hours < 0:
            raise FatalParseError(source, f"hours.{name} in {where} is negative: {value!r}")
        values[name] = hours
    return HourDistribution(**values)


def _credit(raw: Any, source: Path, where: str) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise FatalParseError(source, f"credit in {where} is not a number: {raw!r}") from None


def parse_plan(
    text: str,
    source: Path,
    grades_summary: Optional[GradesSummary] = None,
    lookup_table: Optional[LookupTable] = None,
) -> PlanRecord:
    """
    Parse the TOML text of one plan file into a PlanRecord.

    Raises FatalParseError for invalid TOML, missing fields and semester
    labels that are not in the semester table.
    """
    grades_summary = grades_summary or {}
    lookup_table = lookup_table or {}

    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise FatalParseError(source, f"invalid TOML: {exc}") from exc

    info = data.get("info")
    if not isinstance(info, dict):
        raise FatalParseError(source, "missing [info] table")

    year = _require_str(info, "year", source, "[info]")
    major_code = _require_str(info, "major_code", source, "[info]")
    major_name = _require_str(info, "major_name", source, "[info]")
    plan_id = str(info.get("plan_ID", "") or "").strip()

    raw_courses = data.get("courses", [])
    if not isinstance(raw_courses, list):
        raise FatalParseError(source, "'courses' must be an array of tables")

    by_semester: Dict[str, List[CourseEntry]] = defaultdict(list)
    unscheduled: List[CourseEntry] = []

    for i, c in enumerate(raw_courses):
        if not isinstance(c, dict):
            raise FatalParseError(source, f"courses[{i}] is not a table")
        where = f"courses[{i}]"
        code = _require_str(c, "course_code", source, where)
        where = f"course {code}"

        details = _grade_details(c.get("grade_details"))
        if not details:
            details = select_grade_details(grades_summary, code, year, major_code, major_name)

        course = CourseEntry(
            code=code,
            repo_id=resolve_repo_id(lookup_table, code, plan_id),
            name=_require_str(c, "course_name", source, where),
            credit=_credit(c.get("credit"), source, where),
            assessment_method=c.get("assessment_method"),
            nature=c.get("course_nature"),
            hours=_hours(c.get("hours"), source, where),
            grade_details=tuple(details),
        )

        label = str(c.get("recommended_year_semester") or "")
        try:
            semesters = parse_semester_labels(label)
        except UnknownSemesterError as exc:
            raise FatalParseError(
                source,
                f"program {major_code} ({major_name}), course {code}: unknown semester label {exc.label!r}",
            ) from exc

        if not semesters:
            unscheduled.append(course)
        for sem in semesters:
            by_semester[sem.folder].append(course)

    # keep semesters in table order
    semesters_ordered = {s.folder: tuple(by_semester[s.folder]) for s in SEMESTERS if s.folder in by_semester}

    return PlanRecord(
        year=year,
        program_code=major_code,
        program_name=major_name,
        plan_id=plan_id,
        semesters=semesters_ordered,
        unscheduled=tuple(unscheduled),
        source=str(source),
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PlanStore:
    """
    In-memory index of all plan records, keyed by (year, program_code).

    Built once by load_plans(); no method performs I/O.
    """

    def __init__(self, records: Iterable[PlanRecord], grades_summary: Optional[GradesSummary] = None) -> None:
        # kept for pages that are not part of any plan (shared categories)
        self.grades_summary: GradesSummary = grades_summary or {}
        self._records: Dict[Tuple[str, str], PlanRecord] = {}
        for r in records:
            key = (r.year, r.program_code)
            if key in self._records:
                raise FatalParseError(
                    r.source or "<memory>",
                    f"duplicate plan for year {r.year}, program {r.program_code} "
                    f"(already loaded from {self._records[key].source or '<memory>'})",
                )
            self._records[key] = r

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PlanRecord]:
        for key in sorted(self._records):
            yield self._records[key]

    def get(self, year: str, program_code: str) -> Optional[PlanRecord]:
        return self._records.get((year, program_code))

    def years(self) -> List[str]:
        return sorted({year for year, _ in self._records})

    def programs(self, year: str) -> List[PlanRecord]:
        return [self._records[k] for k in sorted(self._records) if k[0] == year]

    def courses(self, year: str, program_code: str, semester: str) -> Tuple[CourseEntry, ...]:
        """
        Courses of one semester (folder name) of one program, in plan order.
        Unknown year/program/semester -> empty tuple.
        """
        record = self._records.get((year, program_code))
        if record is None:
            return ()
        return record.semesters.get(semester, ())


def load_plans(data_dir: str | Path) -> PlanStore:
    """
    Load every plan file below <data_dir>/plans into a PlanStore.

    Raises FatalConfigError if the plans directory is missing and
    FatalParseError on the first plan that cannot be parsed.
    """
    data_dir = Path(data_dir)
    plans_dir = data_dir / config.PLANS_SUBDIR
    if not plans_dir.is_dir():
        raise FatalConfigError(plans_dir, "plans directory")

    grades_summary = load_grades_summary(data_dir)
    lookup_table = load_lookup_table(data_dir)

    records: List[PlanRecord] = []
    for path in sorted(plans_dir.rglob("*.toml")):
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FatalParseError(path, f"cannot read file: {exc}") from exc
        records.append(parse_plan(text, path, grades_summary, lookup_table))

    return PlanStore(records, grades_summary)

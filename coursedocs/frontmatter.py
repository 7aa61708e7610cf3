"""
Page frontmatter.

Course pages carry a structured `course` block that the site's
<CourseInfo /> component renders:

    ---
    title: 数据结构
    description: ''
    course:
      credit: 3
      assessmentMethod: 考试
      courseNature: 必修
      hourDistribution: {theory: 48, lab: 0, ...}
      gradingScheme:
      - name: 期末考试
        percent: 60
    ---

Serialization goes through yaml.safe_dump so titles containing quotes,
colons or other YAML syntax are always quoted correctly.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import yaml

from coursedocs.model import CourseEntry, GradeDetail, HourDistribution

Number = Union[int, float]


def _number(value: Optional[float]) -> Number:
    """None -> 0; integral floats become ints (3.0 -> 3, 2.5 stays 2.5)."""
    if value is None:
        return 0
    if float(value).is_integer():
        return int(value)
    return value


def parse_percent(raw: Optional[str]) -> Number:
    """'60%' -> 60, '12.5%' -> 12.5; anything unparseable -> 0."""
    if raw is None:
        return 0
    text = str(raw).strip().rstrip("%").strip()
    try:
        return _number(float(text))
    except ValueError:
        return 0


def hour_distribution(hours: Optional[HourDistribution]) -> Dict[str, int]:
    h = hours or HourDistribution()
    return {
        "theory": h.theory,
        "lab": h.lab,
        "practice": h.practice,
        "exercise": h.exercise,
        "computer": h.computer,
        "tutoring": h.tutoring,
    }


def grading_scheme(details: tuple[GradeDetail, ...] | List[GradeDetail]) -> List[Dict[str, Any]]:
    # components without a positive percentage carry no information for the page
    out: List[Dict[str, Any]] = []
    for d in details:
        percent = parse_percent(d.percent)
        if percent > 0:
            out.append({"name": d.name, "percent": percent})
    return out


def course_frontmatter(title: str, course: CourseEntry) -> Dict[str, Any]:
    return {
        "title": title,
        "description": "",
        "course": {
            "credit": _number(course.credit),
            "assessmentMethod": course.assessment_method or "",
            "courseNature": course.nature or "",
            "hourDistribution": hour_distribution(course.hours),
            "gradingScheme": grading_scheme(course.grade_details),
        },
    }


def index_frontmatter(title: str) -> Dict[str, Any]:
    return {"title": title}


def to_yaml(frontmatter: Dict[str, Any]) -> str:
    """Frontmatter mapping -> '---\\n<yaml>---' block."""
    body = yaml.safe_dump(frontmatter, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"---\n{body}---"


def parse_frontmatter(text: str) -> Dict[str, Any]:
    """
    Read the frontmatter mapping back from a page (empty dict if none).
    Used to inspect generated pages.
    """
    if not text.startswith("---\n"):
        return {}
    end = text.find("\n---", 4)
    if end == -1:
        return {}
    data = yaml.safe_load(text[4:end])
    return data if isinstance(data, dict) else {}

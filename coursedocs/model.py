"""
Central data model definitions used across the project.

This module defines the canonical structure of plan, course, manifest and
tree objects so that:
- the plan loader, the generator and the tree renderer share the same field names
- loaded curriculum data cannot be mutated after the load step
- tree nodes carry exactly the metadata the renderer needs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple, Union


@dataclass(frozen=True)
class SemesterKey:
    """
    One row of the fixed semester table.

    label:  source-language label used in plan files (e.g. "第一学年秋季")
    folder: stable folder name (e.g. "fresh-autumn")
    title:  display name (e.g. "大一·秋")
    order:  position in the table, used to sort semesters
    """

    label: str
    folder: str
    title: str
    order: int


@dataclass(frozen=True)
class HourDistribution:
    theory: int = 0
    lab: int = 0
    practice: int = 0
    exercise: int = 0
    computer: int = 0
    tutoring: int = 0


@dataclass(frozen=True)
class GradeDetail:
    """One grading component, e.g. name="期末考试", percent="60%"."""

    name: str
    percent: Optional[str] = None


@dataclass(frozen=True)
class CourseEntry:
    """
    Represents one course line of a curriculum plan.

    code is the code listed in the plan, repo_id the resource repository
    the course pages are built from (usually identical, see lookup_table.toml).
    """

    code: str
    repo_id: str
    name: str
    credit: Optional[float] = None
    assessment_method: Optional[str] = None
    nature: Optional[str] = None
    hours: Optional[HourDistribution] = None
    grade_details: Tuple[GradeDetail, ...] = ()


@dataclass(frozen=True)
class PlanRecord:
    """
    One academic program's curriculum for one graduation year.

    semesters maps a semester folder name to the ordered courses of that
    semester; it only contains semesters that have at least one course.
    """

    year: str
    program_code: str
    program_name: str
    plan_id: str
    semesters: dict[str, Tuple[CourseEntry, ...]] = field(default_factory=dict)
    unscheduled: Tuple[CourseEntry, ...] = ()
    source: str = ""


@dataclass(frozen=True)
class ManifestEntry:
    """One file of a course resource repository, as listed in worktree.json."""

    path: Tuple[str, ...]
    size: Optional[int]
    last_modified: Optional[str]
    url: str


@dataclass(frozen=True)
class File:
    name: str
    url: str
    size: Optional[int] = None
    date: Optional[str] = None


@dataclass(frozen=True)
class Folder:
    name: str
    children: Tuple["TreeNode", ...] = ()


TreeNode = Union[Folder, File]


@dataclass
class GeneratedPage:
    """
    An output document: where it goes, its frontmatter and its body.

    frontmatter is serialized as YAML above the body.
    """

    path: Path
    frontmatter: dict[str, Any]
    body: str

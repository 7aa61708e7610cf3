"""
Page generation (PlanStore + course resources -> page tree).

Output layout, for every plan record:

    <out>/<year>/meta.json                         {"title": year}
    <out>/<year>/index.mdx                         one card per program
    <out>/<year>/<program>/meta.json               root + defaultOpen navigation node
    <out>/<year>/<program>/index.mdx               one card per non-empty semester
    <out>/<year>/<program>/<semester>/index.mdx    one card per written course page
    <out>/<year>/<program>/<semester>/<repo>.mdx   course page

Course resources come from the resource directory:

    <repos>/<repo>.mdx    narrative document (README of the course repository)
    <repos>/<repo>.json   worktree.json manifest (optional)

A course whose document is missing or unreadable is skipped: no page and no
card, and the skip is reported in GenerateResult. Index pages are written
only after all of their children, so they list exactly what exists.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from coursedocs import config
from coursedocs.course_filter import CourseFilterSet, should_include
from coursedocs.errors import FatalConfigError
from coursedocs.frontmatter import course_frontmatter, index_frontmatter, to_yaml
from coursedocs.model import CourseEntry, Folder, GeneratedPage, PlanRecord
from coursedocs.plans import PlanStore
from coursedocs.semesters import semester_by_folder
from coursedocs.tree import build_tree, jsx_attr, load_manifest, render_files_block


# ---------------------------------------------------------------------------
# Results & configuration objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkippedCourse:
    location: str
    repo_id: str
    reason: str


@dataclass
class GenerateResult:
    course_pages: int = 0
    index_pages: int = 0
    meta_files: int = 0
    filtered: int = 0
    skipped: List[SkippedCourse] = field(default_factory=list)

    @property
    def pages_written(self) -> int:
        return self.course_pages + self.index_pages


@dataclass(frozen=True)
class SharedCategory:
    """A group of courses shown under every program (e.g. general education)."""

    id: str
    title: str
    repo_ids: Tuple[str, ...]


@dataclass(frozen=True)
class SharedCategories:
    categories: Tuple[SharedCategory, ...] = ()
    # overview pages that are not real courses: no <CourseInfo /> block
    no_course_info: frozenset = frozenset()


def load_shared_categories(data_dir: str | Path) -> SharedCategories:
    """
    Load shared_categories.toml if present.

    Missing or broken file -> no shared categories.
    """
    path = Path(data_dir) / config.SHARED_CATEGORIES_FILE
    if not path.exists():
        return SharedCategories()
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError):
        return SharedCategories()

    categories: List[SharedCategory] = []
    for item in raw.get("categories", []):
        if not isinstance(item, dict) or not item.get("id"):
            continue
        categories.append(
            SharedCategory(
                id=str(item["id"]),
                title=str(item.get("title") or item["id"]),
                repo_ids=tuple(str(r) for r in item.get("repo_ids", [])),
            )
        )
    no_info = frozenset(str(r) for r in raw.get("no_course_info_repo_ids", []))
    return SharedCategories(categories=tuple(categories), no_course_info=no_info)


@dataclass
class _Resources:
    content: str
    title: str
    tree: Optional[Folder]


@dataclass
class _Context:
    resource_root: Path
    output_root: Path
    course_filter: CourseFilterSet
    base_href: str
    grades_summary: Dict[str, Any]
    result: GenerateResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def title_from_document(text: str, fallback: str) -> str:
    """
    Title of a course document: the first non-empty line among the first five
    (a 'title:' line or a '# heading'); for "CODE - Name" only Name is kept.
    """
    for line in text.splitlines()[:5]:
        line = line.strip()
        if not line or line == "---":
            continue
        if line.startswith("title:"):
            raw = line[len("title:"):].strip().strip("\"'")
        else:
            raw = line
        raw = raw.removeprefix("# ").strip()
        if " - " in raw:
            return raw.split(" - ", 1)[1].strip()
        return raw
    return fallback


def document_body(text: str) -> str:
    # the first two lines are the repository title and the blank line after it
    return "\n".join(text.splitlines()[2:])


def _load_resources(ctx: _Context, repo_id: str) -> Tuple[Optional[_Resources], str]:
    """
    Read the document and manifest of one course.

    Returns (resources, "") or (None, reason) when the course must be skipped.
    """
    doc_path = ctx.resource_root / f"{repo_id}{config.PAGE_SUFFIX}"
    manifest_path = ctx.resource_root / f"{repo_id}.json"

    if not doc_path.exists():
        return None, "document not found"
    try:
        text = doc_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return None, f"document unreadable: {exc}"

    tree: Optional[Folder] = None
    if manifest_path.exists():
        try:
            tree = build_tree(load_manifest(manifest_path, repo_id))
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            return None, f"invalid manifest: {exc}"

    return _Resources(content=document_body(text), title=title_from_document(text, repo_id), tree=tree), ""


def _href(ctx: _Context, *parts: str) -> str:
    return "/".join([ctx.base_href.rstrip("/"), *parts])


def _card(title: str, href: str) -> str:
    return f"  <Card {jsx_attr('title', title)} {jsx_attr('href', href)} />"


def render_page(page: GeneratedPage) -> str:
    return f"{to_yaml(page.frontmatter)}\n\n{page.body}"


def write_page(page: GeneratedPage) -> None:
    page.path.parent.mkdir(parents=True, exist_ok=True)
    page.path.write_text(render_page(page), encoding="utf-8")


def _write_meta(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def course_page(
    path: Path,
    title: str,
    course: CourseEntry,
    content: str,
    tree: Optional[Folder],
    with_course_info: bool = True,
) -> GeneratedPage:
    """Compose one course page: frontmatter, <CourseInfo />, narrative, downloads."""
    parts: List[str] = []
    if with_course_info:
        parts.append(config.COURSE_INFO_TAG + "\n\n")
    parts.append(content)
    if tree is not None:
        parts.append(f"\n\n{config.RESOURCES_HEADING}\n\n{render_files_block(tree, course.repo_id)}")
    return GeneratedPage(path=path, frontmatter=course_frontmatter(title, course), body="".join(parts))


def index_page(path: Path, title: str, cards: List[str]) -> GeneratedPage:
    body = "\n".join(["<Cards>", *cards, "</Cards>"])
    return GeneratedPage(path=path, frontmatter=index_frontmatter(title), body=body)


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


def _write_courses(
    ctx: _Context,
    courses: Tuple[CourseEntry, ...],
    target_dir: Path,
    location: str,
) -> List[CourseEntry]:
    """Write the pages of a course list; returns the courses actually written."""
    written: List[CourseEntry] = []
    seen: set[str] = set()
    for course in courses:
        if course.repo_id in seen:
            continue
        seen.add(course.repo_id)

        if not should_include(course.repo_id, ctx.course_filter):
            ctx.result.filtered += 1
            continue

        res, reason = _load_resources(ctx, course.repo_id)
        if res is None:
            ctx.result.skipped.append(SkippedCourse(location=location, repo_id=course.repo_id, reason=reason))
            continue

        path = target_dir / f"{course.repo_id}{config.PAGE_SUFFIX}"
        write_page(course_page(path, course.name, course, res.content, res.tree))
        ctx.result.course_pages += 1
        written.append(course)
    return written


def _write_category(
    ctx: _Context,
    record: PlanRecord,
    category: SharedCategory,
    categories: SharedCategories,
) -> bool:
    """Pages of one shared category below a program; False if nothing was written."""
    cat_dir = ctx.output_root / record.year / record.program_code / category.id
    location = f"{record.year}/{record.program_code}/{category.id}"
    cards: List[str] = []

    for repo_id in dict.fromkeys(category.repo_ids):
        if not should_include(repo_id, ctx.course_filter):
            ctx.result.filtered += 1
            continue
        res, reason = _load_resources(ctx, repo_id)
        if res is None:
            ctx.result.skipped.append(SkippedCourse(location=location, repo_id=repo_id, reason=reason))
            continue

        details = ctx.grades_summary.get(repo_id, {}).get("default", [])
        course = CourseEntry(code=repo_id, repo_id=repo_id, name=res.title, grade_details=tuple(details))
        page = course_page(
            cat_dir / f"{repo_id}{config.PAGE_SUFFIX}",
            res.title,
            course,
            res.content,
            res.tree,
            with_course_info=repo_id not in categories.no_course_info,
        )
        write_page(page)
        ctx.result.course_pages += 1
        cards.append(_card(res.title, _href(ctx, record.year, record.program_code, category.id, repo_id)))

    if not cards:
        return False
    write_page(index_page(cat_dir / config.INDEX_PAGE, category.title, cards))
    ctx.result.index_pages += 1
    return True


def _write_program(ctx: _Context, record: PlanRecord, categories: SharedCategories) -> None:
    program_dir = ctx.output_root / record.year / record.program_code
    program_dir.mkdir(parents=True, exist_ok=True)

    cards: List[str] = []
    pages: List[str] = ["..."]

    # 1. semesters (already in table order)
    for folder, courses in record.semesters.items():
        location = f"{record.year}/{record.program_code}/{folder}"
        sem_dir = program_dir / folder
        written = _write_courses(ctx, courses, sem_dir, location)
        if not written:
            continue

        key = semester_by_folder(folder)
        title = key.title if key else folder
        sem_cards = [
            _card(c.name, _href(ctx, record.year, record.program_code, folder, c.repo_id)) for c in written
        ]
        write_page(index_page(sem_dir / config.INDEX_PAGE, title, sem_cards))
        ctx.result.index_pages += 1

        cards.append(_card(title, _href(ctx, record.year, record.program_code, folder)))
        pages.append(folder)

    # 2. shared categories
    for category in categories.categories:
        if _write_category(ctx, record, category, categories):
            cards.append(_card(category.title, _href(ctx, record.year, record.program_code, category.id)))
            pages.append(category.id)

    # 3. courses without a semester live directly in the program folder
    loose = _write_courses(ctx, record.unscheduled, program_dir, f"{record.year}/{record.program_code}")
    for c in loose:
        cards.append(_card(c.name, _href(ctx, record.year, record.program_code, c.repo_id)))

    _write_meta(
        program_dir / config.META_FILE,
        {"title": record.program_name, "root": True, "defaultOpen": True, "pages": pages},
    )
    ctx.result.meta_files += 1

    write_page(index_page(program_dir / config.INDEX_PAGE, config.INDEX_TITLE, cards))
    ctx.result.index_pages += 1


def _write_year(ctx: _Context, year: str, records: List[PlanRecord]) -> None:
    year_dir = ctx.output_root / year
    _write_meta(year_dir / config.META_FILE, {"title": year})
    ctx.result.meta_files += 1

    cards = [_card(r.program_name, _href(ctx, year, r.program_code)) for r in records]
    write_page(index_page(year_dir / config.INDEX_PAGE, config.INDEX_TITLE, cards))
    ctx.result.index_pages += 1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def generate_pages(
    store: PlanStore,
    course_filter: CourseFilterSet,
    resource_root: str | Path,
    output_root: str | Path,
    shared_categories: Optional[SharedCategories] = None,
    base_href: str = config.BASE_HREF,
) -> GenerateResult:
    """
    Write every course page, index page and meta.json for the loaded plans.

    Raises FatalConfigError if the resource directory does not exist
    (checked before anything is written).
    """
    resource_root = Path(resource_root)
    if not resource_root.is_dir():
        raise FatalConfigError(resource_root, "resource directory")

    ctx = _Context(
        resource_root=resource_root,
        output_root=Path(output_root),
        course_filter=course_filter,
        base_href=base_href,
        grades_summary=store.grades_summary,
        result=GenerateResult(),
    )
    categories = shared_categories or SharedCategories()

    for year in store.years():
        records = store.programs(year)
        for record in records:
            _write_program(ctx, record, categories)
        _write_year(ctx, year, records)

    return ctx.result

"""
CLI (Command Line Interface).

Commands:

    coursedocs build     plans + course resources -> docs page tree (then format it)
    coursedocs format    run the MDX formatter over an existing page tree
    coursedocs fetch     download course resources (README + worktree.json) from GitHub

All directories default to the values in coursedocs/config.py and are
relative to the working directory.

Fatal problems (missing input directory, broken plan file) print a red
error line and exit with status 1. Courses that had to be skipped and
formatter rules that failed are listed in a summary table; they do not
change the exit status.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from coursedocs import config
from coursedocs.course_filter import load_course_filter
from coursedocs.errors import CourseDocsError
from coursedocs.fetch import fetch_repos, resolve_github_token
from coursedocs.formatter import FormatResult, format_all
from coursedocs.generate import GenerateResult, generate_pages, load_shared_categories
from coursedocs.plans import load_plans

console = Console()


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_skipped(result: GenerateResult) -> None:
    if not result.skipped:
        return
    table = Table(title=f"Skipped courses ({len(result.skipped)})", box=box.SIMPLE)
    table.add_column("Location")
    table.add_column("Repository")
    table.add_column("Reason")
    for s in result.skipped:
        table.add_row(escape(s.location), escape(s.repo_id), escape(s.reason))
    console.print(table)


def _print_format_failures(failures: Sequence[Tuple[Path, str]]) -> None:
    if not failures:
        return
    table = Table(title=f"Formatter failures ({len(failures)})", box=box.SIMPLE)
    table.add_column("File")
    table.add_column("Rule / error")
    for path, message in failures:
        table.add_row(escape(str(path)), escape(message))
    console.print(table)


def _print_format_summary(result: FormatResult) -> None:
    console.print(f"Formatted {result.changed} of {result.checked} pages")
    _print_format_failures(result.failures)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_build(args: argparse.Namespace) -> int:
    """
    Load every plan, write the page tree, then format it.
    """
    data_dir = Path(args.data_dir)
    out_dir = Path(args.out_dir)

    store = load_plans(data_dir)
    console.print(f"Loaded {len(store)} plans ({', '.join(store.years()) or 'no years'})")

    course_filter = load_course_filter(args.filter_file)
    if course_filter is None:
        console.print("No allow-list found, including every course")
    else:
        console.print(f"Allow-list: {len(course_filter)} courses")

    result = generate_pages(
        store,
        course_filter,
        args.repos_dir,
        out_dir,
        shared_categories=load_shared_categories(data_dir),
        base_href=args.base_href,
    )
    console.print(
        f"Wrote {result.course_pages} course pages, {result.index_pages} index pages, "
        f"{result.meta_files} meta files to {out_dir}"
    )
    if result.filtered:
        console.print(f"Filtered out: {result.filtered}")
    _print_skipped(result)

    if not args.no_format:
        _print_format_summary(format_all(out_dir))
    return 0


def _cmd_format(args: argparse.Namespace) -> int:
    """
    Format every .mdx page below the output directory in place.
    """
    out_dir = Path(args.out_dir)
    if not out_dir.is_dir():
        console.print(f"[red]Not a directory: {escape(str(out_dir))}[/red]")
        return 1
    _print_format_summary(format_all(out_dir))
    return 0


def _fetch_targets(args: argparse.Namespace) -> List[str]:
    """
    Repositories to fetch: explicit arguments, else the allow-list,
    else every repository referenced by the plans and shared categories.
    """
    if args.repos:
        return list(args.repos)

    course_filter = load_course_filter(args.filter_file)
    if course_filter is not None:
        return sorted(course_filter)

    data_dir = Path(args.data_dir)
    store = load_plans(data_dir)
    repos: set[str] = set()
    for record in store:
        for courses in record.semesters.values():
            repos.update(c.repo_id for c in courses)
        repos.update(c.repo_id for c in record.unscheduled)
    for category in load_shared_categories(data_dir).categories:
        repos.update(category.repo_ids)
    return sorted(repos)


def _cmd_fetch(args: argparse.Namespace) -> int:
    """
    Download README.md and worktree.json of each course repository.
    """
    repos = _fetch_targets(args)
    if not repos:
        console.print("Nothing to fetch.")
        return 0

    token = resolve_github_token()
    if token is None:
        console.print("[yellow]No GitHub token found, using unauthenticated requests[/yellow]")

    n, errors = fetch_repos(repos, args.repos_dir, token=token, refresh=args.refresh)
    if errors:
        table = Table(title=f"Fetch errors ({len(errors)})", box=box.SIMPLE)
        table.add_column("Error")
        for e in errors:
            table.add_row(escape(e))
        console.print(table)
    console.print(f"Processed {n} repositories")
    return 0


# ---------------------------------------------------------------------------
# Parser / entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="coursedocs", description="Course documentation page generator")
    sub = parser.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Generate the docs page tree from the curriculum plans")
    p_build.add_argument("--data-dir", default=str(config.DATA_DIR), help="Directory holding plans/ and lookup files")
    p_build.add_argument("--repos-dir", default=str(config.REPOS_DIR), help="Directory of <repo>.mdx / <repo>.json")
    p_build.add_argument("--out-dir", default=str(config.OUTPUT_DIR), help="Output root of the page tree")
    p_build.add_argument("--filter-file", default=str(config.FILTER_FILE), help="Allow-list of course codes")
    p_build.add_argument("--base-href", default=config.BASE_HREF, help="Link prefix of index cards")
    p_build.add_argument("--no-format", action="store_true", help="Skip the formatting pass")

    p_format = sub.add_parser("format", help="Format generated .mdx pages in place")
    p_format.add_argument("--out-dir", default=str(config.OUTPUT_DIR), help="Root of the page tree")

    p_fetch = sub.add_parser("fetch", help="Download course resources from GitHub")
    p_fetch.add_argument("repos", nargs="*", help="Repository names (default: allow-list or all planned courses)")
    p_fetch.add_argument("--data-dir", default=str(config.DATA_DIR), help="Directory holding plans/ and lookup files")
    p_fetch.add_argument("--repos-dir", default=str(config.REPOS_DIR), help="Where to store the downloaded files")
    p_fetch.add_argument("--filter-file", default=str(config.FILTER_FILE), help="Allow-list of course codes")
    p_fetch.add_argument("--refresh", action="store_true", help="Download again even if files exist")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {"build": _cmd_build, "format": _cmd_format, "fetch": _cmd_fetch}
    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = handler(args)
    except CourseDocsError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
        raise SystemExit(1) from exc

    raise SystemExit(code)

"""
File tree (flat manifest -> nested Folder/File nodes -> <Files> markup).

A course repository publishes worktree.json, a flat mapping

    {"docs/notes/lecture1.pdf": {"size": 1024, "time": 1640000000}, ...}

This module turns it into a tree for the page's download section:
- excluded names (README.md, .gitkeep, dotfiles, ...) are dropped first
- intermediate folders are created on demand
- every folder lists sub-folders first, then files, each group by name

Name order is case-insensitive with a case-sensitive tie-break
(casefold(name), name), so the result never depends on input order.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from coursedocs import config
from coursedocs.model import File, Folder, ManifestEntry, TreeNode

ExclusionRule = Callable[[str, bool], bool]

EXCLUDED_NAMES = frozenset({".gitkeep", "README.md", "LICENSE", "tag.txt"})
EXCLUDED_EXTENSIONS = (".toml",)


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


def format_timestamp(unix_ts: int | float) -> str:
    """Unix timestamp -> 'YYYY-MM-DD' (UTC)."""
    return datetime.fromtimestamp(unix_ts, tz=timezone.utc).strftime("%Y-%m-%d")


def download_url(repo_id: str, segments: Iterable[str]) -> str:
    """Raw download URL of a repository file; each path segment is percent-encoded."""
    encoded = "/".join(quote(seg, safe="") for seg in segments)
    return config.DOWNLOAD_URL_TEMPLATE.format(repo=repo_id, path=encoded)


def split_path(path: str) -> Tuple[str, ...]:
    return tuple(seg for seg in path.strip().split("/") if seg)


def manifest_entries(data: Dict[str, Any], repo_id: str) -> List[ManifestEntry]:
    """
    Convert the parsed worktree.json mapping into ManifestEntry objects.

    Raises ValueError if the payload is not a mapping of path -> metadata.
    """
    if not isinstance(data, dict):
        raise ValueError("worktree manifest must be a JSON object")

    entries: List[ManifestEntry] = []
    for path, meta in data.items():
        segments = split_path(str(path))
        if not segments:
            continue
        if meta is None:
            meta = {}
        if not isinstance(meta, dict):
            raise ValueError(f"invalid metadata for {path!r}")

        size = meta.get("size")
        ts = meta.get("time")
        try:
            size = int(size) if size is not None else None
            date = format_timestamp(ts) if ts is not None else None
        except (TypeError, ValueError, OverflowError, OSError):
            raise ValueError(f"invalid size/time for {path!r}") from None

        entries.append(
            ManifestEntry(path=segments, size=size, last_modified=date, url=download_url(repo_id, segments))
        )
    return entries


def load_manifest(path: str | Path, repo_id: str) -> List[ManifestEntry]:
    """
    Read worktree.json from disk.

    Raises OSError if unreadable, ValueError if it is not a valid manifest.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return manifest_entries(data, repo_id)


# ---------------------------------------------------------------------------
# Exclusion
# ---------------------------------------------------------------------------


def default_exclusion(name: str, is_dir: bool) -> bool:
    """
    True if a path segment must not appear in the tree:
    dotfiles/dot-directories, repository boilerplate files and *.toml.
    """
    if name.startswith("."):
        return True
    if is_dir:
        return False
    return name in EXCLUDED_NAMES or name.endswith(EXCLUDED_EXTENSIONS)


def is_excluded(segments: Tuple[str, ...], exclude: ExclusionRule) -> bool:
    last = len(segments) - 1
    return any(exclude(seg, i < last) for i, seg in enumerate(segments))


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


class _Builder:
    """Mutable folder used while inserting; converted to a frozen Folder afterwards."""

    def __init__(self) -> None:
        self.folders: Dict[str, _Builder] = {}
        self.files: Dict[str, ManifestEntry] = {}

    def insert(self, entry: ManifestEntry) -> None:
        node = self
        for seg in entry.path[:-1]:
            node = node.folders.setdefault(seg, _Builder())
        name = entry.path[-1]
        current = node.files.get(name)
        # duplicate paths: keep one deterministically, whatever the input order
        if current is None or _entry_rank(entry) > _entry_rank(current):
            node.files[name] = entry

    def freeze(self, name: str) -> Folder:
        children: List[TreeNode] = [b.freeze(n) for n, b in self.folders.items()]
        for n, entry in self.files.items():
            # a name used both as folder and file: the folder wins
            if n in self.folders:
                continue
            children.append(File(name=n, url=entry.url, size=entry.size, date=entry.last_modified))
        children.sort(key=sort_key)
        return Folder(name=name, children=tuple(children))


def _entry_rank(entry: ManifestEntry) -> Tuple[str, int, str]:
    return (entry.last_modified or "", entry.size if entry.size is not None else -1, entry.url)


def sort_key(node: TreeNode) -> Tuple[int, str, str]:
    """Folders before files, then case-insensitive name, then exact name."""
    return (0 if isinstance(node, Folder) else 1, node.name.casefold(), node.name)


def build_tree(
    entries: Iterable[ManifestEntry],
    exclude: Optional[ExclusionRule] = default_exclusion,
    root_name: str = "",
) -> Folder:
    """
    Build the nested tree from flat manifest entries.

    Entries with any excluded segment are dropped before insertion, so a
    folder that only contained excluded files does not appear at all.
    An empty or fully excluded manifest gives a root folder without children.
    """
    root = _Builder()
    for entry in entries:
        if not entry.path:
            continue
        if exclude is not None and is_excluded(entry.path, exclude):
            continue
        root.insert(entry)
    return root.freeze(root_name)


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


def jsx_attr(name: str, value: str) -> str:
    """
    name="value", or name={"value"} when the value contains characters
    that cannot appear in a quoted JSX attribute.
    """
    if any(ch in value for ch in '"{}\\') or "\n" in value:
        return f"{name}={{{json.dumps(value, ensure_ascii=False)}}}"
    return f'{name}="{value}"'


def _render_node(node: TreeNode, level: int, lines: List[str]) -> None:
    indent = "  " * level
    if isinstance(node, Folder):
        lines.append(f"{indent}<Folder {jsx_attr('name', node.name)}>")
        for child in node.children:
            _render_node(child, level + 1, lines)
        lines.append(f"{indent}</Folder>")
        return

    props = [jsx_attr("name", node.name), jsx_attr("url", node.url)]
    if node.date:
        props.append(jsx_attr("date", node.date))
    if node.size:
        props.append(f"size={{{node.size}}}")
    lines.append(f"{indent}<File {' '.join(props)} />")


def render_tree(root: Folder, indent_level: int = 1) -> str:
    """
    Render the children of root as nested <Folder>/<File> elements,
    in the tree's order. The root itself is the surrounding container
    (see render_files_block). Empty root -> "".
    """
    lines: List[str] = []
    for child in root.children:
        _render_node(child, indent_level, lines)
    return "\n".join(lines)


def render_files_block(root: Folder, repo_id: str) -> str:
    """The complete <Files> container for a course page; valid when empty."""
    opening = f"<Files {jsx_attr('url', config.FILES_URL_TEMPLATE.format(repo=repo_id))}>"
    inner = render_tree(root, 1)
    if not inner:
        return f"{opening}\n</Files>"
    return f"{opening}\n{inner}\n</Files>"

"""
Formatter (course README markdown -> MDX that the site can compile).

Course documents are written for GitHub/Hugo and contain things MDX rejects
or renders badly: HTML comments, badge images, <br> without a slash,
string style attributes, unescaped braces in LaTeX and Hugo shortcodes.

The formatter is an ordered list of rules. Each rule is a plain
str -> str function; order matters because later rules expect the earlier
ones to have run. All rules except the accordion wrapping only touch text
outside code: fenced blocks and inline `code` spans are left as they are.

Running the formatter twice gives the same text as running it once.

A rule that meets content it cannot rewrite raises FormatRuleError; the
document keeps its text from before that rule and the remaining rules
still run.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from coursedocs import config
from coursedocs.errors import FormatRuleError
from coursedocs.tree import jsx_attr

Rule = Callable[[str], str]


# ---------------------------------------------------------------------------
# Code fences
# ---------------------------------------------------------------------------

_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


def _closes_fence(line: str, fence: str) -> bool:
    m = _FENCE.match(line)
    if not m or m.group(1)[0] != fence[0] or len(m.group(1)) < len(fence):
        return False
    return not line.strip()[len(m.group(1)):].strip()


def split_fenced(text: str) -> List[Tuple[bool, str]]:
    """
    Split text into (is_code, chunk) pieces; joining the chunks gives the text back.
    An unclosed fence runs to the end of the document.
    """
    pieces: List[Tuple[bool, str]] = []
    buf: List[str] = []
    fence: Optional[str] = None

    for line in text.splitlines(keepends=True):
        m = _FENCE.match(line)
        if fence is None:
            if m:
                if buf:
                    pieces.append((False, "".join(buf)))
                buf = [line]
                fence = m.group(1)
            else:
                buf.append(line)
        else:
            buf.append(line)
            if _closes_fence(line, fence):
                pieces.append((True, "".join(buf)))
                buf = []
                fence = None

    if buf:
        pieces.append((fence is not None, "".join(buf)))
    return pieces


def code_span_end(text: str, i: int) -> Tuple[int, int]:
    """
    text[i] opens a backtick run. Returns (run length, index after the
    matching closing run), or (run length, -1) when the span is not closed.
    A code span never crosses a blank line.
    """
    n = len(text)
    run = 1
    while i + run < n and text[i + run] == "`":
        run += 1
    limit = text.find("\n\n", i + run)
    if limit == -1:
        limit = n
    j = i + run
    while j < limit:
        close = text.find("`", j, limit)
        if close == -1:
            break
        k = close
        while k < n and text[k] == "`":
            k += 1
        if k - close == run:
            return run, k
        j = k
    return run, -1


def _split_inline_code(text: str) -> List[Tuple[bool, str]]:
    pieces: List[Tuple[bool, str]] = []
    start = 0
    i = 0
    n = len(text)
    while i < n:
        # backticks inside an HTML comment do not open a code span
        if text.startswith("<!--", i):
            end = text.find("-->", i + 4)
            i = n if end == -1 else end + 3
            continue
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            run, end = code_span_end(text, i)
            if end == -1:
                i += run
                continue
            if start < i:
                pieces.append((False, text[start:i]))
            pieces.append((True, text[i:end]))
            start = i = end
            continue
        i += 1
    if start < n:
        pieces.append((False, text[start:]))
    return pieces


def split_code(text: str) -> List[Tuple[bool, str]]:
    """
    Like split_fenced, but inline `code` spans are split out as code too.
    """
    pieces: List[Tuple[bool, str]] = []
    for is_code, chunk in split_fenced(text):
        if is_code:
            pieces.append((True, chunk))
        else:
            pieces.extend(_split_inline_code(chunk))
    return pieces


def outside_code(rule: Rule) -> Rule:
    """Apply rule only to the parts of the text that are neither fenced code nor inline code."""

    def wrapped(text: str) -> str:
        return "".join(chunk if is_code else rule(chunk) for is_code, chunk in split_code(text))

    wrapped.__name__ = rule.__name__
    wrapped.__doc__ = rule.__doc__
    return wrapped


# ---------------------------------------------------------------------------
# 1. HTML comments
# ---------------------------------------------------------------------------

_COMMENT = re.compile(r"<!--.*?-->", re.S)


def strip_html_comments(text: str) -> str:
    return _COMMENT.sub("", text)


# ---------------------------------------------------------------------------
# 2. Badges
# ---------------------------------------------------------------------------

BADGE_URL = re.compile(r"^\s*https?://img\.shields\.io/", re.I)

_MD_IMAGE = r"!\[[^\]]*\]\(\s*https?://img\.shields\.io/[^)]*\)"
_LINKED_MD_BADGE = re.compile(r"\[\s*" + _MD_IMAGE + r"\s*\]\([^)]*\)", re.I)
_MD_BADGE = re.compile(_MD_IMAGE, re.I)
_LINKED_IMG_TAG = re.compile(r"<a\b[^>]*>\s*(<img\b[^>]*>)\s*</a>", re.I)
_IMG_TAG = re.compile(r"<img\b[^>]*>", re.I)


def _is_badge_tag(tag_html: str) -> bool:
    img = BeautifulSoup(tag_html, "html.parser").find("img")
    if img is None:
        return False
    return bool(BADGE_URL.match(str(img.get("src") or "")))


def _strip_badges_line(line: str) -> str:
    line = _LINKED_MD_BADGE.sub("", line)
    line = _MD_BADGE.sub("", line)
    line = _LINKED_IMG_TAG.sub(lambda m: "" if _is_badge_tag(m.group(1)) else m.group(0), line)
    return _IMG_TAG.sub(lambda m: "" if _is_badge_tag(m.group(0)) else m.group(0), line)


def strip_badges(text: str) -> str:
    """
    Remove shields.io badges (markdown images, linked images and <img> tags).
    A line that held nothing but badges is removed entirely.
    """
    out: List[str] = []
    for line in text.split("\n"):
        new = _strip_badges_line(line)
        if new != line and not new.strip():
            continue
        out.append(new)
    return "\n".join(out)


# ---------------------------------------------------------------------------
# 3. Void elements
# ---------------------------------------------------------------------------

VOID_ELEMENTS = ("area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "param", "source", "track", "wbr")

# lowercase only: capitalized tags are MDX components (<Link>, <Source>)
_VOID_TAG = re.compile(
    r"<(" + "|".join(VOID_ELEMENTS) + r")(?=[\s/>])((?:[^<>\"']|\"[^\"]*\"|'[^']*')*?)\s*/?>",
)


def close_void_elements(text: str) -> str:
    """<br> -> <br />, <img src="x"> -> <img src="x" />."""
    return _VOID_TAG.sub(lambda m: f"<{m.group(1)}{m.group(2)} />", text)


# ---------------------------------------------------------------------------
# 4. Malformed HTML
# ---------------------------------------------------------------------------

_MALFORMED = (
    (re.compile(r"<tr>\s*</table>", re.I), "</table>"),
    (re.compile(r"<tr>\s*</tr>", re.I), ""),
    (re.compile(r"</br\s*>", re.I), "<br />"),
)


def repair_malformed_html(text: str) -> str:
    """
    Fix the broken table/line-break markup produced by the README exporter.
    Applied until nothing changes, since one fix can expose another.
    """
    while True:
        new = text
        for pattern, repl in _MALFORMED:
            new = pattern.sub(repl, new)
        if new == text:
            return new
        text = new


# ---------------------------------------------------------------------------
# 5. style="..." -> style={{...}}
# ---------------------------------------------------------------------------

_STYLE_ATTR = re.compile(r"(\s*)(?<![\w-])style\s*=\s*(?:\"([^\"]*)\"|'([^']*)')", re.I)


def css_to_camel_case(prop: str) -> str:
    """text-align -> textAlign, -webkit-box-shadow -> WebkitBoxShadow."""
    parts = prop.strip().split("-")
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:] if p)


def _style_object(css: str) -> str:
    props: List[str] = []
    for decl in css.split(";"):
        decl = decl.strip()
        if not decl:
            continue
        if ":" not in decl:
            raise FormatRuleError(f"cannot convert style declaration {decl!r}")
        name, value = (x.strip() for x in decl.split(":", 1))
        if not name:
            raise FormatRuleError(f"cannot convert style declaration {decl!r}")
        key = json.dumps(name) if name.startswith("--") else css_to_camel_case(name)
        props.append(f"{key}: {json.dumps(value, ensure_ascii=False)}")
    return ", ".join(props)


def style_to_jsx(text: str) -> str:
    """style="text-align: center" -> style={{textAlign: "center"}}; empty styles are dropped."""

    def repl(m: re.Match) -> str:
        css = m.group(2) if m.group(2) is not None else m.group(3)
        obj = _style_object(css)
        if not obj:
            return ""
        return f"{m.group(1)}style={{{{{obj}}}}}"

    return _STYLE_ATTR.sub(repl, text)


# ---------------------------------------------------------------------------
# 6. Braces in math
# ---------------------------------------------------------------------------


def _find_math_end(text: str, start: int, display: bool) -> int:
    """Index of the closing delimiter, or -1. Inline math never spans lines."""
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n" and not display:
            return -1
        if ch == "$":
            if not display:
                return i
            if i + 1 < n and text[i + 1] == "$":
                return i
        i += 1
    return -1


# JSX style objects written by style_to_jsx; "$5 <b style=...> $8" looks like math
_JSX_STYLE = re.compile(r"style=\{\{[^{}]*\}\}")


def _escape_plain_braces(math: str) -> str:
    out: List[str] = []
    for i, ch in enumerate(math):
        if ch in "{}" and (i == 0 or math[i - 1] != "\\"):
            out.append("\\")
        out.append(ch)
    return "".join(out)


def _escape_braces(math: str) -> str:
    out: List[str] = []
    pos = 0
    for m in _JSX_STYLE.finditer(math):
        out.append(_escape_plain_braces(math[pos : m.start()]))
        out.append(m.group(0))
        pos = m.end()
    out.append(_escape_plain_braces(math[pos:]))
    return "".join(out)


def escape_math_braces(text: str) -> str:
    """
    $x^{2}$ -> $x^\\{2\\}$ (also in $$...$$). Already escaped braces,
    escaped dollars and inline code spans are left alone.
    """
    out: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 1 < n:
            out.append(text[i : i + 2])
            i += 2
            continue
        if ch == "`":
            run, end = code_span_end(text, i)
            if end == -1:
                out.append(text[i : i + run])
                i += run
                continue
            out.append(text[i:end])
            i = end
            continue
        if ch == "$":
            display = i + 1 < n and text[i + 1] == "$"
            width = 2 if display else 1
            end = _find_math_end(text, i + width, display)
            if end != -1:
                out.append(text[i : i + width])
                out.append(_escape_braces(text[i + width : end]))
                out.append(text[end : end + width])
                i = end + width
                continue
            out.append(text[i : i + width])
            i += width
            continue
        out.append(ch)
        i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# 7. Hugo details shortcode -> <Accordion>
# ---------------------------------------------------------------------------

_SC_OPEN = r"\{\{[%<]\s*details\s+title=\"([^\"]*)\"[^}]*?\s*[%>]\}\}"
_SC_CLOSE = r"\{\{[%<]\s*/details\s*[%>]\}\}"

_SC_SINGLE = re.compile(_SC_OPEN + r"[ \t]*(\S.*?)[ \t]*" + _SC_CLOSE)
_SC_OPEN_RE = re.compile(_SC_OPEN)
_SC_CLOSE_AFTER_TEXT = re.compile(r"(\S)[ \t]*" + _SC_CLOSE)
_SC_CLOSE_RE = re.compile(_SC_CLOSE)

_ACCORDION_OPEN = re.compile(r"<Accordion(?=[\s>/])")
_ACCORDION_CLOSE = "</Accordion>"
_CONTAINER_OPEN = re.compile(r"<Accordions(?=[\s>])")
_CONTAINER_CLOSE = "</Accordions>"


def _convert_shortcodes(text: str) -> str:
    text = _SC_SINGLE.sub(lambda m: f"<Accordion {jsx_attr('title', m.group(1))}>\n{m.group(2)}\n</Accordion>", text)
    text = _SC_OPEN_RE.sub(lambda m: f"<Accordion {jsx_attr('title', m.group(1))}>", text)
    text = _SC_CLOSE_AFTER_TEXT.sub(lambda m: f"{m.group(1)}\n</Accordion>", text)
    return _SC_CLOSE_RE.sub("</Accordion>", text)


def _fence_flags(lines: Sequence[str]) -> List[bool]:
    """For each line: True if it is part of a fenced code block (fence lines included)."""
    flags: List[bool] = []
    fence: Optional[str] = None
    for line in lines:
        m = _FENCE.match(line)
        if fence is None:
            if m:
                fence = m.group(1)
                flags.append(True)
            else:
                flags.append(False)
        else:
            flags.append(True)
            if _closes_fence(line, fence):
                fence = None
    return flags


def wrap_accordions(text: str) -> str:
    """
    Wrap every run of consecutive top-level <Accordion> blocks in one
    <Accordions> container. Runs that are already inside a container are
    left as they are.
    """
    lines = text.split("\n")
    code = _fence_flags(lines)
    out: List[str] = []
    container = 0
    i = 0
    n = len(lines)

    def next_content_line(j: int) -> int:
        while j < n and not lines[j].strip():
            j += 1
        return j

    while i < n:
        line = lines[i]
        if code[i]:
            out.append(line)
            i += 1
            continue
        opened = len(_CONTAINER_OPEN.findall(line))
        closed = line.count(_CONTAINER_CLOSE)
        if opened or closed:
            container = max(0, container + opened - closed)
        elif container == 0 and _ACCORDION_OPEN.search(line):
            run: List[str] = []
            depth = 0
            while i < n:
                current = lines[i]
                run.append(current)
                if not code[i]:
                    depth += len(_ACCORDION_OPEN.findall(current)) - current.count(_ACCORDION_CLOSE)
                i += 1
                if depth <= 0:
                    j = next_content_line(i)
                    if j < n and not code[j] and _ACCORDION_OPEN.search(lines[j]):
                        run.extend(lines[i:j])
                        i = j
                        depth = 0
                        continue
                    break
            out.append("<Accordions>")
            out.extend(run)
            out.append("</Accordions>")
            continue
        out.append(line)
        i += 1

    return "\n".join(out)


def details_to_accordion(text: str) -> str:
    """{{% details title="Q" %}}A{{% /details %}} -> <Accordions><Accordion title="Q">A</Accordion></Accordions>."""
    return wrap_accordions(outside_code(_convert_shortcodes)(text))


# ---------------------------------------------------------------------------
# 8. Blank lines
# ---------------------------------------------------------------------------

_BLANK_RUN = re.compile(r"\n{3,}")


def collapse_blank_lines(text: str) -> str:
    return _BLANK_RUN.sub("\n\n", text)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FormatRule:
    name: str
    apply: Rule


DEFAULT_RULES: Tuple[FormatRule, ...] = (
    FormatRule("strip_html_comments", outside_code(strip_html_comments)),
    FormatRule("strip_badges", outside_code(strip_badges)),
    FormatRule("close_void_elements", outside_code(close_void_elements)),
    FormatRule("repair_malformed_html", outside_code(repair_malformed_html)),
    FormatRule("style_to_jsx", outside_code(style_to_jsx)),
    FormatRule("escape_math_braces", outside_code(escape_math_braces)),
    FormatRule("details_to_accordion", details_to_accordion),
    FormatRule("collapse_blank_lines", outside_code(collapse_blank_lines)),
)


@dataclass
class FormatOutcome:
    text: str
    failures: List[str] = field(default_factory=list)


@dataclass
class FormatResult:
    checked: int = 0
    changed: int = 0
    failures: List[Tuple[Path, str]] = field(default_factory=list)


class Formatter:
    """Ordered rule pipeline; see module docstring."""

    def __init__(self, rules: Sequence[FormatRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def format(self, text: str) -> FormatOutcome:
        outcome = FormatOutcome(text=text)
        for rule in self.rules:
            try:
                outcome.text = rule.apply(outcome.text)
            except FormatRuleError as exc:
                outcome.failures.append(f"{rule.name}: {exc}")
        return outcome

    def format_all(self, page_root: str | Path) -> FormatResult:
        """
        Format every page below page_root in place.
        Files are only written when their content changed.
        """
        result = FormatResult()
        for path in sorted(Path(page_root).rglob(f"*{config.PAGE_SUFFIX}")):
            if not path.is_file():
                continue
            result.checked += 1
            try:
                original = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                result.failures.append((path, f"unreadable: {exc}"))
                continue

            outcome = self.format(original)
            result.failures.extend((path, msg) for msg in outcome.failures)
            if outcome.text == original:
                continue
            try:
                path.write_text(outcome.text, encoding="utf-8")
            except OSError as exc:
                result.failures.append((path, f"unwritable: {exc}"))
                continue
            result.changed += 1
        return result


def format_document(text: str) -> str:
    """Format one document with the default rules."""
    return Formatter().format(text).text


def format_all(page_root: str | Path) -> FormatResult:
    return Formatter().format_all(page_root)

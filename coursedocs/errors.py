"""
Error types.

Fatal conditions are exceptions and stop the run; recoverable conditions
(missing course resources, a formatter rule that cannot be applied) are
recorded in result objects by the component that hits them.
"""

from __future__ import annotations

from pathlib import Path


class CourseDocsError(Exception):
    """Base class for all fatal errors raised by coursedocs."""


class FatalConfigError(CourseDocsError):
    """A required input directory does not exist."""

    def __init__(self, path: str | Path, what: str = "directory") -> None:
        self.path = Path(path)
        super().__init__(f"Missing required {what}: {self.path}")


class FatalParseError(CourseDocsError):
    """A curriculum plan could not be turned into a PlanRecord."""

    def __init__(self, source: str | Path, detail: str) -> None:
        self.source = str(source)
        self.detail = detail
        super().__init__(f"{self.source}: {detail}")


class UnknownSemesterError(CourseDocsError, KeyError):
    """A semester label is not in the fixed semester table."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Unknown semester label: {label!r}")

    def __str__(self) -> str:
        return self.args[0]


class FormatRuleError(Exception):
    """
    A formatter rule found content it cannot rewrite safely.

    Never escapes the formatter: the pipeline keeps the text as it was
    before the failing rule and moves on.
    """

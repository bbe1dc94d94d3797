"""
Rendering of search matches into bounded text reports.
"""

from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field

from workspace_tools.filesystem.models import RawMatch

NO_MATCHES_OUTPUT = "No matches found"
TRUNCATION_NOTICE = (
    "(Results are truncated. Consider using a more specific path or pattern.)"
)


class SearchReport(BaseModel):
    """Final, human-readable result of a content search."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(description="The pattern that was searched for")
    total_matches: int = Field(description="Number of matches in the report")
    truncated: bool = Field(description="Whether matches were dropped to honor the cap")
    output: str = Field(description="Rendered report text")
    matches: tuple[RawMatch, ...] = Field(
        default=(), description="The sorted, capped matches that were rendered"
    )


def sort_matches(matches: Sequence[RawMatch]) -> list[RawMatch]:
    """
    Order matches by file path.

    Paths compare by code point, independent of locale. The sort is
    stable, so matches within one file keep their discovery order.
    """
    return sorted(matches, key=lambda m: m.path)


def format_matches(matches: Sequence[RawMatch], cap: int, title: str) -> SearchReport:
    """
    Sort, truncate and render matches.

    Args:
        matches: Matches in discovery order
        cap: Maximum number of matches to keep
        title: Report title (the search pattern)

    Returns:
        SearchReport with at most ``cap`` matches
    """
    if not matches:
        return SearchReport(
            title=title, total_matches=0, truncated=False, output=NO_MATCHES_OUTPUT
        )

    ordered = sort_matches(matches)
    truncated = len(ordered) >= cap
    kept = ordered[:cap]

    lines = [f"Found {len(kept)} matches"]
    current_path = None
    for match in kept:
        if match.path != current_path:
            if current_path is not None:
                lines.append("")
            current_path = match.path
            lines.append(f"{match.path}:")
        lines.append(f"  Line {match.line_number}: {match.line_text.strip()}")

    if truncated:
        lines.append("")
        lines.append(TRUNCATION_NOTICE)

    return SearchReport(
        title=title,
        total_matches=len(kept),
        truncated=truncated,
        output="\n".join(lines),
        matches=tuple(kept),
    )

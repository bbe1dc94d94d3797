"""
Search data models.

This module defines Pydantic models for search queries and the matches
they produce.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SubMatch(BaseModel):
    """One regex hit inside a matched line."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Matched text")
    start: int = Field(ge=0, description="Byte offset where the hit starts")
    end: int = Field(ge=0, description="Byte offset where the hit ends")


class RawMatch(BaseModel):
    """A single matching line."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="File path, relative to the workspace root")
    line_number: int = Field(ge=1, description="1-based line number")
    line_text: str = Field(description="Full text of the matching line")
    submatches: tuple[SubMatch, ...] = Field(
        default=(), description="Hits within the line, in order"
    )

    def __str__(self) -> str:
        return f"{self.path}:{self.line_number}: {self.line_text.rstrip()}"


class SearchQuery(BaseModel):
    """Parameters of one content search."""

    pattern: str = Field(min_length=1, description="Regular expression to search for")
    directory: Optional[str] = Field(
        default=None, description="Directory to search, relative to the workspace root"
    )
    include: Optional[str] = Field(
        default=None, description="Glob restricting which files are searched"
    )
    max_matches: Optional[int] = Field(
        default=100, ge=1, description="Per-file match cap passed to the search binary (None = no cap)"
    )


class SearchStatus(str, Enum):
    """Outcome of a search subprocess that did not fail."""

    MATCHES = "matches"
    NO_MATCHES = "no_matches"


class SearchOutcome(BaseModel):
    """Decoded result of running the search binary."""

    status: SearchStatus
    matches: list[RawMatch] = Field(default_factory=list)
    stderr: str = ""

    @property
    def found(self) -> bool:
        return self.status is SearchStatus.MATCHES

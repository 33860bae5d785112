"""Data passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class ReviewFinding:
    """One model-generated remark tied to a file and a post-change line."""

    path: str
    line: int
    comment: str

    def to_review_comment(self) -> dict:
        """Map to the inline comment shape expected by the pull request review API."""
        return {"path": self.path, "line": self.line, "body": self.comment}


class PostOutcome(str, Enum):
    NO_ISSUES = "no_issues"
    INLINE_POSTED = "inline_posted"
    FALLBACK_POSTED = "fallback_posted"


@dataclass
class PostResult:
    """Result returned by post_review_comments.

    ``body`` is the message that was actually sent: the no-issues comment,
    the review summary, or the fallback comment. ``comments`` holds the inline
    comments that were attempted, in model order.
    """

    outcome: PostOutcome
    body: str
    comments: list[dict] = field(default_factory=list)

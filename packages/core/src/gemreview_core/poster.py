"""Posting findings back to the pull request.

Exactly one outward communication per run: a no-issues comment, a single
COMMENT review with all inline comments, or, when GitHub rejects the review
with 422 because a path/line is not part of the diff, one issue comment that
lists every finding as text.
"""

from __future__ import annotations

import logging

from github import GithubException
from rich.console import Console

from gemreview_core.models import PostOutcome, PostResult, ReviewFinding

console = Console()
logger = logging.getLogger(__name__)

REVIEW_HEADING = "## 🤖 AI Code Review by Gemini"
FALLBACK_HEADING = "## ⚠️ AI Review Error (Fallback)"
NO_ISSUES_BODY = f"{REVIEW_HEADING}\n\nNo critical issues found. **Looks good!**"

# GitHub answers 422 when any inline comment points outside the diff.
_UNPROCESSABLE_ENTITY = 422


def build_review_summary(comment_count: int) -> str:
    """Build the body of the inline review."""
    return (
        f"{REVIEW_HEADING}\n\n"
        f"I've left {comment_count} specific comment(s) on the changes. "
        'Please check the marked lines in the "Files changed" tab.\n\n'
        "---\n\n"
        "*Please note: I am an AI, and my suggestions are recommendations only. "
        "A human review remains essential!*"
    )


def build_fallback_body(review_summary: str, comments: list[dict]) -> str:
    """Restate the summary and every finding as flat text for an issue comment."""
    summary = review_summary.replace(REVIEW_HEADING, "", 1).strip()
    details = "\n".join(f"- **{c['path']} (line {c['line']}):** {c['body']}" for c in comments)
    return (
        f"{FALLBACK_HEADING}\n\n"
        "**The attempt to set line-specific comments failed due to invalid line numbers (422 error).**\n\n"
        "Here is the generated feedback as a general comment:\n\n"
        "---\n\n"
        f"**Summary:** {summary}\n\n"
        "**Feedback Details:**\n"
        f"{details}\n"
    )


def post_review_comments(pr, findings: list[ReviewFinding]) -> PostResult:
    """Post findings on ``pr`` (a PyGithub PullRequest) and report which path was taken.

    No finding is dropped or corrected before the review attempt. Only a 422
    from create_review is handled here; every other error propagates.
    """
    comments = [f.to_review_comment() for f in findings]

    if not comments:
        pr.create_issue_comment(NO_ISSUES_BODY)
        console.print("[green]No comments generated; posted a positive summary comment.[/green]")
        return PostResult(outcome=PostOutcome.NO_ISSUES, body=NO_ISSUES_BODY)

    summary = build_review_summary(len(comments))
    try:
        # COMMENT neither approves nor requests changes.
        pr.create_review(body=summary, event="COMMENT", comments=comments)
    except GithubException as e:
        if e.status != _UNPROCESSABLE_ENTITY:
            raise
        logger.warning(
            "GitHub rejected the review (422 Unprocessable Entity); "
            "the model most likely produced line numbers outside the diff."
        )
        fallback = build_fallback_body(summary, comments)
        pr.create_issue_comment(fallback)
        console.print("[yellow]Posted the feedback as a general comment instead.[/yellow]")
        return PostResult(outcome=PostOutcome.FALLBACK_POSTED, body=fallback, comments=comments)

    console.print(f"[green]Review posted with {len(comments)} line-specific comment(s).[/green]")
    return PostResult(outcome=PostOutcome.INLINE_POSTED, body=summary, comments=comments)

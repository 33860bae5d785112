"""Core PR review pipeline: fetch diff → request findings → post."""

from __future__ import annotations

import logging

from rich.console import Console

from gemreview_core.config import EventContext, ReviewConfig
from gemreview_core.errors import ConfigError, UnsupportedEventError
from gemreview_core.gh.pull_request import fetch_diff, get_pull, get_repo
from gemreview_core.models import PostResult, ReviewFinding
from gemreview_core.poster import post_review_comments
from gemreview_core.providers.gemini import GeminiReviewer

console = Console()
logger = logging.getLogger(__name__)

PULL_REQUEST_EVENT = "pull_request"


def ensure_pull_request_event(context: EventContext) -> None:
    if context.event_name != PULL_REQUEST_EVENT:
        raise UnsupportedEventError("This action is only available for pull requests!")
    if context.number is None:
        raise ConfigError("The pull_request event payload carries no pull request number.")


def _get_reviewer(config: ReviewConfig) -> GeminiReviewer:
    return GeminiReviewer(api_key=config.gemini_api_key, model=config.model, timeout=config.request_timeout)


def print_shadow_comments(findings: list[ReviewFinding]) -> None:
    """Print findings to the terminal without posting to GitHub."""
    if not findings:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(findings)} comment(s) (not posted)[/bold]\n")
    for f in findings:
        console.print(f"[bold cyan]{f.path}[/bold cyan]  line [bold]{f.line}[/bold]")
        console.print(f"  {f.comment}")
        console.print()


def run_review(config: ReviewConfig, repo_obj=None, shadow: bool = False) -> PostResult | None:
    """Run the whole pipeline once and return the posting outcome.

    Returns None when nothing was posted: the diff was too small to review,
    or shadow mode printed the findings instead. Any failure other than a
    422 on the inline review propagates to the caller.
    """
    context = config.context
    ensure_pull_request_event(context)
    logger.debug("Reviewing %s#%d with model %s", context.repo_full_name, context.number, config.model)

    diff = fetch_diff(context, config.github_token, min_chars=config.min_diff_chars, timeout=config.request_timeout)
    if diff is None:
        return None

    reviewer = _get_reviewer(config)
    console.print(f"Sending structured JSON request to Gemini. Model: {reviewer.model}.")
    findings = reviewer.review(diff)
    console.print(f"Gemini generated {len(findings)} comment(s).")

    if shadow:
        print_shadow_comments(findings)
        return None

    this_repo = repo_obj if repo_obj is not None else get_repo(
        context.repo_full_name, config.github_token, base_url=context.api_url
    )
    # Issue comments and PR reviews share the same number on GitHub.
    this_pr = get_pull(this_repo, context.number)
    return post_review_comments(this_pr, findings)

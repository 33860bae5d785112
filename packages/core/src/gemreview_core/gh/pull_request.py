from __future__ import annotations

import logging

import requests
from github import Auth, Github
from rich.console import Console

from gemreview_core.config import DEFAULT_API_URL, EventContext

console = Console()
logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"


def get_repo(repo_name: str, token: str, base_url: str = DEFAULT_API_URL):
    return Github(auth=Auth.Token(token), base_url=base_url).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def fetch_diff(context: EventContext, token: str, min_chars: int = 10, timeout: int = 60) -> str | None:
    """Return the unified diff of the pull request, or None when it is not worth reviewing.

    The pulls endpoint only renders a diff when asked for the diff media type;
    the default JSON representation carries no patch text. Errors are not
    retried and propagate as requests exceptions.
    """
    url = f"{context.api_url.rstrip('/')}/repos/{context.owner}/{context.repo}/pulls/{context.number}"
    console.print("Fetching diff from GitHub...")
    response = requests.get(
        url,
        headers={"Authorization": f"token {token}", "Accept": DIFF_MEDIA_TYPE},
        timeout=timeout,
    )
    response.raise_for_status()

    diff = response.text
    if not diff or len(diff) < min_chars:
        console.print("[yellow]No significant diff found. Skipping review.[/yellow]")
        return None

    logger.debug("Fetched diff for %s#%d", context.repo_full_name, context.number)
    console.print(f"Code diff successfully fetched. Size: {len(diff)} bytes.")
    return diff

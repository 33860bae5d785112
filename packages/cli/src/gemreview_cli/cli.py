"""CLI entry point for gemreview.

Invoked by the workflow step with no arguments: every input comes from the
action inputs and the event context the runner exports. Any uncaught error is
reported as a single ``::error::`` annotation and a non-zero exit.
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # urllib3/PyGithub chatter drowns the review log at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    """Report a fatal failure the way the Actions runner understands it."""
    # Workflow commands must be on one line.
    flat = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    click.echo(f"::error::{flat}")
    raise SystemExit(1)


@click.command()
@click.version_option(
    version=importlib.metadata.version("gemreview"),
    prog_name="gemreview",
)
@click.option(
    "--config",
    "config_path",
    default=".gemreview.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="GEMREVIEW_CONFIG",
)
@click.option("--model", default=None, help="Gemini model identifier. Overrides the 'model' input.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.option(
    "--repo",
    default=None,
    help="Repository in owner/name format. Use with --pr to run outside GitHub Actions.",
)
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number. Use with --repo.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(
    config_path: str,
    model: str | None,
    shadow: bool,
    repo: str | None,
    pr_number: int | None,
    verbose: bool,
):
    """AI code review for GitHub pull requests, powered by Gemini.

    \b
    Inputs (set via `with:` in the workflow, or as environment variables):
      gemini-api-key   Gemini API key      (INPUT_GEMINI-API-KEY or GEMINI_API_KEY)
      github-token     GitHub token        (INPUT_GITHUB-TOKEN or GITHUB_TOKEN)
      model            Gemini model name   (INPUT_MODEL)

    \b
    The pull request comes from the runner's event context, or from
    --repo and --pr when both are given (e.g. a local --shadow run).
    """
    from gemreview_core.config import load_config, pull_request_context
    from gemreview_core.reviewer import run_review

    _setup_logging(verbose)

    try:
        if (repo is None) != (pr_number is None):
            raise click.UsageError("--repo and --pr must be given together.")
        context = pull_request_context(repo, pr_number) if repo is not None else None
        config = load_config(config_path, cli_overrides={"model": model}, context=context)
        if not config.github_token:
            raise click.UsageError("No GitHub token found. Set the 'github-token' input or GITHUB_TOKEN.")
        if not config.gemini_api_key:
            raise click.UsageError("No Gemini API key found. Set the 'gemini-api-key' input or GEMINI_API_KEY.")

        result = run_review(config, shadow=shadow)
    except Exception as e:
        logger.debug("Review failed", exc_info=True)
        _fail(str(e) or e.__class__.__name__)

    if result is not None:
        logger.info("Review finished: %s", result.outcome.value)

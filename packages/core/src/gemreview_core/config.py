import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml

from gemreview_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "model": "gemini-2.5-flash",
    "min_diff_chars": 10,  # diffs shorter than this are not worth a model call
    "request_timeout": 120,  # seconds, applied to every HTTP call
}

DEFAULT_API_URL = "https://api.github.com"

# Action inputs → config keys. Secrets also fall back to the plain env var.
_INPUTS = {
    "gemini-api-key": ("gemini_api_key", "GEMINI_API_KEY"),
    "github-token": ("github_token", "GITHUB_TOKEN"),
    "model": ("model", None),
}


@dataclass(frozen=True)
class EventContext:
    """Coordinates of the triggering event, read once from the runner environment."""

    event_name: str
    owner: str
    repo: str
    number: Optional[int] = None
    api_url: str = DEFAULT_API_URL

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class ReviewConfig:
    gemini_api_key: Optional[str]
    github_token: Optional[str]
    model: str
    min_diff_chars: int
    request_timeout: int
    context: EventContext


def get_input(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return a GitHub Actions input, or an empty string when it is not set.

    The runner exports ``with:`` values as ``INPUT_<NAME>`` with the name
    upper-cased and hyphens kept; the underscore spelling is accepted too so
    the same inputs can be exported from a shell.
    """
    env = os.environ if environ is None else environ
    key = name.upper()
    for candidate in (f"INPUT_{key}", f"INPUT_{key.replace('-', '_')}"):
        value = env.get(candidate, "").strip()
        if value:
            return value
    return ""


def load_event_context(environ: Optional[Mapping[str, str]] = None) -> EventContext:
    """Build the EventContext from the variables the Actions runner sets."""
    env = os.environ if environ is None else environ

    repository = env.get("GITHUB_REPOSITORY", "")
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        raise ConfigError(f"GITHUB_REPOSITORY must be in owner/name format, got {repository!r}.")

    event_path = env.get("GITHUB_EVENT_PATH")
    if not event_path:
        raise ConfigError("GITHUB_EVENT_PATH is not set; is this running inside GitHub Actions?")
    try:
        payload = json.loads(Path(event_path).read_text()) or {}
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read event payload at {event_path}: {e}") from e
    if not isinstance(payload, dict):
        raise ConfigError(f"Event payload at {event_path} is not a JSON object.")

    # Same lookup order as the runner's issue context: PR, then issue, then top-level.
    number = (payload.get("pull_request") or {}).get("number") or (payload.get("issue") or {}).get("number")
    number = number or payload.get("number")
    # push, schedule and workflow_dispatch payloads carry no number; the
    # pull_request guard in run_review rejects those events by name.
    if not isinstance(number, int) or isinstance(number, bool):
        number = None

    return EventContext(
        event_name=env.get("GITHUB_EVENT_NAME", ""),
        owner=owner,
        repo=repo,
        number=number,
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
    )


def pull_request_context(
    repo_full_name: str, number: int, environ: Optional[Mapping[str, str]] = None
) -> EventContext:
    """Build a pull_request EventContext from explicit coordinates, for runs outside Actions."""
    env = os.environ if environ is None else environ
    owner, _, repo = repo_full_name.partition("/")
    if not owner or not repo:
        raise ConfigError(f"Repository must be in owner/name format, got {repo_full_name!r}.")
    return EventContext(
        event_name="pull_request",
        owner=owner,
        repo=repo,
        number=number,
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
    )


def load_config(
    config_path: str = ".gemreview.yml",
    cli_overrides: Optional[dict] = None,
    environ: Optional[Mapping[str, str]] = None,
    context: Optional[EventContext] = None,
) -> ReviewConfig:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .gemreview.yml in the current directory
      3. Action inputs (INPUT_* variables) and credential env vars
      4. CLI argument overrides
    """
    env = os.environ if environ is None else environ
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(file_config).__name__}.")
        config.update(file_config)

    for input_name, (key, fallback_env) in _INPUTS.items():
        value = get_input(input_name, env) or (env.get(fallback_env, "") if fallback_env else "")
        if value:
            config[key] = value

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    try:
        min_diff_chars = int(config["min_diff_chars"])
        request_timeout = int(config["request_timeout"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric setting in configuration: {e}") from e

    return ReviewConfig(
        gemini_api_key=config.get("gemini_api_key"),
        github_token=config.get("github_token"),
        model=str(config.get("model") or DEFAULT_CONFIG["model"]),
        min_diff_chars=min_diff_chars,
        request_timeout=request_timeout,
        context=context if context is not None else load_event_context(env),
    )

"""Base reviewer implementing the Template Method pattern.

The review algorithm is shared:
    review() → _build_system_prompt() + _build_user_prompt()
             → _call_with_retry() → _call_api()   ← only this is transport-specific
                                  → _parse()

Subclasses implement two things only:
  - __init__: store credentials and the HTTP session
  - _call_api: make one raw API call and return the text payload

Prompt construction, the response schema, parsing and the retry policy live
here so a second transport would inherit the exact same contract.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from gemreview_core.errors import MalformedResponseError, ReviewRequestError
from gemreview_core.models import ReviewFinding

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_BACKOFF_MS = 2000

SYSTEM_PROMPT = """You are an experienced Software Architect conducting a code review.
Your task is to analyze the provided code diff.
Return your feedback ONLY in the following JSON format, commenting on bugs, security vulnerabilities,
and improvements directly on the affected line.

***CRITICAL INSTRUCTION FOR LINE NUMBER***
The 'line' MUST be the line number in the TARGET FILE (after the change).
The line MUST be based on a line that starts with a PLUS sign (+) in the diff.
Ignore lines that were deleted (-) or context lines ( ).
You MUST derive the line number from the hunk header information (e.g. '@@ -X,Y +A,B @@')
by using the starting line (A) and the number of added lines (B).

If there are no comments, reply with an empty JSON list: [].

JSON Schema:
[
  {
    "path": "string",     // The file path, e.g. "src/server.py"
    "line": "number",     // The line number in the NEW file (MUST be a line starting with '+').
    "comment": "string"   // The detailed comment.
  }
]"""

USER_PROMPT_PREFIX = "Please analyze the following code diff and write the comments as JSON:\n\n"

# Enforced by the model's output layer before _parse ever sees the text.
RESPONSE_SCHEMA: dict = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "path": {"type": "STRING"},
            "line": {"type": "NUMBER"},
            "comment": {"type": "STRING"},
        },
        "required": ["path", "line", "comment"],
    },
}


@dataclass
class _RetryState:
    attempt: int = 0
    last_error: Exception | None = None
    last_raw: str = ""


class BaseReviewer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    BACKOFF_MS: int = _BACKOFF_MS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review(self, diff: str) -> list[ReviewFinding]:
        """Review a whole pull request diff and return the findings in model order.

        Raises ReviewRequestError when every attempt fails. An empty list is a
        successful review with nothing to flag.
        """
        system = self._build_system_prompt()
        user = self._build_user_prompt(diff)
        return self._call_with_retry(system, user)

    # ------------------------------------------------------------------ #
    # Abstract — implement in each transport                              #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text payload.

        Must raise when the call fails or the reply has no text; the retry
        loop treats any exception as a failed attempt.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> list[ReviewFinding]:
        """Run up to MAX_RETRIES attempts of call + parse.

        The wait after failed attempt n is BACKOFF_MS * n: linear in the
        attempt number, so 2s then 4s with the defaults.
        """
        state = _RetryState()
        while state.attempt < self.MAX_RETRIES:
            state.attempt += 1
            try:
                raw = self._call_api(system_prompt, user_prompt)
                state.last_raw = raw
                findings = self._parse(raw)
            except Exception as e:
                state.last_error = e
                logger.warning(
                    "%s attempt %d/%d failed: %s",
                    self.__class__.__name__,
                    state.attempt,
                    self.MAX_RETRIES,
                    e,
                )
                if state.attempt < self.MAX_RETRIES:
                    time.sleep(self.BACKOFF_MS * state.attempt / 1000)
                continue
            logger.info("%s produced %d finding(s).", self.__class__.__name__, len(findings))
            return findings

        raise ReviewRequestError(
            f"Model request failed after {state.attempt} attempts "
            f"(last error: {state.last_error}). Last raw response: {state.last_raw}",
            last_raw=state.last_raw,
            attempts=state.attempt,
        ) from state.last_error

    def _build_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def _build_user_prompt(self, diff: str) -> str:
        # Sent verbatim: no truncation, no per-file segmentation.
        return USER_PROMPT_PREFIX + diff

    def _parse(self, raw: str) -> list[ReviewFinding]:
        """Parse the model's text payload into findings.

        Raises MalformedResponseError for anything that is not a JSON list of
        {path, line, comment} objects, so the attempt is retried.
        """
        # Strip only an outer ```json ... ``` fence, never backticks inside values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"response is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise MalformedResponseError(f"expected a JSON list, got {type(data).__name__}")

        return [self._to_finding(index, item) for index, item in enumerate(data)]

    @staticmethod
    def _to_finding(index: int, item) -> ReviewFinding:
        if not isinstance(item, dict):
            raise MalformedResponseError(f"item {index} is not an object")
        path = item.get("path")
        line = item.get("line")
        comment = item.get("comment")
        if not isinstance(path, str):
            raise MalformedResponseError(f"item {index} has no string 'path'")
        if not isinstance(comment, str):
            raise MalformedResponseError(f"item {index} has no string 'comment'")
        # NUMBER in the schema may come back as 42.0; bool is an int subclass.
        if isinstance(line, bool) or not isinstance(line, (int, float)):
            raise MalformedResponseError(f"item {index} has no numeric 'line'")
        if isinstance(line, float) and not line.is_integer():
            raise MalformedResponseError(f"item {index} has a fractional 'line': {line}")
        return ReviewFinding(path=path, line=int(line), comment=comment)

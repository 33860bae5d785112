"""Tests for the end-to-end review pipeline in run_review."""

import json
from unittest.mock import MagicMock

import pytest
from github import GithubException

from gemreview_core.config import EventContext, ReviewConfig
from gemreview_core.errors import ConfigError, ReviewRequestError, UnsupportedEventError
from gemreview_core.models import PostOutcome, ReviewFinding
from gemreview_core.providers.gemini import GeminiReviewer
from gemreview_core.reviewer import _get_reviewer, ensure_pull_request_event, print_shadow_comments, run_review

# One added line in a.py at new-file line 42, padded to roughly 500 bytes.
DIFF_A_PY = (
    "diff --git a/a.py b/a.py\n"
    "index 83db48f..bf269f4 100644\n"
    "--- a/a.py\n"
    "+++ b/a.py\n"
    "@@ -40,4 +40,5 @@ def handler(event):\n"
    "     payload = event.get('payload')\n"
    "     user = payload.get('user')\n"
    "+    name = user['name']\n"
    "     return render(user)\n"
    "     # end of handler\n"
).ljust(500, "#")


def _config(event_name="pull_request", **overrides):
    values = {
        "gemini_api_key": "gem-key",
        "github_token": "tok",
        "model": "gemini-2.5-flash",
        "min_diff_chars": 10,
        "request_timeout": 120,
        "context": EventContext(event_name=event_name, owner="octo", repo="app", number=7),
    }
    values.update(overrides)
    return ReviewConfig(**values)


def _gemini_reply(findings):
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"candidates": [{"content": {"parts": [{"text": json.dumps(findings)}]}}]}
    return resp


@pytest.fixture
def pipeline(mocker):
    """Patch every network edge of run_review and hand back the mocks."""
    mocks = MagicMock()
    mocks.fetch_diff = mocker.patch("gemreview_core.reviewer.fetch_diff", return_value=DIFF_A_PY)
    mocks.session = MagicMock()
    mocker.patch(
        "gemreview_core.reviewer._get_reviewer",
        side_effect=lambda config: GeminiReviewer(api_key=config.gemini_api_key, session=mocks.session),
    )
    mocks.sleep = mocker.patch("gemreview_core.providers.base.time.sleep")
    mocks.pr = MagicMock()
    mocks.repo = MagicMock()
    mocks.repo.get_pull.return_value = mocks.pr
    return mocks


class TestEventGuard:
    def test_pull_request_event_passes(self):
        ensure_pull_request_event(_config().context)

    def test_other_events_rejected(self):
        with pytest.raises(UnsupportedEventError, match="only available for pull requests"):
            ensure_pull_request_event(_config(event_name="push").context)

    def test_push_event_without_number_rejected_as_wrong_event(self):
        push = EventContext(event_name="push", owner="octo", repo="app", number=None)
        with pytest.raises(UnsupportedEventError, match="only available for pull requests"):
            ensure_pull_request_event(push)

    def test_pull_request_without_number_is_config_error(self):
        with pytest.raises(ConfigError, match="no pull request number"):
            ensure_pull_request_event(EventContext(event_name="pull_request", owner="octo", repo="app"))

    def test_wrong_event_makes_no_network_calls(self, pipeline):
        with pytest.raises(UnsupportedEventError):
            run_review(_config(event_name="issue_comment"), repo_obj=pipeline.repo)
        pipeline.fetch_diff.assert_not_called()
        pipeline.session.post.assert_not_called()


class TestRunReview:
    def test_insignificant_diff_stops_pipeline(self, pipeline):
        pipeline.fetch_diff.return_value = None

        result = run_review(_config(), repo_obj=pipeline.repo)

        assert result is None
        pipeline.session.post.assert_not_called()
        pipeline.pr.create_review.assert_not_called()
        pipeline.pr.create_issue_comment.assert_not_called()

    def test_fetch_diff_receives_config_values(self, pipeline):
        pipeline.fetch_diff.return_value = None
        run_review(_config(min_diff_chars=25, request_timeout=30), repo_obj=pipeline.repo)
        args, kwargs = pipeline.fetch_diff.call_args
        assert args[1] == "tok"
        assert kwargs == {"min_chars": 25, "timeout": 30}

    def test_single_finding_scenario(self, pipeline):
        pipeline.session.post.return_value = _gemini_reply([{"path": "a.py", "line": 42, "comment": "KeyError risk"}])

        result = run_review(_config(), repo_obj=pipeline.repo)

        pipeline.repo.get_pull.assert_called_once_with(7)
        pipeline.pr.create_review.assert_called_once()
        kwargs = pipeline.pr.create_review.call_args.kwargs
        assert kwargs["event"] == "COMMENT"
        assert kwargs["comments"] == [{"path": "a.py", "line": 42, "body": "KeyError risk"}]
        pipeline.pr.create_issue_comment.assert_not_called()
        assert result.outcome is PostOutcome.INLINE_POSTED

    def test_diff_is_sent_to_model_verbatim(self, pipeline):
        pipeline.session.post.return_value = _gemini_reply([])
        run_review(_config(), repo_obj=pipeline.repo)
        payload = pipeline.session.post.call_args.kwargs["json"]
        assert payload["contents"][0]["parts"][0]["text"].endswith(DIFF_A_PY)

    def test_empty_findings_post_no_issues_comment(self, pipeline):
        pipeline.session.post.return_value = _gemini_reply([])

        result = run_review(_config(), repo_obj=pipeline.repo)

        pipeline.pr.create_issue_comment.assert_called_once()
        pipeline.pr.create_review.assert_not_called()
        assert result.outcome is PostOutcome.NO_ISSUES

    def test_placement_rejection_posts_fallback(self, pipeline):
        findings = [{"path": "a.py", "line": 400, "comment": "off the diff"}]
        pipeline.session.post.return_value = _gemini_reply(findings)
        pipeline.pr.create_review.side_effect = GithubException(422, {"message": "Unprocessable Entity"}, None)

        result = run_review(_config(), repo_obj=pipeline.repo)

        assert result.outcome is PostOutcome.FALLBACK_POSTED
        pipeline.pr.create_issue_comment.assert_called_once()
        assert "a.py (line 400):" in pipeline.pr.create_issue_comment.call_args.args[0]

    def test_retry_exhaustion_posts_nothing(self, pipeline):
        bad = MagicMock()
        bad.status_code = 200
        bad.json.return_value = {"candidates": [{"content": {"parts": [{"text": "I think it looks fine"}]}}]}
        pipeline.session.post.return_value = bad

        with pytest.raises(ReviewRequestError, match="I think it looks fine"):
            run_review(_config(), repo_obj=pipeline.repo)

        assert pipeline.session.post.call_count == 3
        assert [c.args[0] for c in pipeline.sleep.call_args_list] == [2.0, 4.0]
        pipeline.repo.get_pull.assert_not_called()
        pipeline.pr.create_review.assert_not_called()
        pipeline.pr.create_issue_comment.assert_not_called()

    def test_shadow_mode_does_not_post(self, pipeline):
        pipeline.session.post.return_value = _gemini_reply([{"path": "a.py", "line": 42, "comment": "x"}])

        result = run_review(_config(), repo_obj=pipeline.repo, shadow=True)

        assert result is None
        pipeline.repo.get_pull.assert_not_called()
        pipeline.pr.create_review.assert_not_called()

    def test_builds_repo_from_context_when_not_given(self, pipeline, mocker):
        pipeline.session.post.return_value = _gemini_reply([])
        get_repo = mocker.patch("gemreview_core.reviewer.get_repo", return_value=pipeline.repo)

        run_review(_config())

        get_repo.assert_called_once_with("octo/app", "tok", base_url="https://api.github.com")


class TestGetReviewer:
    def test_builds_gemini_reviewer_from_config(self, mocker):
        mock_cls = mocker.patch("gemreview_core.reviewer.GeminiReviewer")
        _get_reviewer(_config(model="gemini-2.5-pro", request_timeout=30))
        mock_cls.assert_called_once_with(api_key="gem-key", model="gemini-2.5-pro", timeout=30)


class TestPrintShadowComments:
    def test_no_findings_prints_message(self, mocker):
        mock_print = mocker.patch("gemreview_core.reviewer.console.print")
        print_shadow_comments([])
        printed = " ".join(str(a) for call in mock_print.call_args_list for a in call.args)
        assert "no comments" in printed.lower()

    def test_with_findings_prints_each_entry(self, mocker):
        mock_print = mocker.patch("gemreview_core.reviewer.console.print")
        print_shadow_comments([ReviewFinding("foo.py", 5, "bad"), ReviewFinding("bar.py", 10, "style")])
        all_output = " ".join(str(a) for call in mock_print.call_args_list for a in call.args)
        assert "foo.py" in all_output
        assert "bar.py" in all_output
        assert "2 comment" in all_output

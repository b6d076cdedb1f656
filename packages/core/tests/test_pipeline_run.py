"""End-to-end tests for the PR pipeline with in-memory collaborators."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from prscribe_core.constants import GITHUB_ACTIONS_BOT_LOGIN, REVIEW_COMMENT_MARKER, SUMMARY_START_MARKER
from prscribe_core.errors import ConfigurationError, ExternalServiceError, StageFailedError
from prscribe_core.gh.base import ChangeHost, CommentRef
from prscribe_core.models import PrDetails, PrReview, PrSummary, TicketInfo
from prscribe_core.pipeline import WORKFLOW_NAME, build_generator, build_pr_workflow, published_stages, run_pipeline
from prscribe_core.prompts import TRUNCATION_NOTICE
from prscribe_core.providers.base import RetryingGenerator
from prscribe_core.workflow.engine import RunStatus, StageStatus

DIFF = (
    "diff --git a/src/app.py b/src/app.py\n@@ -1 +1 @@\n-a = 1\n+a = 2\n"
    "diff --git a/package-lock.json b/package-lock.json\n@@ -1 +1 @@\n-{}\n+{\"x\": 1}"
)

SUMMARY = PrSummary(pr_type="Bugfix", description=["Fix the value of a."])
REVIEW = PrReview(overall_assessment="Looks fine.", review_effort="Trivial")


class FakeHost(ChangeHost):
    def __init__(self, description="Please review.", diff=DIFF, comments=None):
        self.description = description
        self.diff = diff
        self.comments = list(comments or [])
        self.created = []
        self.edited = []
        self.description_updates = 0

    def fetch_metadata(self):
        return PrDetails(
            branch_name="feature/PROJ-42-fix-a",
            title="Fix a",
            description=self.description,
            commit_messages="- Fix a",
        )

    def fetch_diff(self):
        return self.diff

    def list_comments(self):
        return list(self.comments)

    def create_comment(self, body):
        comment_id = 1000 + len(self.comments)
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=len(self.comments))
        self.comments.append(CommentRef(comment_id, GITHUB_ACTIONS_BOT_LOGIN, body, created_at))
        self.created.append(comment_id)
        return comment_id

    def edit_comment(self, comment_id, body):
        self.comments = [replace(c, body=body) if c.id == comment_id else c for c in self.comments]
        self.edited.append(comment_id)

    def update_description(self, body):
        self.description = body
        self.description_updates += 1


class StubGenerator:
    model = "stub"

    def __init__(self, fail_on=None):
        self.prompts = []
        self.fail_on = fail_on

    def generate(self, prompt, output_model, temperature, instructions=""):
        self.prompts.append(prompt)
        if output_model is self.fail_on:
            raise ExternalServiceError("Stub", "model unavailable")
        return SUMMARY if output_model is PrSummary else REVIEW


class StubTracker:
    def __init__(self):
        self.requested = []

    def fetch_ticket(self, ticket_id):
        self.requested.append(ticket_id)
        return TicketInfo(summary="Value of a is wrong", description="a must be 2")


def _config(**overrides):
    config = {
        "model": "anthropic",
        "anthropic_api_key": "key",
        "actions": ["summary", "review"],
        "exclude": [],
        "temperature": 0.3,
        "max_diff_chars": 120000,
    }
    config.update(overrides)
    return config


class TestBuildPrWorkflow:
    def test_stage_ids(self):
        wf = build_pr_workflow()
        assert wf.name == WORKFLOW_NAME
        assert wf.stage_ids() == [
            "get_pr_details",
            "get_ticket_info",
            "ticket_noop",
            "get_pr_diff",
            "generate_summary",
            "publish_summary",
            "summary_noop",
            "generate_review",
            "publish_review",
            "review_noop",
        ]

    def test_branches_are_static(self):
        assert all(b.static for b in build_pr_workflow().branches())


class TestRunPipeline:
    def test_summary_and_review_published(self):
        host, generator = FakeHost(), StubGenerator()
        run = run_pipeline("o/r", 1, _config(), host=host, generator=generator)

        assert run.status is RunStatus.COMPLETED
        assert host.description.startswith("Please review.\n\n---\n\n" + SUMMARY_START_MARKER)
        assert "Fix the value of a." in host.description
        assert len(host.created) == 1
        assert host.comments[0].body.endswith(REVIEW_COMMENT_MARKER)
        assert run.output("publish_review").action == "created"
        assert published_stages(run) == ["publish_summary", "publish_review"]
        assert run.records["ticket_noop"].status is StageStatus.COMPLETED
        assert run.records["get_ticket_info"].status is StageStatus.SKIPPED

    def test_rerun_is_idempotent(self):
        host = FakeHost()
        run_pipeline("o/r", 1, _config(), host=host, generator=StubGenerator())
        first_description = host.description
        first_comment = host.comments[0].body

        run = run_pipeline("o/r", 1, _config(), host=host, generator=StubGenerator())

        assert host.description == first_description
        assert len(host.comments) == 1
        assert host.comments[0].body == first_comment
        assert host.edited == [host.created[0]]
        assert run.output("publish_review").action == "edited"

    def test_summary_only(self):
        host, generator = FakeHost(), StubGenerator()
        run = run_pipeline("o/r", 1, _config(actions=["summary"]), host=host, generator=generator)

        assert host.description_updates == 1
        assert host.comments == []
        assert len(generator.prompts) == 1
        assert run.records["review_noop"].status is StageStatus.COMPLETED
        assert run.records["generate_review"].status is StageStatus.SKIPPED
        assert run.decisions["review"].taken is False
        assert published_stages(run) == ["publish_summary"]

    def test_review_only(self):
        host = FakeHost()
        run = run_pipeline("o/r", 1, _config(actions="review"), host=host, generator=StubGenerator())

        assert host.description_updates == 0
        assert len(host.created) == 1
        assert run.records["summary_noop"].status is StageStatus.COMPLETED

    def test_no_actions_only_fetches(self):
        host = FakeHost()
        run = run_pipeline("o/r", 1, _config(actions=[]), host=host)

        assert run.status is RunStatus.COMPLETED
        assert host.description_updates == 0
        assert host.comments == []
        assert run.stages_with_status(StageStatus.COMPLETED) == [
            "get_pr_details",
            "ticket_noop",
            "get_pr_diff",
            "summary_noop",
            "review_noop",
        ]
        assert published_stages(run) == []

    def test_ignored_files_not_sent_to_model(self):
        generator = StubGenerator()
        run_pipeline("o/r", 1, _config(exclude=["*.json"]), host=FakeHost(), generator=generator)

        assert all("package-lock.json" not in p for p in generator.prompts)
        assert all("src/app.py" in p for p in generator.prompts)

    def test_truncation_notice_in_prompt(self):
        generator = StubGenerator()
        run = run_pipeline("o/r", 1, _config(max_diff_chars=80), host=FakeHost(), generator=generator)

        assert run.output("get_pr_diff").was_truncated is True
        assert TRUNCATION_NOTICE in generator.prompts[0]

    def test_ticket_context_fetched_from_branch(self):
        tracker, generator = StubTracker(), StubGenerator()
        config = _config(
            jira_base_url="https://jira.example.com",
            jira_email="bot@example.com",
            jira_api_token="t",
            jira_branch_regex=r"([A-Z]+-\d+)",
        )
        run = run_pipeline("o/r", 1, config, host=FakeHost(), tracker=tracker, generator=generator)

        assert tracker.requested == ["PROJ-42"]
        assert run.decisions["ticket"].taken is True
        assert "Value of a is wrong" in generator.prompts[0]

    def test_ticket_skipped_without_regex(self):
        tracker = StubTracker()
        config = _config(jira_base_url="https://jira.example.com", jira_email="e", jira_api_token="t")
        run = run_pipeline("o/r", 1, config, host=FakeHost(), tracker=tracker, generator=StubGenerator())

        assert tracker.requested == []
        assert run.decisions["ticket"].taken is False

    def test_review_failure_keeps_published_summary(self):
        host = FakeHost()
        with pytest.raises(StageFailedError) as exc_info:
            run_pipeline("o/r", 1, _config(), host=host, generator=StubGenerator(fail_on=PrReview))

        err = exc_info.value
        assert err.stage_id == "generate_review"
        assert isinstance(err.cause, ExternalServiceError)
        assert err.run.status is RunStatus.FAILED
        assert host.description_updates == 1
        assert host.comments == []

    def test_failed_run_trace_still_printed(self, mocker):
        summary = mocker.patch("prscribe_core.pipeline.print_run_summary")
        with pytest.raises(StageFailedError) as exc_info:
            run_pipeline("o/r", 1, _config(), host=FakeHost(), generator=StubGenerator(fail_on=PrReview))

        summary.assert_called_once_with(exc_info.value.run)
        assert exc_info.value.run.records["publish_summary"].status is StageStatus.COMPLETED

    def test_successful_run_trace_printed(self, mocker):
        summary = mocker.patch("prscribe_core.pipeline.print_run_summary")
        run = run_pipeline("o/r", 1, _config(), host=FakeHost(), generator=StubGenerator())
        summary.assert_called_once_with(run)

    def test_invalid_config_fails_before_host_is_touched(self):
        host = MagicMock()
        with pytest.raises(ConfigurationError, match="bogus"):
            run_pipeline("o/r", 1, _config(actions=["bogus"]), host=host)
        host.fetch_metadata.assert_not_called()

    def test_missing_token_without_host(self):
        with pytest.raises(ConfigurationError, match="GitHub token"):
            run_pipeline("o/r", 1, _config(), generator=StubGenerator())

    def test_shadow_mode_does_not_write(self):
        host = FakeHost()
        run = run_pipeline("o/r", 1, _config(), host=host, generator=StubGenerator(), shadow=True)

        assert run.status is RunStatus.COMPLETED
        assert host.description_updates == 0
        assert host.comments == []


class TestBuildGenerator:
    def test_anthropic(self, mocker):
        cls = mocker.patch("prscribe_core.pipeline.AnthropicGenerator")
        build_generator({"model": "anthropic", "anthropic_api_key": "k", "model_name": None})
        cls.assert_called_once_with(api_key="k", model=None)

    def test_openai_compatible_passes_base_url(self, mocker):
        cls = mocker.patch("prscribe_core.pipeline.OpenAIGenerator")
        build_generator(
            {"model": "openai-compatible", "openai_api_key": "k", "model_name": "llama", "openai_base_url": "http://x"}
        )
        cls.assert_called_once_with(api_key="k", model="llama", base_url="http://x")

    def test_azure(self, mocker):
        cls = mocker.patch("prscribe_core.pipeline.AzureOpenAIGenerator")
        build_generator(
            {"model": "azure", "azure_api_key": "k", "azure_endpoint": "https://e", "model_name": "dep"}
        )
        assert cls.call_args.kwargs["deployment"] == "dep"

    def test_retries_wrap_generator(self, mocker):
        mocker.patch("prscribe_core.pipeline.AnthropicGenerator")
        generator = build_generator({"model": "anthropic", "anthropic_api_key": "k", "model_retries": 3})
        assert isinstance(generator, RetryingGenerator)
        assert generator.attempts == 3

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            build_generator({"model": "gemini"})

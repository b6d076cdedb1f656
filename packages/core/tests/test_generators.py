"""Tests for the structured-output generators.

Shared behaviour (_parse, _build_system_prompt, error conversion) lives in
BaseGenerator and is tested once via a stub. Provider-specific tests cover
only the SDK client setup and _call_api.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from prscribe_core.errors import ExternalServiceError, ValidationError
from prscribe_core.models import PrReview, PrSummary
from prscribe_core.providers.anthropic import AnthropicGenerator
from prscribe_core.providers.base import BaseGenerator, RetryingGenerator
from prscribe_core.providers.openai import AzureOpenAIGenerator, OpenAIGenerator

VALID_SUMMARY = json.dumps({"pr_type": "Bugfix", "description": ["Fixes a crash."]})


class _StubGenerator(BaseGenerator):
    model = "stub"

    def __init__(self, response=VALID_SUMMARY, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _call_api(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls.append((system_prompt, user_prompt, temperature))
        if self.error is not None:
            raise self.error
        return self.response


class TestBaseGeneratorParse:
    def test_parses_valid_json(self):
        result = _StubGenerator().generate("p", PrSummary, 0.3)
        assert isinstance(result, PrSummary)
        assert result.description == ["Fixes a crash."]

    def test_strips_markdown_code_fences(self):
        result = _StubGenerator(response=f"```json\n{VALID_SUMMARY}\n```").generate("p", PrSummary, 0.3)
        assert result.pr_type.value == "Bugfix"

    def test_preserves_code_blocks_inside_values(self):
        payload = json.dumps(
            {
                "overall_assessment": "ok",
                "review_effort": "Minor",
                "feedback_points": [
                    {
                        "description": "Use a helper.",
                        "file_path": "a.py",
                        "suggested_code_change": "```python\nfoo()\n```",
                    }
                ],
            }
        )
        result = _StubGenerator(response=f"```json\n{payload}\n```").generate("p", PrReview, 0.3)
        assert "```python" in result.feedback_points[0].suggested_code_change

    def test_non_json_raises_validation_error(self):
        with pytest.raises(ValidationError, match="non-JSON"):
            _StubGenerator(response="not json at all").generate("p", PrSummary, 0.3)

    def test_schema_mismatch_raises_validation_error(self):
        bad = json.dumps({"pr_type": "Bugfix", "description": []})
        with pytest.raises(ValidationError, match="PrSummary"):
            _StubGenerator(response=bad).generate("p", PrSummary, 0.3)

    def test_too_many_feedback_points_rejected(self):
        points = [{"description": "d", "file_path": "f"}] * 11
        bad = json.dumps({"overall_assessment": "a", "review_effort": "Minor", "feedback_points": points})
        with pytest.raises(ValidationError):
            _StubGenerator(response=bad).generate("p", PrReview, 0.3)

    def test_api_error_becomes_external_service_error(self):
        with pytest.raises(ExternalServiceError) as exc_info:
            _StubGenerator(error=RuntimeError("network down")).generate("p", PrSummary, 0.3)
        assert exc_info.value.service == "_StubGenerator"
        assert "network down" in str(exc_info.value)


class TestBaseGeneratorPrompts:
    def test_system_prompt_has_instructions_and_schema(self):
        generator = _StubGenerator()
        generator.generate("user text", PrSummary, 0.7, "Be brief.")
        system, user, temperature = generator.calls[0]
        assert system.startswith("Be brief.")
        assert '"pr_type"' in system
        assert user == "user text"
        assert temperature == 0.7


class TestRetryingGenerator:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryingGenerator(_StubGenerator(), attempts=0)

    def test_retries_external_failures(self):
        inner = MagicMock()
        inner.generate.side_effect = [ExternalServiceError("x", "transient"), "ok"]
        with patch("prscribe_core.providers.base.time.sleep") as sleep:
            assert RetryingGenerator(inner, attempts=3).generate("p", PrSummary, 0.3) == "ok"
        assert inner.generate.call_count == 2
        sleep.assert_called_once_with(1)

    def test_raises_after_last_attempt(self):
        inner = MagicMock()
        inner.generate.side_effect = ExternalServiceError("x", "down")
        with patch("prscribe_core.providers.base.time.sleep"):
            with pytest.raises(ExternalServiceError):
                RetryingGenerator(inner, attempts=2).generate("p", PrSummary, 0.3)
        assert inner.generate.call_count == 2

    def test_validation_errors_not_retried(self):
        inner = MagicMock()
        inner.generate.side_effect = ValidationError("bad")
        with pytest.raises(ValidationError):
            RetryingGenerator(inner, attempts=3).generate("p", PrSummary, 0.3)
        assert inner.generate.call_count == 1

    def test_exposes_inner_model(self):
        assert RetryingGenerator(_StubGenerator()).model == "stub"


class TestAnthropicGenerator:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicGenerator(api_key="key")

    def test_default_model_is_claude(self):
        assert "claude" in AnthropicGenerator.DEFAULT_MODEL
        assert AnthropicGenerator(api_key="key").model == AnthropicGenerator.DEFAULT_MODEL

    def test_call_api_clamps_temperature(self):
        from anthropic.types import TextBlock

        generator = AnthropicGenerator(api_key="key", model="claude-test")
        generator.client = MagicMock()
        generator.client.messages.create.return_value.content = [TextBlock(type="text", text=VALID_SUMMARY)]

        result = generator.generate("p", PrSummary, 1.5)

        kwargs = generator.client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 1.0
        assert kwargs["model"] == "claude-test"
        assert result.pr_type.value == "Bugfix"


class TestOpenAIGenerator:
    def test_raises_import_error_without_sdk(self):
        import prscribe_core.providers.openai as openai_mod

        with patch.object(openai_mod, "_OpenAI", None):
            with pytest.raises(ImportError):
                OpenAIGenerator(api_key="key")

    def test_default_model_is_gpt(self):
        assert "gpt" in OpenAIGenerator.DEFAULT_MODEL

    def test_call_api_sends_system_and_user(self):
        generator = OpenAIGenerator(api_key="key")
        generator.client = MagicMock()
        generator.client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content=VALID_SUMMARY))
        ]

        generator.generate("user text", PrSummary, 0.2, "Instructions")

        kwargs = generator.client.chat.completions.create.call_args.kwargs
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert kwargs["messages"][1]["content"] == "user text"
        assert kwargs["temperature"] == 0.2

    def test_azure_uses_deployment_as_model(self):
        generator = AzureOpenAIGenerator(api_key="key", endpoint="https://example.openai.azure.com", deployment="dep")
        assert generator.model == "dep"

from __future__ import annotations

try:
    from openai import AzureOpenAI as _AzureOpenAI
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _AzureOpenAI = None  # type: ignore[assignment,misc]

from prscribe_core.providers.base import BaseGenerator

_MISSING_SDK = "The 'openai' package is required for this provider. Install it with: pip install openai"


class OpenAIGenerator(BaseGenerator):
    """OpenAI chat completions; ``base_url`` points it at any compatible endpoint."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: str | None = None, base_url: str | None = None):
        if _OpenAI is None:
            raise ImportError(_MISSING_SDK)
        self.client = _OpenAI(api_key=api_key, base_url=base_url)
        self.model = model or self.DEFAULT_MODEL

    def _call_api(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=self.MAX_TOKENS,
        )
        return response.choices[0].message.content or ""


class AzureOpenAIGenerator(OpenAIGenerator):
    """Azure OpenAI: ``model`` is the deployment name."""

    DEFAULT_API_VERSION = "2024-06-01"

    def __init__(self, api_key: str, endpoint: str, deployment: str, api_version: str | None = None):
        if _AzureOpenAI is None:
            raise ImportError(_MISSING_SDK)
        self.client = _AzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version or self.DEFAULT_API_VERSION,
        )
        self.model = deployment

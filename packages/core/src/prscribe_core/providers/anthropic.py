from __future__ import annotations

from prscribe_core.providers.base import BaseGenerator


class AnthropicGenerator(BaseGenerator):
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. Install it with: pip install anthropic"
            )
        self.client = Anthropic(api_key=api_key)
        self.model = model or self.DEFAULT_MODEL

    def _call_api(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        # Imported inside the method because __init__ already validated the
        # package is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            # Anthropic caps temperature at 1.0; config allows up to 2.0 for OpenAI.
            temperature=min(temperature, 1.0),
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

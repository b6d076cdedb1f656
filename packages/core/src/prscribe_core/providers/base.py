"""Base generator implementing the Template Method pattern.

All providers share the same structured-generation algorithm:
    generate() → _build_system_prompt()   (instructions + JSON schema)
               → _call_api()               ← only this differs per provider
               → _parse()                  (strip fences, json.loads, validate)

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

The generator itself never retries: the pipeline treats every model call as
fail-fast. Callers that want retries wrap a generator in RetryingGenerator.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import TypeVar

import pydantic

from prscribe_core.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class BaseGenerator(ABC):
    MAX_TOKENS: int = _MAX_TOKENS
    DEFAULT_MODEL: str = ""

    model: str

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def generate(
        self,
        prompt: str,
        output_model: type[ModelT],
        temperature: float,
        instructions: str = "",
    ) -> ModelT:
        """Ask the model for an object shaped like ``output_model``.

        Raises ExternalServiceError if the API call fails and ValidationError
        if the response is not JSON or does not fit the schema.
        """
        system = self._build_system_prompt(instructions, output_model)
        try:
            raw = self._call_api(system, prompt, temperature)
        except Exception as e:
            raise ExternalServiceError(self.__class__.__name__, str(e)) from e
        return self._parse(raw, output_model)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """Make a single API call and return the raw text response.

        Should raise on failure; generate() converts the exception.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _build_system_prompt(self, instructions: str, output_model: type[pydantic.BaseModel]) -> str:
        schema = json.dumps(output_model.model_json_schema(), indent=2)
        return f"""{instructions}

### Output Format:
Respond with **only** a single JSON object that validates against this JSON Schema:

```json
{schema}
```

Omit optional keys that have no value. Do not return any text outside the JSON object."""

    def _parse(self, raw: str, output_model: type[ModelT]) -> ModelT:
        # Strip only the outer ```json ... ``` fence, not backticks inside
        # string values such as suggested code changes.
        cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("%s: response is not JSON: %s", self.__class__.__name__, (raw or "")[:200])
            raise ValidationError(f"{self.__class__.__name__} returned non-JSON output: {e}") from e
        try:
            return output_model.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"{self.__class__.__name__} output does not match {output_model.__name__}: {e}"
            ) from e


class RetryingGenerator:
    """Retry transport failures of a wrapped generator with exponential backoff.

    Schema validation failures are not retried: they surface immediately so
    a misbehaving prompt or model is noticed rather than masked.
    """

    def __init__(self, inner: BaseGenerator, attempts: int = 3):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.inner = inner
        self.attempts = attempts

    @property
    def model(self) -> str:
        return self.inner.model

    def generate(self, prompt, output_model, temperature, instructions=""):
        name = self.inner.__class__.__name__
        for attempt in range(self.attempts):
            try:
                return self.inner.generate(prompt, output_model, temperature, instructions)
            except ExternalServiceError as e:
                if attempt == self.attempts - 1:
                    logger.error("%s failed after %d attempts: %s", name, self.attempts, e)
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s error (attempt %d/%d): %s. Retrying in %ds...",
                    name,
                    attempt + 1,
                    self.attempts,
                    e,
                    delay,
                )
                time.sleep(delay)

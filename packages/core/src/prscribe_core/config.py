import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from prscribe_core.constants import GITHUB_ACTIONS_BOT_LOGIN, KNOWN_ACTIONS, REVIEW_ACTION, SUMMARY_ACTION
from prscribe_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "model": "anthropic",  # anthropic | openai | azure | openai-compatible
    "model_name": None,  # None = provider default; deployment name for azure
    "temperature": 0.3,
    "model_retries": 1,  # 1 = fail fast; >1 wraps the provider in RetryingGenerator
    "actions": [],  # any of "summary", "review"
    "exclude": [],  # shell-glob patterns matched against full diff paths (e.g. "*.lock", "dist/*")
    "max_diff_chars": 120000,
    "max_commit_message_chars": 2000,
    "jira_branch_regex": None,  # first capture group is the ticket id, e.g. "([A-Z]+-\\d+)"
    "bot_login": GITHUB_ACTIONS_BOT_LOGIN,
}

_PROVIDERS = ("anthropic", "openai", "azure", "openai-compatible")

# Credential environment variable -> config key. These always win.
_ENV_KEYS = {
    "GITHUB_TOKEN": "github_token",
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_BASE_URL": "openai_base_url",
    "AZURE_OPENAI_API_KEY": "azure_api_key",
    "AZURE_OPENAI_ENDPOINT": "azure_endpoint",
    "AZURE_OPENAI_API_VERSION": "azure_api_version",
    "JIRA_BASE_URL": "jira_base_url",
    "JIRA_EMAIL": "jira_email",
    "JIRA_API_TOKEN": "jira_api_token",
}

# Provider -> environment variable naming its model (deployment for azure).
_MODEL_NAME_ENV = {
    "anthropic": "ANTHROPIC_MODEL",
    "openai": "OPENAI_MODEL",
    "openai-compatible": "OPENAI_MODEL",
    "azure": "AZURE_OPENAI_DEPLOYMENT",
}


def _env_actions(value: str, env_name: str):
    # GitHub Action inputs pass a JSON array; a comma list is accepted too.
    if value.strip().startswith("["):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{env_name} is not a valid JSON array: {e}")
    return _as_list(value, env_name)


def _env_list(value: str, env_name: str) -> list:
    return _as_list(value, env_name)


def _env_int(value: str, env_name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{env_name} must be an integer, got {value!r}.")


def _env_float(value: str, env_name: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{env_name} must be a number, got {value!r}.")


def _env_str(value: str, env_name: str) -> str:
    return value.strip()


# Setting environment variable -> (config key, parser). These override the
# YAML file and are overridden by CLI flags.
_ENV_SETTINGS = {
    "PR_AGENT_ACTIONS": ("actions", _env_actions),
    "IGNORE_PATTERNS": ("exclude", _env_list),
    "MAX_DIFF_CHARS": ("max_diff_chars", _env_int),
    "MODEL_TEMPERATURE": ("temperature", _env_float),
    "JIRA_BRANCH_REGEX": ("jira_branch_regex", _env_str),
    "MODEL_PROVIDER": ("model", _env_str),
}


def load_config(config_path: str = ".prscribe.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prscribe.yml in the current directory
      3. Setting environment variables (PR_AGENT_ACTIONS, IGNORE_PATTERNS, ...)
      4. CLI argument overrides
    The provider's model name (ANTHROPIC_MODEL, OPENAI_MODEL, ...) and the
    credentials are then read from the environment, where set.
    """
    config = {
        **DEFAULT_CONFIG,
        "actions": list(DEFAULT_CONFIG["actions"]),
        "exclude": list(DEFAULT_CONFIG["exclude"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping, got {type(file_config).__name__}.")
        config.update(file_config)

    for env_name, (key, parse) in _ENV_SETTINGS.items():
        value = os.environ.get(env_name)
        if value:
            config[key] = parse(value, env_name)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolved after the overrides so it follows the final provider; a CLI
    # model name still wins.
    model_env = _MODEL_NAME_ENV.get(config.get("model"))
    if model_env and os.environ.get(model_env) and not (cli_overrides or {}).get("model_name"):
        config["model_name"] = os.environ[model_env]

    for env_name, key in _ENV_KEYS.items():
        config[key] = os.environ.get(env_name) or config.get(key)

    return config


@dataclass(frozen=True)
class RunOptions:
    """Validated, immutable view of the options the pipeline consumes."""

    actions: frozenset
    ignore_patterns: tuple
    max_diff_chars: int
    temperature: float
    ticket_pattern: Optional[re.Pattern]
    ticket_integration_enabled: bool
    bot_login: str

    @property
    def summary_enabled(self) -> bool:
        return SUMMARY_ACTION in self.actions

    @property
    def review_enabled(self) -> bool:
        return REVIEW_ACTION in self.actions


def _as_list(value, key: str) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigurationError(f"{key} must be a list of strings or a comma-separated string.")


def _check_provider_credentials(config: dict) -> None:
    model = config.get("model")
    if model not in _PROVIDERS:
        raise ConfigurationError(f"Unknown model provider: {model!r}. Choose one of: {', '.join(_PROVIDERS)}.")

    required = {
        "anthropic": ["anthropic_api_key"],
        "openai": ["openai_api_key"],
        "azure": ["azure_api_key", "azure_endpoint", "model_name"],
        "openai-compatible": ["openai_api_key", "openai_base_url", "model_name"],
    }[model]
    missing = [key for key in required if not config.get(key)]
    if missing:
        raise ConfigurationError(f"Model provider {model!r} requires: {', '.join(missing)}.")


def resolve_options(config: dict) -> RunOptions:
    """Validate ``config`` and return RunOptions. Raises ConfigurationError."""
    actions = frozenset(_as_list(config.get("actions"), "actions"))
    unknown = sorted(actions - KNOWN_ACTIONS)
    if unknown:
        known = ", ".join(sorted(KNOWN_ACTIONS))
        raise ConfigurationError(f"Unknown action(s): {', '.join(unknown)}. Known: {known}.")

    if actions:
        _check_provider_credentials(config)

    try:
        temperature = float(config.get("temperature", DEFAULT_CONFIG["temperature"]))
    except (TypeError, ValueError):
        raise ConfigurationError(f"temperature must be a number, got {config.get('temperature')!r}.")
    if not 0 <= temperature <= 2:
        raise ConfigurationError(f"temperature must be between 0 and 2, got {temperature}.")

    max_diff_chars = config.get("max_diff_chars", DEFAULT_CONFIG["max_diff_chars"])
    if isinstance(max_diff_chars, bool) or not isinstance(max_diff_chars, int) or max_diff_chars <= 0:
        raise ConfigurationError(f"max_diff_chars must be a positive integer, got {max_diff_chars!r}.")

    ticket_pattern = None
    regex = config.get("jira_branch_regex")
    if regex:
        try:
            ticket_pattern = re.compile(regex)
        except re.error as e:
            raise ConfigurationError(f"Invalid jira_branch_regex {regex!r}: {e}")

    jira_configured = bool(config.get("jira_base_url") and config.get("jira_email") and config.get("jira_api_token"))

    return RunOptions(
        actions=actions,
        ignore_patterns=tuple(_as_list(config.get("exclude"), "exclude")),
        max_diff_chars=max_diff_chars,
        temperature=temperature,
        ticket_pattern=ticket_pattern,
        ticket_integration_enabled=jira_configured,
        bot_login=config.get("bot_login") or GITHUB_ACTIONS_BOT_LOGIN,
    )

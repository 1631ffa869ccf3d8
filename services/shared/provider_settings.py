from __future__ import annotations

"""
Environment-driven settings for the pluggable document extraction provider.

The sync orchestrator hands every new quote PDF to an extraction provider. Which
provider runs, and how its outbound calls are tuned, is controlled by a family of
environment variables sharing one prefix (``EXTRACTION_PROVIDER`` by default):

    EXTRACTION_PROVIDER                  deterministic | mock | openai
    EXTRACTION_PROVIDER_TIMEOUT_SECONDS  float
    EXTRACTION_PROVIDER_TEMPERATURE      float
    EXTRACTION_PROVIDER_MAX_TOKENS       int

Parsing and validation live here so the API process and the CLI script agree.
"""

import os
from dataclasses import dataclass
from typing import Any, Optional

SUPPORTED_PROVIDERS = frozenset({"deterministic", "mock", "openai"})
REQUIRED_OPENAI_ENV_VARS = ("OPENAI_API_KEY", "OPENAI_MODEL")
DEFAULT_OPENAI_API_BASE = "https://api.openai.com/v1"
DEFAULT_ENV_PREFIX = "EXTRACTION_PROVIDER"


class ProviderSettingsError(RuntimeError):
    """Raised when provider configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class OpenAIConfig:
    api_key: str
    model: str
    api_base: str


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    provider_name: str
    timeout_seconds: float
    temperature: float
    max_output_tokens: int
    openai: Optional[OpenAIConfig] = None

    def describe(self) -> dict[str, Any]:
        """Loggable snapshot that never includes the API key."""
        snapshot: dict[str, Any] = {
            "provider_name": self.provider_name,
            "timeout_seconds": self.timeout_seconds,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }
        if self.openai:
            snapshot["openai"] = {"model": self.openai.model, "api_base": self.openai.api_base}
        return snapshot


def load_provider_settings(
    *,
    prefix: str = DEFAULT_ENV_PREFIX,
    default_provider: str = "deterministic",
    default_timeout: float = 60.0,
    default_temperature: float = 0.0,
    default_max_tokens: int = 1024,
) -> ProviderSettings:
    """
    Construct ProviderSettings from ``<prefix>`` and its ``_TIMEOUT_SECONDS``,
    ``_TEMPERATURE`` and ``_MAX_TOKENS`` siblings.

    Note: PDF extraction through OpenAI routinely takes tens of seconds, hence the
    generous default timeout.
    """

    timeout_env = f"{prefix}_TIMEOUT_SECONDS"
    temperature_env = f"{prefix}_TEMPERATURE"
    max_tokens_env = f"{prefix}_MAX_TOKENS"

    provider_name = _normalize_provider(os.getenv(prefix), default_provider)
    timeout_seconds = _parse_float(os.getenv(timeout_env), default_timeout, timeout_env)
    temperature = _parse_float(os.getenv(temperature_env), default_temperature, temperature_env)
    max_output_tokens = _parse_int(os.getenv(max_tokens_env), default_max_tokens, max_tokens_env)

    openai_config: Optional[OpenAIConfig] = None
    if provider_name == "openai":
        openai_config = _build_openai_config(prefix)

    return ProviderSettings(
        provider_name=provider_name,
        timeout_seconds=timeout_seconds,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        openai=openai_config,
    )


def _normalize_provider(raw_value: Optional[str], default_provider: str) -> str:
    candidate = (raw_value or "").strip().lower() or default_provider
    if candidate not in SUPPORTED_PROVIDERS:
        raise ProviderSettingsError(f"Unsupported provider '{candidate}'")
    return candidate


def _parse_float(raw_value: Optional[str], default: float, env_key: str) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return float(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be numeric (received '{raw_value}')") from exc


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be an integer (received '{raw_value}')") from exc


def _build_openai_config(prefix: str) -> OpenAIConfig:
    missing = [env_key for env_key in REQUIRED_OPENAI_ENV_VARS if not os.getenv(env_key)]
    if missing:
        formatted_missing = ", ".join(missing)
        raise ProviderSettingsError(f"{prefix}=openai requires the following env vars: {formatted_missing}")

    api_base = (os.getenv("OPENAI_API_BASE") or "").strip() or DEFAULT_OPENAI_API_BASE
    return OpenAIConfig(
        api_key=os.environ["OPENAI_API_KEY"].strip(),
        model=os.environ["OPENAI_MODEL"].strip(),
        api_base=api_base,
    )

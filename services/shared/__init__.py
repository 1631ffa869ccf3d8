"""
Shared utilities for the budget ledger service and its scripts.

- provider_settings: environment configuration for the document extraction provider
- observability: JSON logging, tracing, and privacy helpers
"""

from .provider_settings import (
    DEFAULT_OPENAI_API_BASE,
    REQUIRED_OPENAI_ENV_VARS,
    SUPPORTED_PROVIDERS,
    OpenAIConfig,
    ProviderSettings,
    ProviderSettingsError,
    load_provider_settings,
)

__all__ = [
    "DEFAULT_OPENAI_API_BASE",
    "REQUIRED_OPENAI_ENV_VARS",
    "SUPPORTED_PROVIDERS",
    "OpenAIConfig",
    "ProviderSettings",
    "ProviderSettingsError",
    "load_provider_settings",
]

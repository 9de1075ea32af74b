"""Application configuration helpers."""

from __future__ import annotations

from .confirmation import Approval, ConfirmationConfig, get_approval, get_confirmation_config
from .env import env_list, optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .github import GitHubConfig, get_github_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .zulip import ZulipConfig, get_zulip_config

__all__ = [
    "Approval",
    "ConfigurationError",
    "ConfirmationConfig",
    "GitHubConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ZulipConfig",
    "configure_logging",
    "env_list",
    "get_approval",
    "get_confirmation_config",
    "get_github_config",
    "get_zulip_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]

"""GitHub configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_list, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

GITHUB_BASE_URL = "https://api.github.com"
USER_AGENT = "teamsync (organization membership reconciler)"


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    token: str
    resilience: ResilienceConfig
    ignored_orgs: tuple[str, ...] = ()


def github_resilience(token: str, *, base_url: str = GITHUB_BASE_URL) -> ResilienceConfig:
    return ResilienceConfig(
        name="github",
        base_url=base_url,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        },
    )


def get_github_config(*, resilience: ResilienceConfig | None = None) -> GitHubConfig:
    values = require_env_vars(("GITHUB_TOKEN",))
    token = values["GITHUB_TOKEN"]
    return GitHubConfig(
        token=token,
        resilience=resilience or github_resilience(token),
        ignored_orgs=env_list("GITHUB_IGNORED_ORGS"),
    )

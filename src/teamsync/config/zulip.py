"""Zulip configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .github import USER_AGENT
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_ZULIP_SITE = "https://rust-lang.zulipchat.com"


@dataclass(frozen=True, slots=True)
class ZulipConfig:
    username: str
    token: str
    resilience: ResilienceConfig


def zulip_resilience(username: str, token: str, *, site: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="zulip",
        base_url=f"{site.rstrip('/')}/api/v1",
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        default_headers={"User-Agent": USER_AGENT},
        basic_auth=(username, token),
    )


def get_zulip_config(*, resilience: ResilienceConfig | None = None) -> ZulipConfig:
    values = require_env_vars(("ZULIP_USERNAME", "ZULIP_API_TOKEN"))
    username = values["ZULIP_USERNAME"]
    token = values["ZULIP_API_TOKEN"]
    site = optional_env_var("ZULIP_SITE") or DEFAULT_ZULIP_SITE
    return ZulipConfig(
        username=username,
        token=token,
        resilience=resilience or zulip_resilience(username, token, site=site),
    )

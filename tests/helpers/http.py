"""Mock transports for ``PlatformHttpClient`` based tests."""

from __future__ import annotations

import json
from collections.abc import Callable  # noqa: TC003
from dataclasses import dataclass, field

import httpx

from teamsync.adapters.http_resilience import ResilientClient
from teamsync.config.http_resilience import ResilienceConfig

type Handler = Callable[[httpx.Request], httpx.Response]


def make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=resilience.base_url or "",
            headers=dict(resilience.default_headers or {}),
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def resilience_config(name: str = "test", base_url: str = "https://api.test") -> ResilienceConfig:
    return ResilienceConfig(name=name, base_url=base_url)


@dataclass
class RecordedSleeps:
    seconds: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.seconds.append(delay)


def request_json(request: httpx.Request) -> dict[str, object]:
    return json.loads(request.content.decode() or "{}")


def request_form(request: httpx.Request) -> dict[str, str]:
    parsed = httpx.QueryParams(request.content.decode())
    return dict(parsed.items())

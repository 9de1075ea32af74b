"""Generic HTTP client shared by every platform adapter.

Owns the read-side policies the adapters rely on:

- REST pagination follows the ``Link: <...>; rel="next"`` header until absent.
- GraphQL pagination follows ``pageInfo {hasNextPage endCursor}``, passing the
  cursor as the ``cursor`` variable.
- Rate limiting (429, or 403 carrying ``Retry-After``) is always transient: the
  client sleeps for the server-supplied duration and resends the identical
  request, without a retry cap.
- 404 means absent, 401/403 are fatal authentication errors and any other
  non-success status is fatal with the status code and body attached.
- A GraphQL envelope with a non-empty ``errors`` list is fatal even when
  ``data`` is present.

Public methods are blocking; each runs one event loop over a
``ResilientClient``, which is also how write calls are issued.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from teamsync.adapters.http_resilience import ResilientClient

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from teamsync.adapters.http_resilience import RequestOptions
    from teamsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

type JSON = Any
type Sleep = Callable[[float], Awaitable[None]]
type ClientFactory = Callable[[ResilienceConfig], ResilientClient]

RATE_LIMIT_HEADERS = ("Retry-After", "X-RateLimit-Reset-After")


class PlatformAPIError(RuntimeError):
    """Raised when a platform answers with an unrecoverable status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationError(PlatformAPIError):
    """Credentials were rejected or lack the required permission."""


class MalformedResponseError(PlatformAPIError):
    """The platform answered successfully but the payload is unusable."""


class GraphQLErrorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str
    type: str | None = None
    path: list[str | int] | None = None


class GraphQLError(PlatformAPIError):
    """The GraphQL envelope carried at least one error."""

    def __init__(self, errors: list[GraphQLErrorPayload]) -> None:
        messages = "; ".join(error.message for error in errors)
        super().__init__(f"graphql error: {messages}")
        self.errors = errors

    @property
    def is_not_found(self) -> bool:
        return all(error.type == "NOT_FOUND" for error in self.errors)


class GraphQLEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: dict[str, Any] | None = None
    errors: list[GraphQLErrorPayload] = Field(default_factory=list)


class PageInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    has_next_page: bool = Field(alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


def next_link(response: httpx.Response) -> str | None:
    link = response.links.get("next")
    if link is None:
        return None
    return link.get("url")


def is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
        return True
    # GitHub signals secondary rate limits as 403 with a Retry-After header
    return response.status_code == httpx.codes.FORBIDDEN and "Retry-After" in response.headers


def retry_after_seconds(response: httpx.Response, *, default: float) -> float:
    for header in RATE_LIMIT_HEADERS:
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return max(float(value), 0.0)
        except ValueError:
            log.warning("ignoring unparsable %s header: %r", header, value)
    return default


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class PlatformHttpClient:
    """Paginated, rate-limit aware access to one platform's HTTP APIs."""

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Sleep | None = None,
        graphql_path: str = "/graphql",
    ) -> None:
        self._resilience = resilience
        self._client_factory = client_factory or _default_client_factory
        self._sleep = sleep or asyncio.sleep
        self._graphql_path = graphql_path

    @property
    def name(self) -> str:
        return self._resilience.name

    # REST

    def for_each_page(
        self,
        path: str,
        accumulate: Callable[[JSON], None],
        *,
        params: Mapping[str, str | int] | None = None,
    ) -> int:
        """Call ``accumulate`` with each page's payload; return the page count.

        Only one page is held in memory at a time.
        """

        return asyncio.run(self._for_each_page_async(path, accumulate, params=params))

    def fetch_all(
        self,
        path: str,
        *,
        params: Mapping[str, str | int] | None = None,
        items: Callable[[JSON], list[JSON]] | None = None,
    ) -> list[JSON]:
        """Collect the items of every page.

        ``items`` extracts the item list from an object page (for endpoints that
        wrap their lists, e.g. ``{"installations": [...]}``).
        """

        collected: list[JSON] = []

        def accumulate(page: JSON) -> None:
            page_items = items(page) if items is not None else page
            if not isinstance(page_items, list):
                raise MalformedResponseError(f"{self.name}: expected a list page from {path}")
            collected.extend(page_items)

        self.for_each_page(path, accumulate, params=params)
        return collected

    def fetch_one(
        self,
        path: str,
        *,
        params: Mapping[str, str | int] | None = None,
    ) -> JSON | None:
        """Return the payload at ``path`` or ``None`` when the platform answers 404."""

        return asyncio.run(self._fetch_one_async(path, params=params))

    def send(
        self,
        method: str,
        path: str,
        *,
        json: JSON = None,
        data: Mapping[str, str] | None = None,
        allow: Collection[int] = (),
    ) -> httpx.Response:
        """Issue a write request.

        Statuses listed in ``allow`` are returned instead of raising, so writers
        can treat "already exists" or "already gone" as success.
        """

        return asyncio.run(self._send_async(method, path, json=json, data=data, allow=allow))

    # GraphQL

    def graphql(self, query: str, variables: Mapping[str, JSON] | None = None) -> dict[str, JSON]:
        return asyncio.run(self._graphql_once(query, variables or {}))

    def graphql_pages(
        self,
        query: str,
        variables: Mapping[str, JSON],
        *,
        connection: Callable[[dict[str, JSON]], dict[str, JSON] | None],
        accumulate: Callable[[dict[str, JSON]], None],
    ) -> int:
        """Walk a cursor-paginated connection; return the number of pages requested.

        ``connection`` picks the paginated object (holding ``pageInfo``) out of
        ``data``; returning ``None`` (e.g. the parent node does not exist) ends
        the walk.
        """

        return asyncio.run(
            self._graphql_pages_async(
                query,
                variables,
                connection=connection,
                accumulate=accumulate,
            )
        )

    # internals

    async def _for_each_page_async(
        self,
        path: str,
        accumulate: Callable[[JSON], None],
        *,
        params: Mapping[str, str | int] | None,
    ) -> int:
        pages = 0
        next_url: str | None = path
        request_params = dict(params) if params else None
        async with self._client_factory(self._resilience) as client:
            while next_url is not None:
                options: RequestOptions = {}
                if request_params is not None:
                    options["params"] = request_params
                response = self._check(await self._request(client, "GET", next_url, **options))
                pages += 1
                next_url = next_link(response)
                # the next link already carries the query string
                request_params = None
                accumulate(self._json(response))
        log.debug("%s: fetched %d page(s) from %s", self.name, pages, path)
        return pages

    async def _fetch_one_async(
        self,
        path: str,
        *,
        params: Mapping[str, str | int] | None,
    ) -> JSON | None:
        async with self._client_factory(self._resilience) as client:
            options: RequestOptions = {}
            if params:
                options["params"] = dict(params)
            response = await self._request(client, "GET", path, **options)
            if response.status_code == httpx.codes.NOT_FOUND:
                log.debug("%s: %s is absent", self.name, path)
                return None
            return self._json(self._check(response))

    async def _send_async(
        self,
        method: str,
        path: str,
        *,
        json: JSON,
        data: Mapping[str, str] | None,
        allow: Collection[int],
    ) -> httpx.Response:
        options: RequestOptions = {}
        if json is not None:
            options["json"] = json
        if data is not None:
            options["data"] = dict(data)
        async with self._client_factory(self._resilience) as client:
            response = await self._request(client, method, path, **options)
            return self._check(response, allow=allow)

    async def _graphql_once(self, query: str, variables: Mapping[str, JSON]) -> dict[str, JSON]:
        async with self._client_factory(self._resilience) as client:
            return await self._graphql_async(client, query, variables)

    async def _graphql_pages_async(
        self,
        query: str,
        variables: Mapping[str, JSON],
        *,
        connection: Callable[[dict[str, JSON]], dict[str, JSON] | None],
        accumulate: Callable[[dict[str, JSON]], None],
    ) -> int:
        pages = 0
        cursor: str | None = None
        async with self._client_factory(self._resilience) as client:
            while True:
                data = await self._graphql_async(client, query, {**variables, "cursor": cursor})
                pages += 1
                page = connection(data)
                if page is None:
                    return pages
                accumulate(page)
                try:
                    page_info = PageInfo.model_validate(page.get("pageInfo"))
                except ValidationError as exc:
                    raise MalformedResponseError(
                        f"{self.name}: paginated GraphQL response without pageInfo"
                    ) from exc
                if not page_info.has_next_page:
                    return pages
                if page_info.end_cursor is None:
                    raise MalformedResponseError(
                        f"{self.name}: GraphQL page advertises a next page without a cursor"
                    )
                cursor = page_info.end_cursor

    async def _graphql_async(
        self,
        client: ResilientClient,
        query: str,
        variables: Mapping[str, JSON],
    ) -> dict[str, JSON]:
        body = {"query": query, "variables": dict(variables)}
        response = self._check(await self._request(client, "POST", self._graphql_path, json=body))
        try:
            envelope = GraphQLEnvelope.model_validate(self._json(response))
        except ValidationError as exc:
            raise MalformedResponseError(f"{self.name}: invalid GraphQL envelope") from exc
        if envelope.errors:
            raise GraphQLError(envelope.errors)
        if envelope.data is None:
            raise MalformedResponseError(f"{self.name}: GraphQL response without data")
        return envelope.data

    async def _request(
        self,
        client: ResilientClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        while True:
            response = await client.request(method, url, **kwargs)
            if not is_rate_limited(response):
                return response
            wait = retry_after_seconds(
                response, default=self._resilience.default_retry_after_seconds
            )
            log.warning(
                "%s: rate limited on %s %s, retrying in %.1fs", self.name, method, url, wait
            )
            await self._sleep(wait)

    def _check(self, response: httpx.Response, *, allow: Collection[int] = ()) -> httpx.Response:
        status = response.status_code
        if response.is_success or status in allow:
            return response
        request = response.request
        message = f"{self.name}: {request.method} {request.url} failed with {status}"
        if status in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise AuthenticationError(message, status_code=status, body=response.text)
        raise PlatformAPIError(message, status_code=status, body=response.text)

    def _json(self, response: httpx.Response) -> JSON:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{self.name}: response from {response.request.url} is not JSON",
                status_code=response.status_code,
                body=response.text,
            ) from exc

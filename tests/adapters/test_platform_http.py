from __future__ import annotations

import httpx
import pytest

from teamsync.adapters.platform_http import (
    AuthenticationError,
    GraphQLError,
    MalformedResponseError,
    PlatformAPIError,
    PlatformHttpClient,
)
from tests.helpers.http import (
    RecordedSleeps,
    make_client_factory,
    request_json,
    resilience_config,
)

BASE = "https://api.test"


def _client(handler, sleeps: RecordedSleeps | None = None) -> PlatformHttpClient:  # noqa: ANN001
    return PlatformHttpClient(
        resilience_config(base_url=BASE),
        client_factory=make_client_factory(handler),
        sleep=sleeps or RecordedSleeps(),
    )


def test_rest_pagination_follows_next_links_until_absent() -> None:
    pages = {
        "1": ([{"id": 1}, {"id": 2}], f'<{BASE}/items?page=2>; rel="next", <{BASE}/items?page=3>; rel="last"'),
        "2": ([{"id": 3}], f'<{BASE}/items?page=3>; rel="next"'),
        "3": ([{"id": 4}], None),
    }
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params.get("page", "1")
        seen.append(page)
        items, link = pages[page]
        headers = {"Link": link} if link else {}
        return httpx.Response(200, json=items, headers=headers)

    items = _client(handler).fetch_all("items")

    assert [item["id"] for item in items] == [1, 2, 3, 4]
    assert seen == ["1", "2", "3"]


def test_pagination_keeps_initial_params_only_on_the_first_request() -> None:
    requests: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.url)
        if "page" in request.url.params:
            return httpx.Response(200, json=[])
        return httpx.Response(
            200, json=[{"id": 1}], headers={"Link": f'<{BASE}/members?role=admin&page=2>; rel="next"'}
        )

    pages = _client(handler).for_each_page("members", lambda _page: None, params={"role": "admin"})

    assert pages == 2
    assert requests[0].params["role"] == "admin"
    assert str(requests[1]) == f"{BASE}/members?role=admin&page=2"


def test_fetch_all_extracts_wrapped_items() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"total_count": 1, "installations": [{"id": 5}]})

    items = _client(handler).fetch_all("orgs/x/installations", items=lambda page: page["installations"])

    assert items == [{"id": 5}]


def test_rate_limited_requests_wait_and_resend() -> None:
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(429, headers={"X-RateLimit-Reset-After": "1.5"}),
            httpx.Response(429),
            httpx.Response(200, json={"ok": True}),
        ]
    )
    sleeps = RecordedSleeps()

    payload = _client(lambda _request: next(responses), sleeps).fetch_one("thing")

    assert payload == {"ok": True}
    assert sleeps.seconds == [3.0, 1.5, 1.0]


def test_secondary_rate_limit_is_retried_like_429() -> None:
    responses = iter(
        [
            httpx.Response(403, headers={"Retry-After": "60"}),
            httpx.Response(200, json=[]),
        ]
    )
    sleeps = RecordedSleeps()

    assert _client(lambda _request: next(responses), sleeps).fetch_all("things") == []
    assert sleeps.seconds == [60.0]


def test_missing_resource_is_none() -> None:
    client = _client(lambda _request: httpx.Response(404, json={"message": "Not Found"}))

    assert client.fetch_one("repos/org/missing") is None


@pytest.mark.parametrize("status", [401, 403])
def test_authentication_failures_are_fatal(status: int) -> None:
    client = _client(lambda _request: httpx.Response(status, text="Bad credentials"))

    with pytest.raises(AuthenticationError) as excinfo:
        client.fetch_all("things")

    assert excinfo.value.status_code == status
    assert excinfo.value.body == "Bad credentials"


def test_other_errors_carry_status_and_body() -> None:
    client = _client(lambda _request: httpx.Response(500, text="oops"))

    with pytest.raises(PlatformAPIError) as excinfo:
        client.fetch_one("things")

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "oops"
    assert not isinstance(excinfo.value, AuthenticationError)


def test_non_json_payload_is_malformed() -> None:
    client = _client(lambda _request: httpx.Response(200, text="<html>"))

    with pytest.raises(MalformedResponseError):
        client.fetch_one("things")


def test_graphql_errors_are_fatal_even_with_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/graphql"
        return httpx.Response(
            200,
            json={
                "data": {"node": None},
                "errors": [{"message": "Could not resolve", "type": "NOT_FOUND"}],
            },
        )

    with pytest.raises(GraphQLError) as excinfo:
        _client(handler).graphql("query { node }")

    assert excinfo.value.is_not_found
    assert "Could not resolve" in str(excinfo.value)


def test_graphql_returns_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = request_json(request)
        assert body["variables"] == {"ids": ["a"]}
        return httpx.Response(200, json={"data": {"nodes": [{"login": "a"}]}})

    data = _client(handler).graphql("query($ids: [ID!]!) { nodes }", {"ids": ["a"]})

    assert data == {"nodes": [{"login": "a"}]}


def test_graphql_pages_walk_the_cursor() -> None:
    cursors: list[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        cursor = request_json(request)["variables"]["cursor"]  # type: ignore[index]
        cursors.append(cursor)
        has_next = cursor is None
        return httpx.Response(
            200,
            json={
                "data": {
                    "team": {
                        "members": {
                            "pageInfo": {"hasNextPage": has_next, "endCursor": "c1" if has_next else None},
                            "edges": [{"login": "first" if has_next else "second"}],
                        }
                    }
                }
            },
        )

    logins: list[str] = []
    pages = _client(handler).graphql_pages(
        "query",
        {"slug": "lang"},
        connection=lambda data: data["team"]["members"],
        accumulate=lambda page: logins.extend(edge["login"] for edge in page["edges"]),
    )

    assert pages == 2
    assert cursors == [None, "c1"]
    assert logins == ["first", "second"]


def test_graphql_pages_stop_when_the_parent_is_missing() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"organization": None}})

    pages = _client(handler).graphql_pages(
        "query",
        {},
        connection=lambda data: None,
        accumulate=lambda page: pytest.fail("nothing to accumulate"),
    )

    assert pages == 1


def test_send_allows_listed_statuses() -> None:
    client = _client(lambda _request: httpx.Response(404))

    response = client.send("DELETE", "things/1", allow=(404,))

    assert response.status_code == 404
    with pytest.raises(PlatformAPIError):
        client.send("DELETE", "things/1")

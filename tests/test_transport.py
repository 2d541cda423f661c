import asyncio
import base64

import httpx
import pytest

from jira_report.errors import (
    JiraConnectionError,
    JiraEndpointNotFoundError,
    JiraHttpError,
    JiraResponseError,
)
from jira_report.retry import RetryPolicy
from jira_report.transport import JiraTransport, build_http_client, normalize_base_url

PATH = "rest/api/3/field"


def test_returns_decoded_json(jira):
    jira.add(PATH, [{"id": "summary"}])
    data = jira.run(lambda t: t.get_json(PATH))
    assert data == [{"id": "summary"}]
    assert jira.sleeps == []


def test_sends_query_params(jira):
    jira.add(PATH, {})
    jira.run(lambda t: t.get_json(PATH, params={"jql": "project = APP", "maxResults": 5}))
    request = jira.requests[0]
    assert request.url.params["jql"] == "project = APP"
    assert request.url.params["maxResults"] == "5"


def test_retries_server_errors_then_succeeds(jira):
    jira.add(PATH, httpx.Response(503), httpx.Response(429), {"ok": True})
    data = jira.run(lambda t: t.get_json(PATH))
    assert data == {"ok": True}
    assert len(jira.requests) == 3
    assert jira.sleeps == pytest.approx([0.2, 0.4])


def test_exhausted_retries_raise_with_diagnostics(jira):
    jira.add(PATH, *[httpx.Response(500, text="boom") for _ in range(3)])
    with pytest.raises(JiraHttpError) as exc_info:
        jira.run(lambda t: t.get_json(PATH), retry_count=2)
    err = exc_info.value
    assert err.status_code == 500
    assert err.reason == "Internal Server Error"
    assert err.body == "boom"
    assert err.url.endswith("/rest/api/3/field")
    assert len(jira.requests) == 3


def test_client_error_is_not_retried(jira):
    jira.add(PATH, httpx.Response(400, json={"errorMessages": ["Error in the JQL Query"]}))
    with pytest.raises(JiraHttpError) as exc_info:
        jira.run(lambda t: t.get_json(PATH))
    assert exc_info.value.status_code == 400
    assert "Error in the JQL Query" in exc_info.value.body
    assert "400" in str(exc_info.value)
    assert len(jira.requests) == 1
    assert jira.sleeps == []


def test_not_found_is_distinguishable(jira):
    jira.add(PATH, httpx.Response(404))
    with pytest.raises(JiraEndpointNotFoundError) as exc_info:
        jira.run(lambda t: t.get_json(PATH))
    assert isinstance(exc_info.value, JiraHttpError)
    assert len(jira.requests) == 1


def test_connection_error_is_retried(jira):
    jira.add(PATH, httpx.ConnectError("refused"), ["field"])
    assert jira.run(lambda t: t.get_json(PATH)) == ["field"]
    assert jira.sleeps == pytest.approx([0.2])


def test_connection_error_after_retries(jira):
    jira.add(PATH, httpx.ConnectError("refused"), httpx.ConnectError("refused"))
    with pytest.raises(JiraConnectionError) as exc_info:
        jira.run(lambda t: t.get_json(PATH), retry_count=1)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert "refused" in str(exc_info.value)


@pytest.mark.parametrize("body", [b"", b"   ", b"null"])
def test_empty_body_returns_none(jira, body):
    jira.add(PATH, httpx.Response(200, content=body))
    assert jira.run(lambda t: t.get_json(PATH)) is None


def test_invalid_json_body(jira):
    jira.add(PATH, httpx.Response(200, text="<html>login</html>"))
    with pytest.raises(JiraResponseError):
        jira.run(lambda t: t.get_json(PATH))


def test_cancellation_aborts_backoff_wait(jira):
    jira.add(PATH, httpx.Response(503), {"never": "reached"})

    async def main():
        entered = asyncio.Event()

        async def slow_sleep(delay):
            entered.set()
            await asyncio.sleep(3600)

        async with jira.http_client() as http:
            transport = JiraTransport(http, RetryPolicy(3), sleep=slow_sleep)
            task = asyncio.create_task(transport.get_json(PATH))
            await entered.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    asyncio.run(main())
    assert len(jira.requests) == 1


def test_cancellation_aborts_in_flight_request(jira):
    held = jira.hold(PATH)
    jira.add(PATH, httpx.Response(503), {"never": "reached"})

    async def main(transport):
        task = asyncio.create_task(transport.get_json(PATH))
        await held.entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return task

    task = jira.run(main)
    assert task.cancelled()
    assert len(jira.requests) == 1
    assert jira.sleeps == []


def test_build_http_client_uses_basic_auth():
    client = build_http_client("https://example.atlassian.net//", "me@example.com", "secret")
    try:
        assert str(client.base_url) == "https://example.atlassian.net/"
        assert client.headers["Accept"] == "application/json"
        assert isinstance(client.auth, httpx.BasicAuth)
        request = client.build_request("GET", "rest/api/3/myself")
        assert str(request.url) == "https://example.atlassian.net/rest/api/3/myself"
        authed = next(client.auth.sync_auth_flow(request))
        expected = base64.b64encode(b"me@example.com:secret").decode()
        assert authed.headers["Authorization"] == f"Basic {expected}"
    finally:
        asyncio.run(client.aclose())


def test_normalize_base_url():
    assert normalize_base_url("  https://x.atlassian.net/ ") == "https://x.atlassian.net"

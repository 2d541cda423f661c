"""Test configuration ensuring local package import when editable install not active.

Also provides a small fake Jira served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import sys
from collections import defaultdict
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jira_report.retry import RetryPolicy  # noqa: E402
from jira_report.transport import JiraTransport  # noqa: E402

BASE_URL = "https://example.atlassian.net/"

FIELD_CATALOG = [
    {"id": "summary", "key": "summary", "name": "Summary", "custom": False, "clauseNames": ["summary"]},
    {"id": "status", "key": "status", "name": "Status", "custom": False, "clauseNames": ["status"]},
    {"id": "issuetype", "key": "issuetype", "name": "Issue Type", "custom": False,
     "clauseNames": ["issuetype", "type"]},
    {"id": "assignee", "key": "assignee", "name": "Assignee", "custom": False, "clauseNames": ["assignee"]},
    {"id": "created", "key": "created", "name": "Created", "custom": False,
     "clauseNames": ["created", "createdDate"]},
    {"id": "labels", "key": "labels", "name": "Labels", "custom": False, "clauseNames": ["labels"]},
    {"id": "customfield_10001", "key": "customfield_10001", "name": "Story Points", "custom": True,
     "clauseNames": ["cf[10001]", "Story Points"]},
    {"id": "customfield_10020", "key": "customfield_10020", "name": "Sprint", "custom": True,
     "clauseNames": ["cf[10020]", "Sprint [12345]"]},
]


class Hold:
    """Queue marker: the request waits here until ``release`` is set."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()


class FakeJira:
    """
    Answers requests from per-path queues and records what was asked.

    Queued items may be an ``httpx.Response``, an exception to raise, a
    ``Hold`` that parks the request before the next queued item is served,
    or any JSON-serializable value returned with status 200.
    """

    def __init__(self):
        self.routes = defaultdict(list)
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []

    def add(self, path: str, *responses) -> "FakeJira":
        self.routes[path].extend(responses)
        return self

    def hold(self, path: str) -> Hold:
        """Park the next request to ``path``; queue its answer with ``add`` afterwards."""
        marker = Hold()
        self.routes[path].append(marker)
        return marker

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.lstrip("/")
        queue = self.routes.get(path)
        if not queue:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        item = queue.pop(0)
        if isinstance(item, Hold):
            item.entered.set()
            await item.release.wait()
            if not queue:
                raise AssertionError(f"Nothing queued after hold: {request.url}")
            item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.lstrip("/") == path]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(self.handler))

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    def run(self, fn, retry_count: int = 3):
        """Run ``await fn(transport)`` on a fresh event loop."""

        async def main():
            async with self.http_client() as http:
                transport = JiraTransport(http, RetryPolicy(retry_count), sleep=self.sleep)
                return await fn(transport)

        return asyncio.run(main())


@pytest.fixture
def jira() -> FakeJira:
    return FakeJira()


@pytest.fixture
def field_catalog() -> list[dict]:
    return [dict(f) for f in FIELD_CATALOG]

from __future__ import annotations

import enum
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import JiraEndpointNotFoundError, JiraResponseError
from .fields import FieldAliasResolver
from .models import FieldResolution, Issue, SearchPage, SearchResult
from .normalize import map_issues
from .retry import RetryPolicy
from .transport import JiraTransport, build_http_client

log = logging.getLogger(__name__)

CURSOR_SEARCH_PATH = "rest/api/3/search/jql"
OFFSET_SEARCH_PATH = "rest/api/3/search"
MYSELF_PATH = "rest/api/3/myself"

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100


class SearchStrategy(enum.Enum):
    CURSOR = "cursor"
    OFFSET = "offset"


def clamp_page_size(page_size: int) -> int:
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, int(page_size)))


def finalize_issues(issues: Iterable[Issue]) -> List[Issue]:
    """Drop repeated keys (first occurrence wins) and order by key, ignoring case."""
    by_key: Dict[str, Issue] = {}
    for issue in issues:
        by_key.setdefault(issue.key.folded, issue)
    return sorted(by_key.values(), key=lambda i: i.key.folded)


@dataclass
class JiraClient:
    transport: JiraTransport
    resolver: FieldAliasResolver
    max_results_per_page: int = MAX_PAGE_SIZE

    async def myself(self) -> Dict[str, Any]:
        data = await self.transport.get_json(MYSELF_PATH)
        if not isinstance(data, dict):
            raise JiraResponseError("Jira 'myself' response is empty.")
        return data

    async def search(self, jql: str, fields: Optional[Sequence[str]] = None) -> SearchResult:
        """
        Run a JQL search over all pages.

        Uses the cursor endpoint (GET /rest/api/3/search/jql) and switches to
        the legacy offset endpoint (GET /rest/api/3/search) when the former
        answers 404.
        """
        if jql is None or not jql.strip():
            raise ValueError("JQL query cannot be empty.")
        jql = jql.strip()

        resolution = await self.resolver.resolve(fields or [])
        page_size = clamp_page_size(self.max_results_per_page)

        strategy = SearchStrategy.CURSOR
        try:
            issues = await self._search_with_page_token(jql, resolution, page_size)
        except JiraEndpointNotFoundError:
            strategy = SearchStrategy.OFFSET
            log.info("Cursor search endpoint not available; falling back to offset pagination")
            issues = await self._search_with_start_at(jql, resolution, page_size)

        result = finalize_issues(issues)
        log.debug("Search (%s) returned %d issues", strategy.value, len(result))
        return SearchResult(issues=result, aliases_by_api_field=resolution.aliases_by_api_field)

    async def _search_with_page_token(
        self, jql: str, resolution: FieldResolution, page_size: int
    ) -> List[Issue]:
        issues: List[Issue] = []
        next_page_token: Optional[str] = None

        while True:
            params = _base_params(jql, resolution, page_size)
            if next_page_token:
                params["nextPageToken"] = next_page_token

            page = await self._get_page(CURSOR_SEARCH_PATH, params)
            issues.extend(map_issues(page.issues, resolution.aliases_by_api_field))

            if not page.has_next:
                break
            next_page_token = page.next_page_token

        return issues

    async def _search_with_start_at(
        self, jql: str, resolution: FieldResolution, page_size: int
    ) -> List[Issue]:
        issues: List[Issue] = []
        start_at = 0

        while True:
            params = _base_params(jql, resolution, page_size)
            params["startAt"] = start_at

            page = await self._get_page(OFFSET_SEARCH_PATH, params)
            issues.extend(map_issues(page.issues, resolution.aliases_by_api_field))

            if not page.issues:
                break

            start_at += len(page.issues)
            total = page.total if page.total and page.total > 0 else start_at
            log.debug("Fetched %d/%d issues", start_at, total)
            if start_at >= total:
                break

        return issues

    async def _get_page(self, path: str, params: Mapping[str, Any]) -> SearchPage:
        data = await self.transport.get_json(path, params=dict(params))
        if not isinstance(data, dict):
            raise JiraResponseError("Jira search response is empty.")
        return SearchPage.from_api(data)


def _base_params(jql: str, resolution: FieldResolution, page_size: int) -> Dict[str, Any]:
    params: Dict[str, Any] = {"jql": jql}
    api_fields = resolution.requested_api_fields()
    if api_fields:
        params["fields"] = ",".join(api_fields)
    params["maxResults"] = page_size
    return params


@asynccontextmanager
async def open_jira_client(
    base_url: str,
    email: str,
    token: str,
    *,
    max_results_per_page: int = MAX_PAGE_SIZE,
    retry_count: int = 3,
    timeout: float = 60,
) -> AsyncIterator[JiraClient]:
    async with build_http_client(base_url, email, token, timeout=timeout) as http:
        transport = JiraTransport(http, RetryPolicy(retry_count))
        yield JiraClient(transport, FieldAliasResolver(transport), max_results_per_page)


async def search_issues(
    base_url: str,
    email: str,
    token: str,
    jql: str,
    fields: Optional[Sequence[str]] = None,
    **options: Any,
) -> SearchResult:
    """One-shot search with a client that is closed afterwards."""
    async with open_jira_client(base_url, email, token, **options) as client:
        return await client.search(jql, fields)

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .errors import JiraConnectionError, JiraEndpointNotFoundError, JiraHttpError, JiraResponseError
from .retry import RetryPolicy

log = logging.getLogger(__name__)

NOT_FOUND = 404

Sleep = Callable[[float], Awaitable[Any]]


def build_http_client(base_url: str, email: str, token: str, timeout: float = 60) -> httpx.AsyncClient:
    # Jira Cloud API token auth: Basic base64(email:token)
    return httpx.AsyncClient(
        base_url=normalize_base_url(base_url) + "/",
        timeout=timeout,
        headers={"Accept": "application/json"},
        auth=(email, token),
    )


def normalize_base_url(url: str) -> str:
    url = url.strip()
    while url.endswith("/"):
        url = url[:-1]
    return url


class JiraTransport:
    """
    Issues GET requests against Jira and returns decoded JSON.
    Transient failures are retried according to the RetryPolicy.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        failures = 0

        while True:
            try:
                log.debug("GET %s params=%s", url, params)
                response = await self._client.get(url, params=params)
            except httpx.TransportError as exc:
                decision = self._retry_policy.decide(failures + 1, error=exc)
                if not decision.should_retry:
                    raise JiraConnectionError(url, str(exc) or type(exc).__name__) from exc
                failures += 1
                log.warning(
                    "Request to %s failed (%s); retry %d in %.2fs",
                    url, type(exc).__name__, failures, decision.delay,
                )
                await self._sleep(decision.delay)
                continue

            if response.is_success:
                return _decode_body(response)

            decision = self._retry_policy.decide(failures + 1, status_code=response.status_code)
            if decision.should_retry:
                failures += 1
                log.warning(
                    "Jira returned %d for %s; retry %d in %.2fs",
                    response.status_code, url, failures, decision.delay,
                )
                await self._sleep(decision.delay)
                continue

            raise _http_error(response)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise JiraResponseError(
            f"Jira returned a body that is not JSON. Url={response.request.url}"
        ) from exc


def _http_error(response: httpx.Response) -> JiraHttpError:
    error_type = JiraEndpointNotFoundError if response.status_code == NOT_FOUND else JiraHttpError
    return error_type(
        status_code=response.status_code,
        reason=response.reason_phrase,
        url=str(response.request.url),
        body=response.text,
    )

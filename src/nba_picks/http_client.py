"""Async JSON transport shared by schedule, odds and form sources."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from time import perf_counter
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from nba_picks.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 8.0
ERROR_EXCERPT_CHARS = 200
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; nba-picks/0.1.0)",
    "Accept": "application/json",
}


class RetryableStatusError(RuntimeError):
    """Raised for retryable status codes."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"retryable status {response.status_code}")

    def retry_after_seconds(self) -> float | None:
        raw_value = self.response.headers.get("Retry-After")
        if not raw_value:
            return None
        try:
            return max(0.0, float(raw_value))
        except ValueError:
            try:
                date_value = parsedate_to_datetime(raw_value)
            except (TypeError, ValueError):
                return None
            now = datetime.now(UTC)
            return max(0.0, (date_value - now).total_seconds())


def _wait_for_retry(retry_state) -> float:
    """Wait strategy for tenacity retries."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, RetryableStatusError):
        retry_after = exc.retry_after_seconds()
        if retry_after is not None:
            return min(retry_after, 5.0)
    return min(0.5 * (2 ** (retry_state.attempt_number - 1)), 5.0)


def excerpt(text: str, limit: int = ERROR_EXCERPT_CHARS) -> str:
    """Trim upstream bodies before they reach logs or error messages."""
    compact = " ".join(text.split())
    return compact[:limit]


@dataclass(frozen=True)
class JsonResponse:
    """Decoded body and metadata from one upstream call."""

    data: Any
    status_code: int
    headers: dict[str, str]
    duration_ms: int
    retry_count: int


class JsonHttpClient:
    """Thin async JSON client with a per-call deadline and bounded status retries.

    Only 429 and 5xx responses are retried. Timeouts and transport errors fail
    the call immediately. The deadline covers every attempt and every retry
    sleep of one call.
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_attempts: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.max_attempts = max(1, int(max_attempts))
        limits = httpx.Limits(max_connections=16, max_keepalive_connections=8)
        self._http = httpx.AsyncClient(
            timeout=timeout_s,
            limits=limits,
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> JsonHttpClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        timeout_s: float | None = None,
    ) -> JsonResponse:
        label = url.split("?", 1)[0]
        deadline_s = self.timeout_s if timeout_s is None else timeout_s
        retries = 0
        started = perf_counter()
        response: httpx.Response | None = None
        try:
            async with asyncio.timeout(deadline_s):
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_attempts),
                    retry=retry_if_exception_type(RetryableStatusError),
                    wait=_wait_for_retry,
                    reraise=True,
                ):
                    with attempt:
                        retries = attempt.retry_state.attempt_number - 1
                        response = await self._http.get(url, params=params, timeout=deadline_s)
                        if response.status_code == 429 or 500 <= response.status_code <= 599:
                            raise RetryableStatusError(response)
        except RetryableStatusError as exc:
            raise UpstreamUnavailable(
                f"{label} failed with status {exc.response.status_code} after retries: "
                f"{excerpt(exc.response.text)}"
            ) from exc
        except (httpx.TimeoutException, TimeoutError) as exc:
            raise UpstreamUnavailable(f"{label} timed out after {deadline_s}s") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"{label} failed with transport error: {exc}") from exc
        if response is None:
            raise UpstreamUnavailable(f"{label} failed without a response")
        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"{label} failed ({response.status_code}): {excerpt(response.text)}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"{label} returned a non-JSON body") from exc

        duration_ms = int((perf_counter() - started) * 1000)
        logger.debug("GET %s -> %s in %dms", label, response.status_code, duration_ms)
        return JsonResponse(
            data=data,
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            duration_ms=duration_ms,
            retry_count=retries,
        )

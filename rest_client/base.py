"""Base HTTP client and table accessor for a PostgREST-style API."""

from __future__ import annotations

import asyncio
import re
from typing import Any, ClassVar

import httpx
from loguru import logger
from pydantic import BaseModel

from query_cache.accessor import ListResult, Record
from query_cache.errors import RemoteError
from query_cache.filters import ListQuery
from query_cache.ids import RecordId
from settings import API_BASE_URL, API_KEY, API_TIMEOUT, MAX_CONCURRENT

_CONTENT_RANGE = re.compile(r"^\s*(?:\d+-\d+|\*)/(\d+|\*)\s*$")
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _total_count(header: str | None, fallback: int) -> int:
    """Total from ``Content-Range: 0-24/573``; ``fallback`` when unknown."""
    match = _CONTENT_RANGE.match(header or "")
    if match is None or match.group(1) == "*":
        return fallback
    return int(match.group(1))


def _remote_error(resp: httpx.Response) -> RemoteError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return RemoteError(resp.text or resp.reason_phrase or f"status {resp.status_code}", status=resp.status_code)
    return RemoteError(
        body.get("message") or f"status {resp.status_code}",
        code=body.get("code"),
        status=resp.status_code,
        details=body.get("details"),
        hint=body.get("hint"),
    )


class RestClient:
    """Async HTTP client with a concurrency cap. Failures surface as RemoteError."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        api_key: str = API_KEY,
        timeout: float = API_TIMEOUT,
        max_concurrent: int = MAX_CONCURRENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._sem = asyncio.Semaphore(max_concurrent)
        self._request_count = 0
        logger.info("{}: base_url={}, max_concurrent={}", self.__class__.__name__, self.base_url, max_concurrent)

    @property
    def request_count(self) -> int:
        return self._request_count

    async def __aenter__(self):
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self._timeout,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *_):
        logger.info("Total API requests: {}", self._request_count)
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} used outside 'async with'")
        async with self._sem:
            self._request_count += 1
            try:
                resp = await self._client.request(method, path, params=params, json=json, headers=headers)
            except httpx.TimeoutException as e:
                raise RemoteError(f"Request timed out: {method} {path}", code="timeout") from e
            except httpx.TransportError as e:
                raise RemoteError(f"Network request failed: {e}", code="network") from e
        if resp.is_error:
            error = _remote_error(resp)
            logger.debug("{} {} -> {} {}", method, path, resp.status_code, error.code)
            raise error
        return resp


class TableAccessor:
    """Remote accessor for one table under ``/rest/v1``.

    Subclasses set ``table`` and ``row_model``; rows are validated and cached as
    JSON-ready dicts.
    """

    table: ClassVar[str]
    row_model: ClassVar[type[BaseModel]]
    id_field: ClassVar[str] = "id"

    def __init__(self, client: RestClient):
        self._client = client

    @property
    def path(self) -> str:
        return f"/rest/v1/{self.table}"

    def _row(self, data: Any) -> Record:
        return self.row_model.model_validate(data).model_dump(mode="json")

    def _match(self, record_id: RecordId) -> list[tuple[str, str]]:
        return [(self.id_field, f"eq.{record_id}")]

    async def list(self, query: ListQuery) -> ListResult:
        resp = await self._client.request(
            "GET",
            self.path,
            params=[("select", "*"), *query.params()],
            headers={"Prefer": "count=exact"},
        )
        rows = [self._row(row) for row in resp.json()]
        return ListResult(data=rows, count=_total_count(resp.headers.get("Content-Range"), len(rows)))

    async def get_by_id(self, record_id: RecordId) -> Record:
        resp = await self._client.request(
            "GET",
            self.path,
            params=[("select", "*"), *self._match(record_id)],
            headers={"Accept": SINGLE_OBJECT},
        )
        return self._row(resp.json())

    async def create(self, values: Record) -> Record:
        resp = await self._client.request(
            "POST",
            self.path,
            params=[("select", "*")],
            json=values,
            headers={"Prefer": "return=representation", "Accept": SINGLE_OBJECT},
        )
        return self._row(resp.json())

    async def update(self, record_id: RecordId, values: Record) -> Record:
        resp = await self._client.request(
            "PATCH",
            self.path,
            params=[("select", "*"), *self._match(record_id)],
            json=values,
            headers={"Prefer": "return=representation", "Accept": SINGLE_OBJECT},
        )
        return self._row(resp.json())

    async def delete(self, record_id: RecordId) -> None:
        await self._client.request("DELETE", self.path, params=self._match(record_id))

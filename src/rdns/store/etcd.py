"""etcd v2 keys API client.

Talks to ``/v2/keys`` over HTTP with httpx and translates etcd error codes
into the registration error types:

    100 Key not found        -> NotFoundError (PreconditionFailedError on prevExist=true writes)
    101 Compare failed       -> PreconditionFailedError
    105 Key already exists   -> PreconditionFailedError
    102 Not a file           -> ConflictError
    104 Not a directory      -> ConflictError
    108 Directory not empty  -> ConflictError
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from rdns.errors import (
    ConflictError,
    DataIntegrityError,
    NotFoundError,
    PreconditionFailedError,
    RDNSError,
    StoreUnavailableError,
)
from rdns.store.base import KeyValueStore, Node

logger = structlog.get_logger()

KEY_NOT_FOUND = 100
COMPARE_FAILED = 101
NOT_A_FILE = 102
NOT_A_DIRECTORY = 104
NODE_EXIST = 105
DIR_NOT_EMPTY = 108

_CONFLICT_CODES = {NOT_A_FILE, NOT_A_DIRECTORY, DIR_NOT_EMPTY}
_PRECONDITION_CODES = {COMPARE_FAILED, NODE_EXIST}


def _flag(value: bool) -> str:
    return "true" if value else "false"


class EtcdStore(KeyValueStore):
    """etcd v2 backed key-value store.

    Endpoints are tried in order; the next one is used only when a connection
    could not be established, so a request is never sent twice to a server
    that may have applied it.
    """

    def __init__(
        self,
        endpoints: list[str],
        timeout: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the etcd client.

        Args:
            endpoints: etcd client URLs, e.g. ``["http://127.0.0.1:2379"]``.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        if not endpoints:
            raise ValueError("At least one etcd endpoint is required")
        self.endpoints = [e.rstrip("/") for e in endpoints]
        self.timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(
        self,
        method: str,
        key: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        path = "/v2/keys" + quote(key if key.startswith("/") else "/" + key, safe="/:")
        last_error: httpx.RequestError | None = None

        for endpoint in self.endpoints:
            try:
                return await client.request(method, endpoint + path, params=params, data=data)
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                last_error = e
                logger.warning("etcd endpoint unreachable", endpoint=endpoint, error=str(e))
            except httpx.RequestError as e:
                raise StoreUnavailableError(
                    f"etcd request failed: {type(e).__name__}",
                    details={"endpoint": endpoint, "key": key, "error": str(e)},
                ) from e

        raise StoreUnavailableError(
            "No etcd endpoint could be reached",
            details={"endpoints": self.endpoints, "key": key, "error": str(last_error)},
        ) from last_error

    def _decode(self, resp: httpx.Response, key: str, prev_exist: bool | None = None) -> Node:
        if resp.status_code >= 500:
            raise StoreUnavailableError(
                f"etcd returned HTTP {resp.status_code}",
                details={"key": key, "status": resp.status_code},
            )
        try:
            body: dict[str, Any] = resp.json()
        except ValueError as e:
            raise DataIntegrityError(
                "etcd returned a non-JSON body",
                details={"key": key, "status": resp.status_code},
            ) from e

        if "errorCode" in body:
            raise self._error(body, key, prev_exist)
        if "node" not in body:
            raise DataIntegrityError("etcd response has no node", details={"key": key})
        return Node.from_dict(body["node"])

    def _error(self, body: dict[str, Any], key: str, prev_exist: bool | None) -> RDNSError:
        code = body.get("errorCode")
        message = f"{body.get('message', 'etcd error')}: {body.get('cause', key)}"
        details = {"key": key, "etcd_code": code}
        if code == KEY_NOT_FOUND:
            if prev_exist:
                return PreconditionFailedError(message, details=details)
            return NotFoundError(message, details=details)
        if code in _PRECONDITION_CODES:
            return PreconditionFailedError(message, details=details)
        if code in _CONFLICT_CODES:
            return ConflictError(message, details=details)
        return RDNSError(message, code="store_error", details=details)

    async def get(self, key: str, *, recursive: bool = False, sort: bool = False) -> Node:
        params = {}
        if recursive:
            params["recursive"] = "true"
        if sort:
            params["sorted"] = "true"
        resp = await self._request("GET", key, params=params)
        return self._decode(resp, key)

    async def set(
        self,
        key: str,
        value: str = "",
        *,
        ttl: int | None = None,
        dir: bool = False,
        prev_exist: bool | None = None,
    ) -> Node:
        data: dict[str, str] = {}
        if dir:
            data["dir"] = "true"
        else:
            data["value"] = value
        if ttl:
            data["ttl"] = str(ttl)
        if prev_exist is not None:
            data["prevExist"] = _flag(prev_exist)
        resp = await self._request("PUT", key, data=data)
        return self._decode(resp, key, prev_exist)

    async def delete(self, key: str, *, dir: bool = False, recursive: bool = False) -> Node:
        params = {}
        if dir:
            params["dir"] = "true"
        if recursive:
            params["recursive"] = "true"
        resp = await self._request("DELETE", key, params=params)
        return self._decode(resp, key)

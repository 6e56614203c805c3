"""Remote API access for the sync engine."""

from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import Optional
from typing import Protocol

import httpx

from workspace_manager.client.sync_queue import SyncOperation

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "workspace": "workspaces",
    "project": "projects",
    "task": "tasks",
    "session": "sessions",
}


class RemoteError(Exception):
    """Remote call failed; ``status_code`` is ``None`` for transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteClient(Protocol):
    async def push(self, op: SyncOperation) -> Dict[str, Any]:
        """Deliver *op*; returns the server's acknowledgement."""

    async def fetch(self, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        """Return the authoritative copy, or ``None`` when it does not exist."""


class HttpRemoteClient:
    """:class:`RemoteClient` over the workspace manager HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            detail = body.get("detail", "") if isinstance(body, dict) else body
            raise RemoteError(
                f"{response.request.method} {response.request.url.path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        # 2xx with a body that is not ours (captive portal, proxy page).
        where = f"{response.request.method} {response.request.url.path}"
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteError(f"{where} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise RemoteError(f"{where} returned {type(body).__name__}, expected an object")
        return body

    async def push(self, op: SyncOperation) -> Dict[str, Any]:
        response = await self._request("POST", "/api/sync/operations", json=op.to_dict())
        self._raise_for_status(response)
        return self._json(response)

    async def fetch(self, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        collection = COLLECTIONS[getattr(entity_type, "value", entity_type)]
        response = await self._request("GET", f"/api/{collection}/{entity_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return self._json(response)

    async def aclose(self) -> None:
        await self.client.aclose()


__all__ = ["COLLECTIONS", "RemoteError", "RemoteClient", "HttpRemoteClient"]

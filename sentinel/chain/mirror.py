"""Mirror node REST client — network and block lookups."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from sentinel.chain.exceptions import ChainCallError, ChainConnectionError

logger = structlog.stdlib.get_logger()


class MirrorNodeClient:
    """Thin async client for the Hedera mirror node REST API.

    Usage::

        mirror = MirrorNodeClient("https://testnet.mirrornode.hedera.com")
        await mirror.connect()
        nodes = await mirror.network_nodes()
        await mirror.close()
    """

    def __init__(self, base_url: str, timeout_secs: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def connected(self) -> bool:
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        if self.connected:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout_secs),
        )

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def network_nodes(self) -> list[dict[str, Any]]:
        """Consensus nodes known to the mirror node — a cheap liveness read."""
        body = await self._get("/api/v1/network/nodes")
        nodes = body.get("nodes", [])
        return nodes if isinstance(nodes, list) else []

    async def latest_block(self) -> dict[str, Any]:
        """Most recent block record."""
        body = await self._get("/api/v1/blocks", params={"limit": 1, "order": "desc"})
        blocks = body.get("blocks") or []
        if not blocks:
            raise ChainCallError("Mirror node returned no blocks")
        return blocks[0]  # type: ignore[no-any-return]

    async def _get(
        self, path: str, params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if self._http is None:
            raise ChainConnectionError("Mirror node client not connected")
        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ChainCallError(
                f"Mirror node returned {exc.response.status_code} for {path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ChainConnectionError(f"Mirror node request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ChainCallError("Mirror node returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise ChainCallError("Mirror node returned an unexpected payload")
        return body

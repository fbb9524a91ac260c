from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Protocol

import aiohttp

from shared.sanitize import preview_payload

logger = logging.getLogger("ChatShelf.GatewayClient")


@dataclass(frozen=True)
class GatewayResult:
    ok: bool
    data: dict[str, object] = field(default_factory=dict)
    error: str | None = None
    status: int | None = None
    code: str | None = None

    @classmethod
    def success(cls, data: dict[str, object], *, status: int = 200) -> GatewayResult:
        return cls(ok=True, data=data, status=status)

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        status: int | None = None,
        code: str | None = None,
    ) -> GatewayResult:
        return cls(ok=False, error=error, status=status, code=code)

    @property
    def not_found(self) -> bool:
        return self.status == 404 or self.code == "thread_not_found"

    def thread_id(self) -> str | None:
        raw = self.data.get("threadId")
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
        return None


class Gateway(Protocol):
    async def history(self, thread_id: str | None = None) -> GatewayResult: ...

    async def new_thread(self) -> GatewayResult: ...

    async def switch_thread(self, thread_id: str) -> GatewayResult: ...

    async def send(self, thread_id: str, text: str) -> GatewayResult: ...

    async def delete_thread(self, thread_id: str) -> GatewayResult: ...


class GatewayClient:
    """Клиент шлюза ChatShelf: /history, /new, /switch, /chat, /threads/{id}.

    Сетевые ошибки не пробрасываются наружу, каждый вызов возвращает
    GatewayResult. thread_id передаётся явно в каждом запросе, cookie шлюза
    используется только как запасной вариант.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def history(self, thread_id: str | None = None) -> GatewayResult:
        params = {"thread_id": thread_id} if thread_id else None
        return await self._request("GET", "/history", params=params)

    async def new_thread(self) -> GatewayResult:
        return await self._request("POST", "/new", json={})

    async def switch_thread(self, thread_id: str) -> GatewayResult:
        return await self._request("POST", "/switch", json={"threadId": thread_id})

    async def send(self, thread_id: str, text: str) -> GatewayResult:
        payload = {"threadId": thread_id, "messages": [{"role": "user", "content": text}]}
        return await self._request("POST", "/chat", json=payload)

    async def delete_thread(self, thread_id: str) -> GatewayResult:
        return await self._request("DELETE", f"/threads/{thread_id}")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> GatewayResult:
        url = f"{self._base_url}{path}"
        session = self._ensure_session()
        try:
            async with session.request(method, url, params=params, json=json) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
        except asyncio.TimeoutError:
            logger.warning("Gateway timeout", extra={"method": method, "path": path})
            return GatewayResult.failure("timeout")
        except aiohttp.ClientError as exc:
            logger.warning(
                "Gateway request failed: %s",
                exc,
                extra={"method": method, "path": path},
            )
            return GatewayResult.failure(str(exc) or exc.__class__.__name__)

        if not isinstance(body, dict):
            return GatewayResult.failure(
                f"HTTP {status}: invalid JSON from gateway",
                status=status,
            )
        if status >= 400 or body.get("ok") is False:
            error_raw = body.get("error")
            code_raw = body.get("code")
            message = error_raw if isinstance(error_raw, str) and error_raw else f"HTTP {status}"
            logger.debug(
                "Gateway error response",
                extra={"path": path, "status": status, "body": preview_payload(body)},
            )
            return GatewayResult.failure(
                message,
                status=status,
                code=code_raw if isinstance(code_raw, str) else None,
            )
        return GatewayResult.success(body, status=status)

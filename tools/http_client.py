from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests

from shared.models import JSONValue

logger = logging.getLogger("ChatShelf.HTTPClient")


@dataclass
class HttpConfig:
    timeout: float = 30
    max_bytes: int = 2_000_000


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    data: JSONValue | None
    status_code: int | None
    error: str | None = None
    meta: dict[str, JSONValue] | None = None


class HttpClient:
    def __init__(
        self,
        config: HttpConfig | None = None,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.config = config or HttpConfig()
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})

    def get_json(self, path: str, **kwargs: Any) -> HttpResult:
        return self._request("GET", path, **kwargs)

    def post_json(self, path: str, **kwargs: Any) -> HttpResult:
        return self._request("POST", path, **kwargs)

    def delete_json(self, path: str, **kwargs: Any) -> HttpResult:
        return self._request("DELETE", path, **kwargs)

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> HttpResult:
        url = self._url(path)
        timeout = kwargs.pop("timeout", self.config.timeout)
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = requests.request(
                method=method,
                url=url,
                timeout=timeout,
                stream=True,
                headers=headers,
                **kwargs,
            )
        except requests.Timeout:
            logger.error("HTTP %s timeout for %s", method, url)
            return HttpResult(ok=False, data=None, status_code=None, error="timeout")
        except requests.RequestException as exc:
            logger.error("HTTP %s error for %s: %s", method, url, exc)
            return HttpResult(ok=False, data=None, status_code=None, error=str(exc))

        status = response.status_code
        body, truncated = self._read_limited(response)
        meta: dict[str, JSONValue] = {"truncated": truncated, "status_code": status}
        if truncated:
            logger.error("HTTP %s body truncated for %s (payload too large)", method, url)
            return HttpResult(
                ok=False,
                data=None,
                status_code=status,
                error="payload_too_large",
                meta=meta,
            )

        parsed: object | None = None
        decode_error: str | None = None
        if body.strip():
            try:
                parsed = json.loads(body)
            except json.JSONDecodeError as exc:
                decode_error = f"json_decode_error: {exc}"

        if status >= 400:
            message = _error_message(parsed) or decode_error or f"HTTP {status}"
            logger.warning("HTTP %s %s returned %s: %s", method, url, status, message)
            return HttpResult(ok=False, data=None, status_code=status, error=message, meta=meta)
        if decode_error is not None:
            logger.error("HTTP %s JSON decode error for %s: %s", method, url, decode_error)
            return HttpResult(
                ok=False,
                data=None,
                status_code=status,
                error=decode_error,
                meta=meta,
            )
        return HttpResult(ok=True, data=parsed, status_code=status, meta=meta)  # type: ignore[arg-type]

    def _read_limited(self, response: requests.Response) -> tuple[str, bool]:
        total = 0
        collected: list[str] = []
        for chunk in response.iter_content(chunk_size=4096, decode_unicode=True):
            if chunk is None:
                continue
            text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
            total += len(text.encode("utf-8"))
            if total > self.config.max_bytes:
                return "".join(collected), True
            collected.append(text)
        return "".join(collected), False


def _error_message(parsed: object | None) -> str | None:
    if not isinstance(parsed, dict):
        return None
    error = parsed.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if isinstance(error, str) and error.strip():
        return error.strip()
    return None

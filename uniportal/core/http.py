import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the portal API."""

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data


class ConnectionFailed(ApiError):
    """The request never produced a response."""

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        super().__init__("Failed to connect to server")
        self.cause = cause


class ResponseShapeError(ApiError):
    """The response body does not match the documented contract."""


def error_message(status: int, data: Any) -> str:
    if isinstance(data, dict):
        for key in ("detail", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Request failed ({status})"


class HttpClient:
    """Portal HTTP client: base URL, JSON headers, session cookies, GET retries."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None,
        timeout: float = 15,
        max_retries: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        merged = {"Content-Type": "application/json", "Accept": "application/json"}
        merged.update(headers or {})
        self.client = httpx.Client(
            headers=merged,
            cookies=cookies,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        self.max_retries = max(1, max_retries)

    def _full_url(self, url: str) -> str:
        if self.base_url and not url.startswith("http"):
            return urljoin(f"{self.base_url}/", url.lstrip("/"))
        return url

    @property
    def cookies(self) -> Dict[str, str]:
        return dict(self.client.cookies.items())

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        target = self._full_url(url)
        logger.debug("%s %s %s", method, target, kwargs.get("params"))
        try:
            resp = self.client.request(method, target, **kwargs)
        except httpx.RequestError as e:
            raise ConnectionFailed(e) from e
        if resp.is_error:
            data = self._decode(resp)
            raise ApiError(error_message(resp.status_code, data), status=resp.status_code, data=data)
        return resp

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        # Only idempotent reads are retried, and only when no response arrived.
        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(ConnectionFailed),
        )
        for attempt in retrying:
            with attempt:
                return self.request("GET", url, **kwargs)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        return self._decode(self.get(url, **kwargs))

    def post_json(self, url: str, body: Any = None) -> Any:
        return self._decode(self.request("POST", url, json=body))

    def put_json(self, url: str, body: Any = None) -> Any:
        return self._decode(self.request("PUT", url, json=body))

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        """Empty body -> None, non-JSON body -> raw text."""
        text = resp.text
        if not text:
            return None
        try:
            return resp.json()
        except ValueError:
            return text

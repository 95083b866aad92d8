"""
Resilient REST client shared by all REST-speaking PMS adapters
Timeout race, retry with exponential backoff and response decoding
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from pms_sync.contracts import IntegrationError
from pms_sync.resilience import RetryOptions, call_with_retry
from pms_sync.utils.logging import get_logger, sanitize_url

USER_AGENT = "PMS-Sync/1.0"
DEFAULT_TIMEOUT = 30.0


class RESTClient:
    """
    Generic HTTP client configured per vendor with base URL, headers and retry policy.

    Vendor adapters hold one of these rather than subclassing it.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        retry_options: Optional[RetryOptions] = None,
        timeout: float = DEFAULT_TIMEOUT,
        auth: Optional[httpx.Auth] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        service_name: str = "rest",
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})}
        self.retry_options = retry_options or RetryOptions()
        self.timeout = timeout
        self.auth = auth
        self.service_name = service_name
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = get_logger("pms_sync.transports.rest").bind(service=service_name)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                auth=self.auth,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=25,
                    keepalive_expiry=30.0,
                ),
                # The per-attempt deadline is enforced by the timer race below
                timeout=httpx.Timeout(None, connect=10.0),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Perform a request under the retry policy.

        Returns parsed JSON for JSON responses, raw text otherwise.
        """
        request_headers = dict(headers or {})
        if json is not None and "Content-Type" not in request_headers:
            request_headers["Content-Type"] = "application/json"
        deadline = timeout if timeout is not None else self.timeout

        async def attempt() -> Any:
            response = await self.send_once(
                method,
                path,
                params=params,
                json=json,
                content=content,
                headers=request_headers,
                timeout=deadline,
            )
            if response.is_success:
                return self._decode(response)

            retryable = self.retry_options.is_retryable_status(response.status_code)
            raise IntegrationError(
                f"PMS API request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                code=f"HTTP_{response.status_code}",
                retryable=retryable,
            )

        return await call_with_retry(
            attempt, self.retry_options, service_name=self.service_name, sleep=self._sleep
        )

    async def send_once(
        self,
        method: str,
        path: str,
        *,
        timeout: float,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Single network round trip raced against a timer.

        Timeouts surface as non-retryable ``TIMEOUT``; connection-level failures
        as retryable ``NETWORK_ERROR``. HTTP status handling is left to callers.
        """
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.request(method, path, **kwargs), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self.logger.warning(
                "request_timed_out",
                method=method,
                url=sanitize_url(f"{self.base_url}{path}"),
                timeout=timeout,
            )
            raise IntegrationError(
                "PMS API request timed out", status_code=504, code="TIMEOUT", cause=e
            ) from e
        except httpx.TransportError as e:
            self.logger.warning(
                "request_network_error",
                method=method,
                url=sanitize_url(f"{self.base_url}{path}"),
                error=str(e),
            )
            raise IntegrationError(
                "PMS API request failed", status_code=502, code="NETWORK_ERROR", cause=e, retryable=True
            ) from e

        self.logger.debug(
            "request_completed",
            method=method,
            url=sanitize_url(str(response.url)),
            status_code=response.status_code,
        )
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()
        return response.text

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

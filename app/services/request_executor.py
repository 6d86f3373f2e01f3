# app/services/request_executor.py
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ApiResult:
    """Uniform outcome of one outbound call; failures are values, not exceptions."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, data: Any, status_code: int = 200) -> "ApiResult":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, error: str, status_code: Optional[int] = None) -> "ApiResult":
        return cls(success=False, error=error, status_code=status_code)


class RequestExecutor:
    """
    Issues HTTP calls for a single store integration with a per-attempt
    timeout, a fixed attempt ceiling and exponential backoff.

    Backoff before attempt N+1 is 2 ** (N - 1) seconds, so three attempts
    wait 1s then 2s. ``sleep`` and ``transport`` are injectable so tests can
    assert timing and serve canned responses without touching the network.
    """

    def __init__(
        self,
        integration,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        sleep: Optional[Sleeper] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.integration = integration
        self.base_url = base_url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.sleep = sleep or asyncio.sleep
        self.transport = transport

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> ApiResult:
        return await self.execute("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Optional[Dict] = None) -> ApiResult:
        return await self.execute("POST", endpoint, json=data)

    async def put(self, endpoint: str, data: Optional[Dict] = None) -> ApiResult:
        return await self.execute("PUT", endpoint, json=data)

    async def execute(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
    ) -> ApiResult:
        url = self.build_url(endpoint)
        last_response: Optional[httpx.Response] = None
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self.headers,
                        params=params,
                        json=json,
                    )

                if response.is_success:
                    return ApiResult.ok(_decode_body(response), response.status_code)

                last_response = response
                last_exception = None
                logger.warning(
                    "API request failed: %s %s (attempt %s/%s, status %s)",
                    method, url, attempt, self.max_attempts, response.status_code,
                    extra=self._log_context(url, method, attempt, status=response.status_code,
                                            response=_decode_body(response, fallback_text=True)),
                )
            except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
                last_response = None
                last_exception = e
                logger.error(
                    "API request exception: %s %s (attempt %s/%s): %s",
                    method, url, attempt, self.max_attempts, e,
                    extra=self._log_context(url, method, attempt, exception=str(e)),
                )

            if attempt < self.max_attempts:
                await self.sleep(2 ** (attempt - 1))

        if last_response is not None:
            return ApiResult.fail(_extract_error(last_response), last_response.status_code)
        if last_exception is not None:
            return ApiResult.fail(str(last_exception) or type(last_exception).__name__, 500)
        return ApiResult.fail("API request failed with unknown reason", 500)

    def _log_context(self, url: str, method: str, attempt: int, **details) -> Dict[str, Any]:
        platform = getattr(self.integration, "platform", None)
        return {
            "store_integration_id": getattr(self.integration, "id", None),
            "platform": getattr(platform, "value", platform),
            "url": url,
            "method": method,
            "attempt": attempt,
            **details,
        }


def _decode_body(response: httpx.Response, fallback_text: bool = False) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text if fallback_text else {}


def _extract_error(response: httpx.Response) -> str:
    body = _decode_body(response)
    error = None
    if isinstance(body, dict):
        error = body.get("errors") or body.get("error")
    if not error:
        return f"API request failed with status: {response.status_code}"
    if isinstance(error, str):
        return error
    return json.dumps(error, default=str)

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from .errors import DownstreamError, DownstreamTimeout, TransportError
from .models import CompileRequest, CompileResponse, HealthState
from .observability import MetricsCollector, StructuredLogger

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def _resolve_timeout(timeout_ms: Optional[int], default_ms: int) -> int:
    if timeout_ms is None:
        return default_ms
    # aiohttp treats a zero total timeout as "no timeout"
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be > 0")
    return timeout_ms


class RequestForwarder:
    """HTTP client from the web tier to the simulator tier.

    No retries: failures are surfaced to the caller as they happen.
    """

    def __init__(
        self,
        base_url: str,
        logger: StructuredLogger,
        metrics: Optional[MetricsCollector] = None,
        compile_timeout_ms: int = 20000,
        readiness_timeout_ms: int = 5000,
    ):
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self.metrics = metrics
        self.compile_timeout_ms = compile_timeout_ms
        self.readiness_timeout_ms = readiness_timeout_ms

    def _record(self, outcome: str, started: float):
        if not self.metrics:
            return
        self.metrics.increment("compile_forward_total", {"outcome": outcome})
        self.metrics.observe("compile_forward_duration_ms", (time.time() - started) * 1000.0)

    async def forward(self, request: CompileRequest, timeout_ms: Optional[int] = None) -> CompileResponse:
        timeout_ms = _resolve_timeout(timeout_ms, self.compile_timeout_ms)
        url = f"{self.base_url}/compile"
        self.logger.info("starting compile request", extra={"compileId": request.id, "docLength": request.size})

        started = time.time()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=request.to_body(),
                    headers=JSON_HEADERS,
                    timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000.0),
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        raise DownstreamError(response.status, compile_id=request.id)
                    body: Dict[str, Any] = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            self._record("timeout", started)
            raise DownstreamTimeout(timeout_ms, compile_id=request.id) from e
        except DownstreamError:
            self._record("downstream_error", started)
            raise
        except (aiohttp.ClientError, OSError, ValueError) as e:
            self._record("transport_error", started)
            raise TransportError(f"compile request failed: {e}", compile_id=request.id) from e

        try:
            result = CompileResponse(output=body["output"])
        except (KeyError, TypeError, ValueError) as e:
            self._record("transport_error", started)
            raise TransportError(f"malformed compile response: {e}", compile_id=request.id) from e

        self._record("success", started)
        self.logger.info("compile succeeded", extra={"compileId": request.id, "output": result.output})
        return result

    async def check_ready(self, timeout_ms: Optional[int] = None) -> HealthState:
        timeout_ms = _resolve_timeout(timeout_ms, self.readiness_timeout_ms)
        url = f"{self.base_url}/readyz"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000.0)) as response:
                    if 200 <= response.status < 300:
                        return HealthState.HEALTHY
                    self.logger.warning("downstream not ready", extra={"status": response.status, "url": url})
                    return HealthState.UNHEALTHY
        except asyncio.TimeoutError:
            self.logger.warning("downstream readiness timed out", extra={"timeout_ms": timeout_ms, "url": url})
            return HealthState.UNREACHABLE
        except (aiohttp.ClientError, OSError) as e:
            self.logger.warning("downstream unreachable", extra={"error": str(e), "url": url})
            return HealthState.UNREACHABLE

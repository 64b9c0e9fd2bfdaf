import asyncio
import re
import socket

import pytest
from aiohttp import web
from aiohttp import test_utils

from compilesim.core.config import WorkParameters
from compilesim.core.errors import DownstreamError, DownstreamTimeout, TransportError
from compilesim.core.forwarder import RequestForwarder
from compilesim.core.models import CompileRequest, HealthState
from compilesim.core.observability import MetricsCollector, StructuredLogger
from compilesim.core.simulator import CompileSimulator

HEX_DIGEST = re.compile(r"^[0-9a-f]{32}$")


def _closed_port_url() -> str:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"


async def _with_server(routes, fn):
    app = web.Application()
    app.add_routes(routes)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        return await fn(str(server.make_url("")))
    finally:
        await server.close()


def _forwarder(base_url: str, metrics=None, **kwargs) -> RequestForwarder:
    return RequestForwarder(base_url, StructuredLogger("tests.forwarder"), metrics=metrics, **kwargs)


def _request() -> CompileRequest:
    return CompileRequest(id="abcd1234", document=b"abcd1234" + b"x" * 40)


def test_forward_returns_output_and_sends_document():
    seen = {}

    async def compile_handler(request):
        seen.update(await request.json())
        return web.json_response({"output": "0" * 32})

    metrics = MetricsCollector()
    result = asyncio.run(
        _with_server(
            [web.post("/compile", compile_handler)],
            lambda url: _forwarder(url, metrics).forward(_request()),
        )
    )

    assert result.output == "0" * 32
    assert seen["doc"].startswith("abcd1234")
    assert seen["compiler"] == "pdftex"
    assert metrics.counter_value("compile_forward_total", {"outcome": "success"}) == 1


def test_forward_against_simulated_clsi_yields_hex_digest():
    simulator = CompileSimulator(WorkParameters(iterations=1, work_rate_mean=0.01, work_rate_sd=0.001))

    async def compile_handler(request):
        body = await request.json()
        doc = body["doc"].encode("utf-8")
        result = await simulator.compile_async(CompileRequest(id=body["doc"][:8], document=doc))
        return web.json_response({"output": result.digest})

    try:
        result = asyncio.run(
            _with_server(
                [web.post("/compile", compile_handler)],
                lambda url: _forwarder(url).forward(_request()),
            )
        )
    finally:
        simulator.shutdown()

    assert HEX_DIGEST.match(result.output)


def test_forward_non_success_status_raises_downstream_error():
    async def compile_handler(request):
        return web.json_response({"detail": "boom"}, status=500)

    metrics = MetricsCollector()
    with pytest.raises(DownstreamError) as excinfo:
        asyncio.run(
            _with_server(
                [web.post("/compile", compile_handler)],
                lambda url: _forwarder(url, metrics).forward(_request()),
            )
        )

    assert excinfo.value.downstream_status == 500
    assert excinfo.value.compile_id == "abcd1234"
    assert metrics.counter_value("compile_forward_total", {"outcome": "downstream_error"}) == 1


def test_forward_slow_downstream_raises_timeout():
    async def compile_handler(request):
        await asyncio.sleep(2)
        return web.json_response({"output": "0" * 32})

    with pytest.raises(DownstreamTimeout) as excinfo:
        asyncio.run(
            _with_server(
                [web.post("/compile", compile_handler)],
                lambda url: _forwarder(url).forward(_request(), timeout_ms=100),
            )
        )

    assert excinfo.value.timeout_ms == 100


def test_forward_connection_refused_raises_transport_error():
    with pytest.raises(TransportError):
        asyncio.run(_forwarder(_closed_port_url()).forward(_request()))


def test_forward_malformed_body_raises_transport_error():
    async def compile_handler(request):
        return web.json_response({"unexpected": True})

    with pytest.raises(TransportError):
        asyncio.run(
            _with_server(
                [web.post("/compile", compile_handler)],
                lambda url: _forwarder(url).forward(_request()),
            )
        )


def _readyz_routes(status: int = 200, delay: float = 0.0):
    async def readyz(request):
        if delay:
            await asyncio.sleep(delay)
        return web.Response(status=status, text="OK")

    return [web.get("/readyz", readyz)]


def test_check_ready_healthy_downstream():
    state = asyncio.run(_with_server(_readyz_routes(200), lambda url: _forwarder(url).check_ready()))

    assert state == HealthState.HEALTHY


def test_check_ready_failing_downstream_is_unhealthy():
    state = asyncio.run(_with_server(_readyz_routes(500), lambda url: _forwarder(url).check_ready()))

    assert state == HealthState.UNHEALTHY


def test_check_ready_slow_downstream_is_unreachable():
    state = asyncio.run(
        _with_server(
            _readyz_routes(200, delay=2),
            lambda url: _forwarder(url, readiness_timeout_ms=100).check_ready(),
        )
    )

    assert state == HealthState.UNREACHABLE


def test_check_ready_down_downstream_is_unreachable():
    state = asyncio.run(_forwarder(_closed_port_url()).check_ready())

    assert state == HealthState.UNREACHABLE


@pytest.mark.parametrize("timeout_ms", [0, -5])
def test_non_positive_timeouts_are_rejected(timeout_ms):
    forwarder = _forwarder(_closed_port_url())

    with pytest.raises(ValueError):
        asyncio.run(forwarder.forward(_request(), timeout_ms=timeout_ms))
    with pytest.raises(ValueError):
        asyncio.run(forwarder.check_ready(timeout_ms=timeout_ms))

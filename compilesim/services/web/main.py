from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from compilesim.core.config import SERVICE_WEB, load_settings
from compilesim.core.errors import CompileSimError, DownstreamUnhealthy, TransportError
from compilesim.core.forwarder import RequestForwarder
from compilesim.core.generator import WorkloadGenerator
from compilesim.core.models import CompileResponse, HealthState
from compilesim.core.observability import (
    MetricsCollector,
    StructuredLogger,
    configure_logging,
    expose_metrics,
    install_request_observability,
)
from compilesim.core.readiness import DownstreamReadinessProbe
from compilesim.services.web.demo_page import DEMO_PAGE

settings = load_settings(service=SERVICE_WEB)
configure_logging(settings)

logger = StructuredLogger("compilesim.web")
metrics_collector = MetricsCollector()
metrics_collector.describe("compile_forward_total", "compile requests forwarded to the simulator, by outcome")
metrics_collector.describe("compile_forward_duration_ms", "round trip of forwarded compile requests")
metrics_collector.describe("http_requests_total", "HTTP requests handled")

generator = WorkloadGenerator(settings.work)
forwarder = RequestForwarder(
    settings.clsi_base_url,
    logger,
    metrics=metrics_collector,
    compile_timeout_ms=settings.compile_timeout_ms,
    readiness_timeout_ms=settings.readiness_timeout_ms,
)
readiness_probe = DownstreamReadinessProbe(forwarder)

app = FastAPI(
    title="Compile Load Generator",
    description="Issues synthetic compile jobs against the simulator tier",
)
install_request_observability(app, logger, metrics_collector)


@app.exception_handler(CompileSimError)
async def compile_error_handler(request: Request, exc: CompileSimError):
    logger.error(
        "Request failed",
        extra={"path": request.url.path, "compileId": exc.compile_id, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/livez")
async def livez():
    return {"status": "ok"}


@app.get("/readyz")
async def readyz():
    state = await readiness_probe.check()
    if state == HealthState.UNHEALTHY:
        raise DownstreamUnhealthy("Service not ready: simulator tier reports unhealthy")
    if state == HealthState.UNREACHABLE:
        raise TransportError("Service not ready: simulator tier unreachable")
    return {"status": state.value}


@app.get("/metrics")
async def metrics():
    return PlainTextResponse(expose_metrics(metrics_collector, SERVICE_WEB), media_type="text/plain; version=0.0.4")


@app.get("/", response_class=HTMLResponse)
async def demo_page():
    return HTMLResponse(DEMO_PAGE)


@app.post("/compile", response_model=CompileResponse)
async def compile_document(
    doc_length: Optional[int] = Query(default=None, ge=1, le=settings.work.max_doc_length),
):
    # Fixed size when doc_length is given, otherwise drawn up to DOC_LENGTH
    request = generator.generate() if doc_length is None else generator.build(doc_length)
    return await forwarder.forward(request)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())

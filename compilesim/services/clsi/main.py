from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from compilesim.core.config import SERVICE_CLSI, load_settings
from compilesim.core.errors import CompileSimError, InvalidCompileRequest
from compilesim.core.models import CompileBody, CompileRequest, CompileResponse, Compiler, HealthState
from compilesim.core.observability import (
    MetricsCollector,
    StructuredLogger,
    configure_logging,
    expose_metrics,
    install_request_observability,
)
from compilesim.core.readiness import SimulatorReadinessProbe
from compilesim.core.simulator import CompileSimulator

settings = load_settings(service=SERVICE_CLSI)
configure_logging(settings)

logger = StructuredLogger("compilesim.clsi")
metrics_collector = MetricsCollector()
metrics_collector.describe("compile_time", "end to end compile time")
metrics_collector.describe("compile_requests_total", "compile requests by outcome")
metrics_collector.describe("http_requests_total", "HTTP requests handled")

simulator = CompileSimulator(settings.work, max_workers=settings.compile_workers)
readiness_probe = SimulatorReadinessProbe(simulator, logger)

app = FastAPI(
    title="Compile Simulator",
    description="Simulates the latency and CPU cost of document compiles",
)
install_request_observability(app, logger, metrics_collector)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected malformed request", extra={"path": request.url.path, "error": str(exc.errors())})
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(CompileSimError)
async def compile_error_handler(request: Request, exc: CompileSimError):
    logger.error(
        "Compile request failed",
        extra={"path": request.url.path, "compileId": exc.compile_id, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("shutdown")
async def on_shutdown():
    simulator.shutdown()


@app.get("/livez")
async def livez():
    return {"status": "ok"}


@app.get("/readyz")
async def readyz():
    state = await readiness_probe.check()
    if state != HealthState.HEALTHY:
        raise HTTPException(status_code=500, detail=f"Service not ready: {state.value}")
    return {"status": state.value}


@app.get("/metrics")
async def metrics():
    return PlainTextResponse(expose_metrics(metrics_collector, SERVICE_CLSI), media_type="text/plain; version=0.0.4")


@app.post("/compile", response_model=CompileResponse)
async def compile_document(body: CompileBody):
    compiler = body.compiler or Compiler.PDFTEX
    document = body.doc.encode("utf-8")
    # The web tier prefixes each document with its compile id
    compile_id = body.doc[:8]

    if len(document) > settings.work.max_doc_length:
        metrics_collector.increment("compile_requests_total", {"outcome": "rejected"})
        raise InvalidCompileRequest(
            f"document exceeds {settings.work.max_doc_length} bytes",
            compile_id=compile_id,
            status_code=413,
        )

    logger.info("compile starting", extra={"compileId": compile_id, "compiler": compiler.value, "docSize": len(document)})

    request = CompileRequest(id=compile_id, document=document, compiler=compiler)
    stop_timer = metrics_collector.start_timer("compile_time")
    try:
        result = await simulator.compile_async(request)
    except CompileSimError:
        metrics_collector.increment("compile_requests_total", {"outcome": "failed"})
        raise
    finally:
        stop_timer()

    metrics_collector.increment("compile_requests_total", {"outcome": "success"})
    logger.info(
        "compile finished",
        extra={
            "compileId": compile_id,
            "targetMs": result.target_ms,
            "rounds": result.rounds,
            "elapsedMs": round(result.elapsed_ms, 1),
        },
    )
    return CompileResponse(output=result.digest)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())

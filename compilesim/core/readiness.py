from .forwarder import RequestForwarder
from .models import CompileRequest, HealthState
from .observability import StructuredLogger
from .simulator import CompileSimulator

CANNED_DOCUMENT = b"test doc" * 80


class SimulatorReadinessProbe:
    """Ready when one real simulated compile goes through."""

    def __init__(self, simulator: CompileSimulator, logger: StructuredLogger):
        self.simulator = simulator
        self.logger = logger

    async def check(self) -> HealthState:
        request = CompileRequest(id="readyz", document=CANNED_DOCUMENT)
        try:
            await self.simulator.compile_async(request)
        except Exception as e:
            self.logger.error("readiness compile failed", extra={"compileId": request.id, "error": str(e)})
            return HealthState.UNHEALTHY
        return HealthState.HEALTHY


class DownstreamReadinessProbe:
    """Ready when the simulator tier says it is ready."""

    def __init__(self, forwarder: RequestForwarder):
        self.forwarder = forwarder

    async def check(self) -> HealthState:
        return await self.forwarder.check_ready()

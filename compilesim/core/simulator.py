import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .busywork import BusyWorkEngine, KEY_LENGTH
from .config import WorkParameters
from .errors import InternalFault
from .models import CompileRequest, CompileResult
from .sampler import DurationSampler


class CompileSimulator:
    """Simulates the cost of a document compile without compiling anything."""

    def __init__(
        self,
        params: WorkParameters,
        sampler: Optional[DurationSampler] = None,
        engine: Optional[BusyWorkEngine] = None,
        max_workers: int = 32,
    ):
        self.params = params
        self.sampler = sampler or DurationSampler(params)
        self.engine = engine or BusyWorkEngine()
        self.max_workers = max(1, int(max_workers))
        self._executor: Optional[ThreadPoolExecutor] = None

    def compile(self, request: CompileRequest) -> CompileResult:
        # request.compiler is accepted but does not change the simulated work
        target_ms = self.sampler.sample(len(request.document))
        try:
            proof = self.engine.run_measured(request.document[:KEY_LENGTH], target_ms, self.params.iterations)
        except Exception as e:
            raise InternalFault(f"busy-work failed: {e}", compile_id=request.id) from e
        return CompileResult(
            digest=proof.digest.hex(),
            target_ms=target_ms,
            rounds=proof.rounds,
            elapsed_ms=proof.elapsed_ms,
        )

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="compile")
        return self._executor

    async def compile_async(self, request: CompileRequest) -> CompileResult:
        """Run compile() on a worker thread so the event loop keeps serving."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.compile, request)

    def shutdown(self, wait: bool = False):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

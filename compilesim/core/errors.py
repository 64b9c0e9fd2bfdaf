from typing import Optional


class CompileSimError(Exception):
    """Base class for every failure the harness reports."""

    status_code = 500

    def __init__(self, message: str, compile_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.compile_id = compile_id


class InvalidCompileRequest(CompileSimError):
    status_code = 400

    def __init__(self, message: str, compile_id: Optional[str] = None, status_code: int = 400):
        super().__init__(message, compile_id)
        self.status_code = status_code


class DownstreamTimeout(CompileSimError):
    status_code = 504

    def __init__(self, timeout_ms: int, compile_id: Optional[str] = None):
        super().__init__(f"downstream did not respond within {timeout_ms}ms", compile_id)
        self.timeout_ms = timeout_ms


class DownstreamError(CompileSimError):
    status_code = 502

    def __init__(self, downstream_status: int, compile_id: Optional[str] = None):
        super().__init__(f"compile failed: status {downstream_status}", compile_id)
        self.downstream_status = downstream_status


class DownstreamUnhealthy(CompileSimError):
    status_code = 503


class TransportError(CompileSimError):
    status_code = 500


class InternalFault(CompileSimError):
    status_code = 500

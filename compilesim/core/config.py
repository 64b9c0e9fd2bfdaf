import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

SERVICE_CLSI = "clsi"
SERVICE_WEB = "web"

DEFAULT_PORTS = {
    SERVICE_CLSI: 8081,
    SERVICE_WEB: 8080,
}


def _env_str(environ: Mapping[str, str], key: str, default: str) -> str:
    value = str(environ.get(key, "") or "").strip()
    return value or default


def _env_int(environ: Mapping[str, str], key: str, default: int, minimum: Optional[int] = None) -> int:
    raw = environ.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(float(str(raw).strip()))
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(
    environ: Mapping[str, str],
    key: str,
    default: float,
    minimum: Optional[float] = None,
    exclusive: bool = False,
) -> float:
    raw = environ.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    if minimum is not None:
        if exclusive and value <= minimum:
            return default
        if not exclusive and value < minimum:
            return default
    return value


@dataclass(frozen=True)
class WorkParameters:
    """Immutable knobs of the compile simulation, fixed at startup."""

    # PBKDF2 cost factor of a single busy-work round
    iterations: int = 10000
    # Linear-space mean / sd of the per-character work rate, in ms
    work_rate_mean: float = 5.0
    work_rate_sd: float = 1.2
    # Upper bound of the generated document size
    doc_length: int = 1000
    # Largest document the simulator will accept
    max_doc_length: int = 50000
    # Uniform draws averaged per standard-normal sample
    normal_samples: int = 50

    def __post_init__(self):
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1")
        if self.work_rate_mean <= 0:
            raise ValueError("work_rate_mean must be > 0")
        if self.work_rate_sd < 0:
            raise ValueError("work_rate_sd must be >= 0")
        if self.doc_length < 1:
            raise ValueError("doc_length must be >= 1")
        if self.max_doc_length < self.doc_length:
            raise ValueError("max_doc_length must be >= doc_length")
        if self.normal_samples < 30:
            raise ValueError("normal_samples must be >= 30")


@dataclass(frozen=True)
class Settings:
    service: str = SERVICE_CLSI
    port: int = DEFAULT_PORTS[SERVICE_CLSI]

    # Downstream simulator tier, used by the web tier
    clsi_host: str = "localhost"
    clsi_port: int = DEFAULT_PORTS[SERVICE_CLSI]

    compile_timeout_ms: int = 20000
    readiness_timeout_ms: int = 5000
    compile_workers: int = 32

    log_level: str = "INFO"
    app_env: str = "development"

    work: WorkParameters = field(default_factory=WorkParameters)

    @property
    def clsi_base_url(self) -> str:
        return f"http://{self.clsi_host}:{self.clsi_port}"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


def load_work_parameters(environ: Optional[Mapping[str, str]] = None) -> WorkParameters:
    env = os.environ if environ is None else environ
    defaults = WorkParameters()

    doc_length = _env_int(env, "DOC_LENGTH", defaults.doc_length, minimum=1)
    max_doc_length = _env_int(env, "MAX_DOC_LENGTH", defaults.max_doc_length, minimum=1)
    if max_doc_length < doc_length:
        max_doc_length = max(defaults.max_doc_length, doc_length)

    return WorkParameters(
        iterations=_env_int(env, "COMPILE_ITERATIONS", defaults.iterations, minimum=1),
        work_rate_mean=_env_float(env, "COMPILE_WORK_RATE", defaults.work_rate_mean, minimum=0, exclusive=True),
        work_rate_sd=_env_float(env, "COMPILE_WORK_SD", defaults.work_rate_sd, minimum=0),
        doc_length=doc_length,
        max_doc_length=max_doc_length,
        normal_samples=_env_int(env, "COMPILE_NORMAL_SAMPLES", defaults.normal_samples, minimum=30),
    )


def load_settings(environ: Optional[Mapping[str, str]] = None, service: str = SERVICE_CLSI) -> Settings:
    """Build the process configuration from the environment.

    Missing or unparseable values fall back to their defaults instead of
    failing startup.
    """
    env = os.environ if environ is None else environ
    defaults = Settings()
    default_port = DEFAULT_PORTS.get(service, DEFAULT_PORTS[SERVICE_CLSI])

    return Settings(
        service=service,
        port=_env_int(env, "PORT", default_port, minimum=1),
        clsi_host=_env_str(env, "CLSI_SERVICE_HOST", defaults.clsi_host),
        clsi_port=_env_int(env, "CLSI_SERVICE_PORT", defaults.clsi_port, minimum=1),
        compile_timeout_ms=_env_int(env, "COMPILE_TIMEOUT_MS", defaults.compile_timeout_ms, minimum=1),
        readiness_timeout_ms=_env_int(env, "READINESS_TIMEOUT_MS", defaults.readiness_timeout_ms, minimum=1),
        compile_workers=max(1, min(_env_int(env, "COMPILE_WORKERS", defaults.compile_workers, minimum=1), 256)),
        log_level=_env_str(env, "LOG_LEVEL", defaults.log_level).upper(),
        app_env=_env_str(env, "APP_ENV", defaults.app_env),
        work=load_work_parameters(env),
    )

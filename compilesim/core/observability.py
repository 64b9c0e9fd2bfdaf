import json
import logging
import os
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from starlette.routing import Match

from .config import Settings

PROCESS_START_TIME = time.time()

# Attributes present on every LogRecord; anything else came in through extra=
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()) | {"message", "asctime"}


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class KeyValueFormatter(logging.Formatter):
    """Development format: the usual line followed by extras as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _record_extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return line


class JsonFormatter(logging.Formatter):
    """Production format: one JSON object per line, Cloud Logging field names."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        }
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(settings: Settings):
    root = logging.getLogger()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if settings.is_production else KeyValueFormatter())
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level, logging.INFO))


class StructuredLogger:
    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra=extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.warning(message, extra=extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.error(message, extra=extra)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.debug(message, extra=extra)


def _tags_key(tags: Optional[Dict[str, str]]) -> Tuple[Tuple[str, str], ...]:
    return tuple(sorted((str(k), str(v)) for k, v in (tags or {}).items()))


class _Summary:
    def __init__(self, window: int):
        self.count = 0
        self.total = 0.0
        self.recent: Deque[float] = deque(maxlen=window)

    def add(self, value: float):
        self.count += 1
        self.total += value
        self.recent.append(value)

    def quantile(self, q: float) -> float:
        if not self.recent:
            return float("nan")
        ordered = sorted(self.recent)
        index = min(len(ordered) - 1, max(0, int(round(q * (len(ordered) - 1)))))
        return ordered[index]


class MetricsCollector:
    """Thread-safe counters and summaries, shared by request handlers and worker threads."""

    def __init__(self, window: int = 1000):
        self.window = window
        self._lock = threading.Lock()
        self._counters: Dict[str, Dict[Tuple[Tuple[str, str], ...], float]] = {}
        self._summaries: Dict[str, Dict[Tuple[Tuple[str, str], ...], _Summary]] = {}
        self._help: Dict[str, str] = {}

    def describe(self, name: str, help_text: str):
        with self._lock:
            self._help[name] = help_text

    def increment(self, name: str, tags: Optional[Dict[str, str]] = None, value: float = 1):
        key = _tags_key(tags)
        with self._lock:
            series = self._counters.setdefault(name, {})
            series[key] = series.get(key, 0) + value

    def observe(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        key = _tags_key(tags)
        with self._lock:
            series = self._summaries.setdefault(name, {})
            summary = series.get(key)
            if summary is None:
                summary = series[key] = _Summary(self.window)
            summary.add(float(value))

    def start_timer(self, name: str, tags: Optional[Dict[str, str]] = None) -> Callable[[], float]:
        """Start timing; the returned callable records and returns elapsed seconds."""
        started = time.perf_counter()

        def stop() -> float:
            elapsed = time.perf_counter() - started
            self.observe(name, elapsed, tags)
            return elapsed

        return stop

    def counter_value(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._counters.get(name, {}).get(_tags_key(tags), 0)

    def summary_count(self, name: str, tags: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            summary = self._summaries.get(name, {}).get(_tags_key(tags))
            return summary.count if summary else 0

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            counters = {name: dict(series) for name, series in self._counters.items()}
            summaries = {
                name: {
                    key: (s.count, s.total, [(q, s.quantile(q)) for q in (0.5, 0.9, 0.99)])
                    for key, s in series.items()
                }
                for name, series in self._summaries.items()
            }
            help_text = dict(self._help)
        return {"counters": counters, "summaries": summaries, "help": help_text}


def _label_str(labels: Tuple[Tuple[str, str], ...], extra: Optional[Tuple[str, str]] = None) -> str:
    pairs = list(labels) + ([extra] if extra else [])
    if not pairs:
        return ""
    body = ",".join(f'{k}="{str(v)}"' for k, v in pairs)
    return "{" + body + "}"


def _process_lines(service: str) -> List[str]:
    now = time.time()
    cpu = os.times()
    return [
        "# HELP process_cpu_seconds_total Total user and system CPU time spent in seconds.",
        "# TYPE process_cpu_seconds_total counter",
        f"process_cpu_seconds_total {cpu.user + cpu.system}",
        "# HELP process_start_time_seconds Start time of the process since unix epoch in seconds.",
        "# TYPE process_start_time_seconds gauge",
        f"process_start_time_seconds {PROCESS_START_TIME}",
        "# HELP process_uptime_seconds Seconds since the process started.",
        "# TYPE process_uptime_seconds gauge",
        f"process_uptime_seconds {now - PROCESS_START_TIME}",
        "# HELP service_info Static service labels.",
        "# TYPE service_info gauge",
        f'service_info{{service="{service}"}} 1',
    ]


def expose_metrics(collector: MetricsCollector, service: str) -> str:
    """Return metrics in Prometheus text format"""
    snap = collector.snapshot()
    lines = _process_lines(service)

    for name in sorted(snap["counters"]):
        lines.append(f"# HELP {name} {snap['help'].get(name, name)}")
        lines.append(f"# TYPE {name} counter")
        for labels, value in sorted(snap["counters"][name].items()):
            lines.append(f"{name}{_label_str(labels)} {value}")

    for name in sorted(snap["summaries"]):
        lines.append(f"# HELP {name} {snap['help'].get(name, name)}")
        lines.append(f"# TYPE {name} summary")
        for labels, (count, total, quantiles) in sorted(snap["summaries"][name].items()):
            for q, value in quantiles:
                lines.append(f"{name}{_label_str(labels, ('quantile', str(q)))} {value}")
            lines.append(f"{name}_sum{_label_str(labels)} {total}")
            lines.append(f"{name}_count{_label_str(labels)} {count}")

    return "\n".join(lines) + "\n"


KNOWN_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
UNMATCHED_ROUTE = "unmatched"


def route_label(app, scope) -> str:
    """Route template serving the request, so label values stay bounded."""
    route = scope.get("route")
    if route is None:
        for candidate in app.router.routes:
            match, _ = candidate.matches(scope)
            if match in (Match.FULL, Match.PARTIAL):
                route = candidate
                break
    return getattr(route, "path", None) or UNMATCHED_ROUTE


def install_request_observability(app, logger: StructuredLogger, metrics: MetricsCollector):
    """Log and count every HTTP request handled by a FastAPI app."""

    @app.middleware("http")
    async def _observe_request(request, call_next):
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000.0
            method = request.method if request.method in KNOWN_METHODS else "OTHER"
            metrics.increment(
                "http_requests_total",
                {"method": method, "route": route_label(app, request.scope), "status": str(status)},
            )
            logger.debug(
                "request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": round(duration_ms, 1),
                },
            )

import logging

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


class Metrics:
    def __init__(self, enabled: bool = False) -> None:
        self._configure(enabled)

    def _configure(self, enabled: bool) -> None:
        self.enabled = enabled
        self.registry = CollectorRegistry(auto_describe=True)
        if not enabled:
            self.http_requests = None
            self.http_latency = None
            self.http_5xx = None
            self.schedule_operations = None
            self.schedule_conflicts = None
            self.slot_searches = None
            return

        self.http_requests = Counter(
            "http_requests_total",
            "HTTP requests by method, route and status code.",
            ["method", "path", "status_code"],
            registry=self.registry,
        )
        self.http_latency = Histogram(
            "http_request_latency_seconds",
            "HTTP request latency by method, route and status class.",
            ["method", "path", "status_class"],
            registry=self.registry,
        )
        self.http_5xx = Counter(
            "http_5xx_total",
            "HTTP 5xx responses by method and route.",
            ["method", "path"],
            registry=self.registry,
        )
        self.schedule_operations = Counter(
            "schedule_operations_total",
            "Schedule writes by operation.",
            ["operation"],
            registry=self.registry,
        )
        self.schedule_conflicts = Counter(
            "schedule_conflicts_total",
            "Conflict checks that found at least one overlapping item.",
            registry=self.registry,
        )
        self.slot_searches = Counter(
            "schedule_slot_searches_total",
            "Optimal slot searches by result.",
            ["result"],
            registry=self.registry,
        )

    def record_http_request(self, method: str, path: str, status_code: int) -> None:
        if not self.enabled or self.http_requests is None:
            return
        self.http_requests.labels(method=method, path=path, status_code=str(status_code)).inc()

    def record_http_latency(self, method: str, path: str, status_code: int, duration_seconds: float) -> None:
        if not self.enabled or self.http_latency is None:
            return
        status_class = f"{status_code // 100}xx" if status_code else "unknown"
        self.http_latency.labels(method=method, path=path, status_class=status_class).observe(
            max(0.0, float(duration_seconds))
        )

    def record_http_5xx(self, method: str, path: str) -> None:
        if not self.enabled or self.http_5xx is None:
            return
        self.http_5xx.labels(method=method, path=path).inc()

    def record_schedule_operation(self, operation: str, count: int = 1) -> None:
        if not self.enabled or self.schedule_operations is None:
            return
        if count <= 0:
            return
        self.schedule_operations.labels(operation=operation).inc(count)

    def record_schedule_conflict(self) -> None:
        if not self.enabled or self.schedule_conflicts is None:
            return
        self.schedule_conflicts.inc()

    def record_slot_search(self, found: bool) -> None:
        if not self.enabled or self.slot_searches is None:
            return
        self.slot_searches.labels(result="found" if found else "not_found").inc()

    def render(self) -> tuple[bytes, str]:
        if not self.enabled:
            return b"metrics_disabled 1\n", "text/plain; version=0.0.4"
        try:
            return generate_latest(self.registry), CONTENT_TYPE_LATEST
        except Exception:  # noqa: BLE001
            logger.exception("metrics_render_failed")
            return b"metrics_render_failed 1\n", "text/plain; version=0.0.4"


metrics = Metrics(enabled=False)


def configure_metrics(enabled: bool) -> Metrics:
    metrics._configure(enabled)
    return metrics

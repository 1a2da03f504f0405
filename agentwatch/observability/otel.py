"""OpenTelemetry + Prometheus fallback wiring for agentwatch."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from agentwatch import config

logger = logging.getLogger("agentwatch.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_poll_counter: Any | None = None
_poll_latency_hist: Any | None = None
_scan_counter: Any | None = None
_scan_latency_hist: Any | None = None
_parse_failure_counter: Any | None = None

_prom_enabled = False
_prom_poll_counter: Any | None = None
_prom_poll_latency_hist: Any | None = None
_prom_agents_gauge: Any | None = None
_prom_scan_counter: Any | None = None
_prom_scan_latency_hist: Any | None = None
_prom_parse_failure_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _poll_counter, _poll_latency_hist, _scan_counter, _scan_latency_hist, _parse_failure_counter
    global _prom_enabled, _prom_poll_counter, _prom_poll_latency_hist, _prom_agents_gauge
    global _prom_scan_counter, _prom_scan_latency_hist, _prom_parse_failure_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (AGENTWATCH_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "agentwatch"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "agentwatch",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("agentwatch")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("agentwatch")

    _poll_counter = meter.create_counter(
        "agentwatch_polls_total",
        unit="1",
        description="Count of completed monitor polls",
    )
    _poll_latency_hist = meter.create_histogram(
        "agentwatch_poll_latency_ms",
        unit="ms",
        description="Latency of a full monitor poll",
    )
    _scan_counter = meter.create_counter(
        "agentwatch_scan_observations_total",
        unit="1",
        description="Observations read per source scanner",
    )
    _scan_latency_hist = meter.create_histogram(
        "agentwatch_scan_latency_ms",
        unit="ms",
        description="Latency of one source scanner within a poll",
    )
    _parse_failure_counter = meter.create_counter(
        "agentwatch_parse_failures_total",
        unit="1",
        description="Count of skipped malformed files, rows or lines",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Gauge, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_poll_counter = Counter(
                "agentwatch_polls_total",
                "Count of completed monitor polls",
            )
            _prom_poll_latency_hist = Histogram(
                "agentwatch_poll_latency_ms",
                "Latency of a full monitor poll",
            )
            _prom_agents_gauge = Gauge(
                "agentwatch_agents",
                "Agents in the latest snapshot",
            )
            _prom_scan_counter = Counter(
                "agentwatch_scan_observations_total",
                "Observations read per source scanner",
                ["source", "result"],
            )
            _prom_scan_latency_hist = Histogram(
                "agentwatch_scan_latency_ms",
                "Latency of one source scanner within a poll",
                ["source", "result"],
            )
            _prom_parse_failure_counter = Counter(
                "agentwatch_parse_failures_total",
                "Count of skipped malformed files, rows or lines",
                ["source"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        pass
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception:
        pass
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception:
        pass
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_poll(duration_ms: float, agents: int) -> None:
    if _enabled and _poll_counter is not None:
        _poll_counter.add(1)
    if _enabled and _poll_latency_hist is not None:
        _poll_latency_hist.record(max(0.0, float(duration_ms)))
    if _prom_enabled and _prom_poll_counter is not None:
        _prom_poll_counter.inc()
    if _prom_enabled and _prom_poll_latency_hist is not None:
        _prom_poll_latency_hist.observe(max(0.0, float(duration_ms)))
    if _prom_enabled and _prom_agents_gauge is not None:
        _prom_agents_gauge.set(max(0, int(agents)))


def record_scan(source: str, result: str, duration_ms: float, observations: int = 0) -> None:
    labels = {"source": _label(source), "result": _label(result)}
    safe_count = max(0, int(observations))
    if _enabled and _scan_counter is not None and safe_count:
        _scan_counter.add(safe_count, labels)
    if _enabled and _scan_latency_hist is not None:
        _scan_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_scan_counter is not None and safe_count:
        _prom_scan_counter.labels(**labels).inc(safe_count)
    if _prom_enabled and _prom_scan_latency_hist is not None:
        _prom_scan_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))


def record_parse_failure(source: str) -> None:
    labels = {"source": _label(source)}
    if _enabled and _parse_failure_counter is not None:
        _parse_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parse_failure_counter is not None:
        _prom_parse_failure_counter.labels(**labels).inc()

"""
Per-cycle sanity metrics.

Two counters are emitted through OpenTelemetry:
- watchtower.sanity: one point per cycle, attribute ``ok``
- watchtower.sanity.failure: one point per reported failure, attributes
  ``test`` (the check kind) and ``err`` (the failure message)

Export goes to OTLP (gRPC, or HTTP when OTEL_EXPORTER_OTLP_PROTOCOL asks
for http/protobuf) when the endpoint accepts connections. Otherwise metrics
fall back to the console exporter if WATCHTOWER_FALLBACK_CONSOLE is set, or
are recorded without export.
"""

from __future__ import annotations

import atexit
import logging
import os
import socket
from typing import Any, Optional
from urllib.parse import urlparse

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource

from watchtower import __version__
from watchtower.constants import (
    OTEL_DEFAULT_GRPC_PORT,
    OTEL_DEFAULT_HTTP_PORT,
    OTEL_ENDPOINT_CHECK_TIMEOUT_S,
    OTEL_FLUSH_TIMEOUT_MS,
    MetricName,
)
from watchtower.models import CheckFailure

logger = logging.getLogger(__name__)

# Export mode tracking
METRICS_EXPORT_MODE_OTLP = "otlp"
METRICS_EXPORT_MODE_CONSOLE = "console"
METRICS_EXPORT_MODE_NONE = "none"

OTLP_PROTOCOL_GRPC = "grpc"
OTLP_PROTOCOL_HTTP = "http/protobuf"


def otlp_protocol() -> str:
    """
    Wire protocol for sanity metric export.

    OTEL_EXPORTER_OTLP_METRICS_PROTOCOL wins over OTEL_EXPORTER_OTLP_PROTOCOL.
    Unknown values are logged and ignored; the default is gRPC.
    """
    for key in ("OTEL_EXPORTER_OTLP_METRICS_PROTOCOL", "OTEL_EXPORTER_OTLP_PROTOCOL"):
        value = os.environ.get(key, "").strip()
        if value in (OTLP_PROTOCOL_GRPC, OTLP_PROTOCOL_HTTP):
            return value
        if value:
            logger.warning(f"Ignoring unsupported {key}={value!r}")
    return OTLP_PROTOCOL_GRPC


def create_otlp_exporter(endpoint: str, protocol: str = OTLP_PROTOCOL_GRPC):
    """Build the OTLP metric exporter that ships sanity counters to ``endpoint``."""
    if protocol == OTLP_PROTOCOL_HTTP:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
            OTLPMetricExporter as HttpMetricExporter,
        )
        url = endpoint if "://" in endpoint else f"http://{endpoint}"
        return HttpMetricExporter(endpoint=f"{url.rstrip('/')}/v1/metrics")

    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    return OTLPMetricExporter(endpoint=endpoint, insecure=True)


class WatchtowerTelemetry:
    """
    Emit sanity datapoints for each poll cycle.

    The provider is private to this instance (not set globally) so tests can
    attach an in-memory reader without touching process-wide OTel state.
    """

    def __init__(
        self,
        service_name: str = "watchtower",
        endpoint: Optional[str] = None,
        export_interval_ms: int = 60000,
        exporter: Optional[Any] = None,
        reader: Optional[MetricReader] = None,
    ):
        """
        Initialize the metrics provider.

        Args:
            service_name: OTel service name
            endpoint: OTLP endpoint (host:port); falls back to
                OTEL_EXPORTER_OTLP_ENDPOINT
            export_interval_ms: How often to export metrics
            exporter: Custom metric exporter (skips endpoint detection)
            reader: Custom metric reader, e.g. an InMemoryMetricReader
        """
        self._export_mode = METRICS_EXPORT_MODE_NONE
        self._shutdown_called = False

        resource = Resource.create({
            "service.name": service_name,
            "service.version": __version__,
            "host.name": socket.gethostname(),
        })

        if reader is None:
            if exporter is not None:
                reader = PeriodicExportingMetricReader(
                    exporter,
                    export_interval_millis=export_interval_ms,
                )
                self._export_mode = METRICS_EXPORT_MODE_OTLP
            else:
                reader = self._setup_default_reader(endpoint, export_interval_ms)

        self._provider = MeterProvider(resource=resource, metric_readers=[reader] if reader else [])
        self._meter = self._provider.get_meter("watchtower.telemetry")

        self._sanity = self._meter.create_counter(
            name=MetricName.SANITY.value,
            description="Poll cycles, labelled by overall health",
            unit="{cycles}",
        )
        self._sanity_failure = self._meter.create_counter(
            name=MetricName.SANITY_FAILURE.value,
            description="Reported sanity failures, labelled by check and error",
            unit="{failures}",
        )

        atexit.register(self._atexit_shutdown)

    @property
    def export_mode(self) -> str:
        """Current export mode: 'otlp', 'console', or 'none'."""
        return self._export_mode

    def record_cycle(self, ok: bool) -> None:
        self._sanity.add(1, {"ok": ok})

    def record_failure(self, failure: CheckFailure) -> None:
        self._sanity_failure.add(1, {"test": failure.kind.value, "err": failure.message})

    def shutdown(self) -> None:
        """
        Flush and shutdown the metrics provider.

        Safe to call multiple times.
        """
        if self._shutdown_called:
            return

        self._shutdown_called = True

        try:
            atexit.unregister(self._atexit_shutdown)
        except Exception:
            pass

        try:
            self._provider.force_flush(timeout_millis=OTEL_FLUSH_TIMEOUT_MS)
            self._provider.shutdown()
            logger.debug("WatchtowerTelemetry shutdown complete")
        except Exception as e:
            logger.warning(f"Error during telemetry shutdown: {e}")

    def _atexit_shutdown(self) -> None:
        """Shutdown handler called at process exit."""
        try:
            self._provider.force_flush(timeout_millis=OTEL_FLUSH_TIMEOUT_MS)
            self._provider.shutdown()
        except Exception as e:
            logger.debug(f"Error during telemetry atexit shutdown: {e}")

    def _check_endpoint_available(
        self,
        endpoint: str,
        default_port: int = OTEL_DEFAULT_GRPC_PORT,
        timeout: float = OTEL_ENDPOINT_CHECK_TIMEOUT_S,
    ) -> bool:
        """
        Check if OTLP endpoint is reachable.

        Args:
            endpoint: host:port string or URL
            default_port: Port used when the endpoint names none
            timeout: Connection timeout in seconds

        Returns:
            True if endpoint accepts connections
        """
        try:
            parsed = urlparse(endpoint if "://" in endpoint else f"//{endpoint}")
            host = parsed.hostname or "localhost"
            port = parsed.port or default_port

            with socket.create_connection((host, port), timeout=timeout):
                return True

        except (socket.timeout, ValueError, OSError) as e:
            logger.debug(f"OTLP metrics endpoint check failed: {e}")
            return False

    def _setup_default_reader(
        self, endpoint: Optional[str], export_interval_ms: int
    ) -> Optional[PeriodicExportingMetricReader]:
        """
        Set up default OTLP metric exporter with fallback handling.

        Checks endpoint availability first. Falls back to console exporter if
        WATCHTOWER_FALLBACK_CONSOLE is set and OTLP is unavailable.
        """
        protocol = otlp_protocol()
        default_port = (
            OTEL_DEFAULT_HTTP_PORT if protocol == OTLP_PROTOCOL_HTTP else OTEL_DEFAULT_GRPC_PORT
        )
        endpoint = endpoint or os.environ.get(
            "OTEL_EXPORTER_OTLP_ENDPOINT", f"localhost:{default_port}"
        )
        fallback_to_console = os.environ.get("WATCHTOWER_FALLBACK_CONSOLE", "").lower() in ("1", "true", "yes")

        if self._check_endpoint_available(endpoint, default_port):
            try:
                exporter = create_otlp_exporter(endpoint, protocol)
            except ImportError:
                logger.warning(f"OTLP {protocol} metric exporter not available")
                return None
            self._export_mode = METRICS_EXPORT_MODE_OTLP
            logger.info(f"Configured OTLP {protocol} metrics exporter to {endpoint}")
            return PeriodicExportingMetricReader(
                exporter,
                export_interval_millis=export_interval_ms,
            )

        logger.warning(
            f"OTLP metrics endpoint {endpoint} not reachable. "
            f"Metrics will not be exported."
        )
        if fallback_to_console:
            self._export_mode = METRICS_EXPORT_MODE_CONSOLE
            logger.info("Enabled console metrics exporter as fallback")
            return PeriodicExportingMetricReader(
                ConsoleMetricExporter(),
                export_interval_millis=export_interval_ms,
            )
        return None


class NullTelemetry:
    """Telemetry sink that drops every point (metrics disabled)."""

    export_mode = METRICS_EXPORT_MODE_NONE

    def record_cycle(self, ok: bool) -> None:
        pass

    def record_failure(self, failure: CheckFailure) -> None:
        pass

    def shutdown(self) -> None:
        pass

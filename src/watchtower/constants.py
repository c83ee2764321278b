"""
Timeout, threshold and telemetry name constants for Watchtower.

Centralizes values shared by the RPC client, evaluator and telemetry so
tuning happens in one place.
"""

from __future__ import annotations

from enum import Enum

# =============================================================================
# OTel Provider Timeouts
# =============================================================================

# Timeout for force_flush operations on the MeterProvider
OTEL_FLUSH_TIMEOUT_MS = 5000

# Timeout for checking if OTLP endpoint is reachable
OTEL_ENDPOINT_CHECK_TIMEOUT_S = 2.0

# Default OTLP gRPC port
OTEL_DEFAULT_GRPC_PORT = 4317

# Default OTLP HTTP/protobuf port
OTEL_DEFAULT_HTTP_PORT = 4318

# =============================================================================
# HTTP Client Timeouts
# =============================================================================

# Default timeout for JSON-RPC requests
RPC_CLIENT_TIMEOUT_S = 30.0

# Timeout for webhook deliveries (best-effort, fail fast)
NOTIFIER_TIMEOUT_S = 10.0

# =============================================================================
# Cluster Defaults
# =============================================================================

DEFAULT_JSON_RPC_URL = "http://127.0.0.1:8899"

DEFAULT_INTERVAL_S = 60

# Alert when current stake drops below this share of total stake
DEFAULT_STAKE_THRESHOLD_PERCENT = 80

# Alert when a watched validator identity holds less than this many SOL
DEFAULT_MIN_BALANCE_SOL = 1.0

LAMPORTS_PER_SOL = 1_000_000_000

# Base58 text of the all-zero 32-byte hash
DEFAULT_BLOCKHASH = "11111111111111111111111111111111"

ALL_CLEAR_MESSAGE = "All clear"


class MetricName(str, Enum):
    """Canonical metric names emitted once per poll cycle."""

    SANITY = "watchtower.sanity"  # Counter: one point per cycle, attr ok
    SANITY_FAILURE = "watchtower.sanity.failure"  # Counter: attrs test, err

"""
Watchtower - Cluster health monitor with deduplicated alerting.

Periodically samples a validator cluster over JSON-RPC, runs a fixed set of
sanity checks against the snapshot and raises or clears an alert through the
configured notification channels.

Checks (in order):
- Transaction count is advancing
- Recent blockhash is rotating
- Active stake stays above a threshold (optional)
- Watched validators are neither delinquent nor missing, and funded

Example usage:
    from watchtower import ClusterRpcClient, Poller, build_poller
    from watchtower.config import get_config

    config = get_config(json_rpc_url="http://127.0.0.1:8899")
    with ClusterRpcClient(config.json_rpc_url) as client:
        poller = build_poller(config, client)
        poller.run()
"""

__version__ = "0.1.0"
__all__ = [
    "AlertStateTracker",
    "ClusterRpcClient",
    "HealthEvaluator",
    "Notifier",
    "Poller",
    "WatchtowerTelemetry",
    "build_poller",
    "__version__",
]


# Lazy imports to avoid loading heavy dependencies at import time
def __getattr__(name: str):
    if name == "AlertStateTracker":
        from watchtower.alerting import AlertStateTracker
        return AlertStateTracker
    if name == "ClusterRpcClient":
        from watchtower.rpc import ClusterRpcClient
        return ClusterRpcClient
    if name == "HealthEvaluator":
        from watchtower.evaluator import HealthEvaluator
        return HealthEvaluator
    if name == "Notifier":
        from watchtower.notifier import Notifier
        return Notifier
    if name == "Poller":
        from watchtower.poller import Poller
        return Poller
    if name == "build_poller":
        from watchtower.poller import build_poller
        return build_poller
    if name == "WatchtowerTelemetry":
        from watchtower.telemetry import WatchtowerTelemetry
        return WatchtowerTelemetry
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

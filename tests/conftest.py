"""
Pytest configuration and fixtures for Watchtower tests.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest

from watchtower.config import WatchtowerConfig, reset_config
from watchtower.models import CheckFailure, ClusterSnapshot, VoteAccount


VALIDATOR_A = "7Np41oeYqPefeNQEHSv1UDhYrehxin3NStELsSKCT4K2"
VALIDATOR_B = "GdnSyH3YtwcxFvQrVVJMm1JhTS4QVX7MFsX56uJLUfiZ"
VALIDATOR_C = "9QxCLckBiJc783jnMvXZubK4wH86Eqqvashtrwvcsgkv"

BLOCKHASH_1 = "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N"
BLOCKHASH_2 = "4sGjMW1sUnHzSxGspuhpqLDx6wiyjNtZAMdL4VZHirAn"

_ENV_VARS = (
    "WATCHTOWER_JSON_RPC_URL",
    "WATCHTOWER_INTERVAL_SECONDS",
    "WATCHTOWER_VALIDATOR_IDENTITIES",
    "WATCHTOWER_NO_DUPLICATE_NOTIFICATIONS",
    "WATCHTOWER_MONITOR_ACTIVE_STAKE",
    "WATCHTOWER_STAKE_THRESHOLD_PERCENT",
    "WATCHTOWER_MIN_BALANCE_SOL",
    "WATCHTOWER_METRICS_ENABLED",
    "WATCHTOWER_LOG_LEVEL",
    "WATCHTOWER_LOG_FORMAT",
    "WATCHTOWER_FALLBACK_CONSOLE",
    "WATCHTOWER_SLACK_WEBHOOK",
    "WATCHTOWER_DISCORD_WEBHOOK",
    "WATCHTOWER_TELEGRAM_BOT_TOKEN",
    "WATCHTOWER_TELEGRAM_CHAT_ID",
    "SLACK_WEBHOOK",
    "DISCORD_WEBHOOK",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate each test from the host environment and CLI config file."""
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(
        "watchtower.config.DEFAULT_CLI_CONFIG_FILE",
        str(tmp_path / "no-such-config.yml"),
    )
    reset_config()
    yield
    reset_config()
    package_logger = logging.getLogger("watchtower")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


# ============================================================================
# Model Fixtures
# ============================================================================


@pytest.fixture
def make_snapshot() -> Callable[..., ClusterSnapshot]:
    """Factory for snapshots; validators are (identity, stake) pairs."""

    def _make(
        transaction_count: int = 100,
        blockhash: str = BLOCKHASH_1,
        current: Iterable[Tuple[str, int]] = ((VALIDATOR_A, 100),),
        delinquent: Iterable[Tuple[str, int]] = (),
    ) -> ClusterSnapshot:
        return ClusterSnapshot(
            transaction_count=transaction_count,
            recent_blockhash=blockhash,
            current_validators=tuple(
                VoteAccount(identity=i, activated_stake=s) for i, s in current
            ),
            delinquent_validators=tuple(
                VoteAccount(identity=i, activated_stake=s) for i, s in delinquent
            ),
        )

    return _make


@pytest.fixture
def config() -> WatchtowerConfig:
    """Whole-cluster config with metrics disabled."""
    return WatchtowerConfig(metrics_enabled=False)


# ============================================================================
# Collaborator Fakes
# ============================================================================


class FakeClusterClient:
    """Serves queued snapshots (or raises queued errors) and fixed balances."""

    def __init__(self, snapshots: Iterable = (), balances: Optional[Dict[str, object]] = None):
        self.snapshots: List = list(snapshots)
        self.balances = balances or {}
        self.balance_calls: List[str] = []

    def fetch_snapshot(self) -> ClusterSnapshot:
        item = self.snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get_balance_sol(self, identity: str) -> float:
        self.balance_calls.append(identity)
        value = self.balances.get(identity, 10.0)
        if isinstance(value, Exception):
            raise value
        return value


class RecordingNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def send(self, message: str) -> None:
        self.messages.append(message)


class RecordingTelemetry:
    def __init__(self):
        self.cycles: List[bool] = []
        self.failures: List[CheckFailure] = []
        self.shutdown_called = False

    def record_cycle(self, ok: bool) -> None:
        self.cycles.append(ok)

    def record_failure(self, failure: CheckFailure) -> None:
        self.failures.append(failure)

    def shutdown(self) -> None:
        self.shutdown_called = True


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()

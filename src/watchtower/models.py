"""
Data model for cluster snapshots, check failures and monitor state.

``VoteAccount`` and ``ClusterSnapshot`` are parsed from JSON-RPC responses
and frozen once read. ``MonitorState`` is the only mutable record; the
poller owns it and hands it to the evaluator and alert tracker each cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from watchtower.constants import DEFAULT_BLOCKHASH


class CheckKind(str, Enum):
    """Stable tag for each sanity check, used in messages and telemetry."""

    TRANSACTION_COUNT = "transaction-count"
    RECENT_BLOCKHASH = "recent-blockhash"
    CURRENT_STAKE = "current-stake"
    DELINQUENT = "delinquent"
    BALANCE = "balance"
    RPC = "rpc"


class VoteAccount(BaseModel):
    """A validator entry from ``getVoteAccounts``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    identity: str = Field(..., alias="nodePubkey", min_length=1)
    activated_stake: int = Field(0, alias="activatedStake", ge=0, strict=True)


class ClusterSnapshot(BaseModel):
    """One point-in-time read of the cluster's health signals."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transaction_count: int = Field(..., ge=0)
    recent_blockhash: str
    current_validators: tuple[VoteAccount, ...] = ()
    delinquent_validators: tuple[VoteAccount, ...] = ()

    @property
    def current_stake(self) -> int:
        return sum(v.activated_stake for v in self.current_validators)

    @property
    def delinquent_stake(self) -> int:
        return sum(v.activated_stake for v in self.delinquent_validators)

    @property
    def total_stake(self) -> int:
        return self.current_stake + self.delinquent_stake

    def is_current(self, identity: str) -> bool:
        return any(v.identity == identity for v in self.current_validators)

    def is_delinquent(self, identity: str) -> bool:
        return any(v.identity == identity for v in self.delinquent_validators)


class CheckFailure(BaseModel):
    """Outcome of a failed check. A value, never raised."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: CheckKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class AlertDecision(BaseModel):
    """Whether this cycle notifies, and with which message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    should_notify: bool
    message: str = ""


@dataclass
class MonitorState:
    """
    Counters carried between cycles.

    Lives for the process lifetime and is never persisted. An empty
    ``last_notification_message`` means the alert stream is clear.
    """

    last_transaction_count: int = 0
    last_blockhash: str = DEFAULT_BLOCKHASH
    last_notification_message: str = ""

    @property
    def alerting(self) -> bool:
        return self.last_notification_message != ""


@dataclass
class CycleOutcome:
    """Result of a single poll cycle."""

    failures: list[CheckFailure] = field(default_factory=list)
    reported: Optional[CheckFailure] = None
    decision: Optional[AlertDecision] = None

    @property
    def ok(self) -> bool:
        return self.reported is None

"""
Sanity checks over a cluster snapshot.

``HealthEvaluator`` turns a snapshot plus the previous cycle's counters into
an ordered list of ``CheckFailure`` values. Checks always run in the same
order, which is also the tie-break when only one failure is reported:

1. transaction-count  - the transaction count must advance
2. recent-blockhash   - the recent blockhash must rotate
3. current-stake      - current stake share must reach the threshold
                        (only with ``monitor_active_stake``)
4. delinquent/balance - the whole cluster, or each watched identity, must be
                        current; watched identities must be funded

The evaluator never mutates ``MonitorState``. The caller applies
``advance()`` after evaluating so the counters only ratchet forward on a
passing check.

Usage:
    evaluator = HealthEvaluator(config, balance_lookup=client.get_balance_sol)
    failures = evaluator.evaluate(snapshot, state)
    evaluator.advance(snapshot, state)
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from watchtower.config import WatchtowerConfig
from watchtower.errors import BalanceLookupError
from watchtower.models import CheckFailure, CheckKind, ClusterSnapshot, MonitorState
from watchtower.rpc import lamports_to_sol

logger = logging.getLogger(__name__)

BalanceLookup = Callable[[str], float]


def stake_percent(current_stake: int, total_stake: int) -> Optional[int]:
    """Integer share of current stake, or None when there is no stake at all."""
    if total_stake <= 0:
        return None
    return current_stake * 100 // total_stake


class HealthEvaluator:
    """Run the fixed sequence of sanity checks against a snapshot."""

    def __init__(self, config: WatchtowerConfig, balance_lookup: BalanceLookup):
        """
        Args:
            config: Monitor configuration (identities, thresholds, toggles)
            balance_lookup: Returns an identity's balance in SOL; may raise
                ``BalanceLookupError``
        """
        self.config = config
        self._balance_lookup = balance_lookup

    def evaluate(self, snapshot: ClusterSnapshot, state: MonitorState) -> List[CheckFailure]:
        """Return every failing check in check order."""
        self._log_cluster_info(snapshot)

        failures: List[CheckFailure] = []
        failures.extend(self._check_transaction_count(snapshot, state))
        failures.extend(self._check_blockhash(snapshot, state))
        if self.config.monitor_active_stake:
            failures.extend(self._check_stake(snapshot))
        failures.extend(self._check_validators(snapshot))

        for failure in failures:
            logger.error(f"{failure.kind.value} sanity failure: {failure.message}")
        return failures

    def advance(self, snapshot: ClusterSnapshot, state: MonitorState) -> None:
        """Ratchet the counters for every check that passed."""
        if snapshot.transaction_count > state.last_transaction_count:
            state.last_transaction_count = snapshot.transaction_count
        if snapshot.recent_blockhash != state.last_blockhash:
            state.last_blockhash = snapshot.recent_blockhash

    def _log_cluster_info(self, snapshot: ClusterSnapshot) -> None:
        logger.info(f"Current transaction count: {snapshot.transaction_count}")
        logger.info(f"Recent blockhash: {snapshot.recent_blockhash}")
        logger.info(f"Current validator count: {len(snapshot.current_validators)}")
        logger.info(f"Delinquent validator count: {len(snapshot.delinquent_validators)}")

        percent = stake_percent(snapshot.current_stake, snapshot.total_stake)
        logger.info(
            f"Current stake: {percent if percent is not None else '-'}% | "
            f"Total stake: {lamports_to_sol(snapshot.total_stake)} SOL, "
            f"current stake: {lamports_to_sol(snapshot.current_stake)} SOL, "
            f"delinquent: {lamports_to_sol(snapshot.delinquent_stake)} SOL"
        )

    def _check_transaction_count(
        self, snapshot: ClusterSnapshot, state: MonitorState
    ) -> List[CheckFailure]:
        if snapshot.transaction_count > state.last_transaction_count:
            return []
        return [
            CheckFailure(
                kind=CheckKind.TRANSACTION_COUNT,
                message=(
                    f"Transaction count is not advancing: "
                    f"{snapshot.transaction_count} <= {state.last_transaction_count}"
                ),
            )
        ]

    def _check_blockhash(
        self, snapshot: ClusterSnapshot, state: MonitorState
    ) -> List[CheckFailure]:
        if snapshot.recent_blockhash != state.last_blockhash:
            return []
        return [
            CheckFailure(
                kind=CheckKind.RECENT_BLOCKHASH,
                message=f"Unable to get new blockhash: {snapshot.recent_blockhash}",
            )
        ]

    def _check_stake(self, snapshot: ClusterSnapshot) -> List[CheckFailure]:
        percent = stake_percent(snapshot.current_stake, snapshot.total_stake)
        if percent is None:
            logger.warning("Total stake is zero, skipping current stake check")
            return []
        if percent >= self.config.stake_threshold_percent:
            return []
        return [
            CheckFailure(
                kind=CheckKind.CURRENT_STAKE,
                message=f"Current stake is {percent}%",
            )
        ]

    def _check_validators(self, snapshot: ClusterSnapshot) -> List[CheckFailure]:
        identities = self.config.validator_identities
        if not identities:
            if not snapshot.delinquent_validators:
                return []
            return [
                CheckFailure(
                    kind=CheckKind.DELINQUENT,
                    message=f"{len(snapshot.delinquent_validators)} delinquent validators",
                )
            ]

        failures: List[CheckFailure] = []
        errors: List[str] = []
        for identity in identities:
            if snapshot.is_delinquent(identity):
                errors.append(f"{identity} delinquent")
            elif not snapshot.is_current(identity):
                errors.append(f"{identity} missing")

            balance_failure = self._check_balance(identity)
            if balance_failure is not None:
                failures.append(balance_failure)

        if errors:
            failures.append(CheckFailure(kind=CheckKind.DELINQUENT, message=",".join(errors)))
        return failures

    def _check_balance(self, identity: str) -> Optional[CheckFailure]:
        try:
            balance = self._balance_lookup(identity)
        except BalanceLookupError as e:
            logger.warning(str(e))
            return None

        if balance < self.config.min_balance_sol:
            return CheckFailure(
                kind=CheckKind.BALANCE,
                message=f"{identity} has {balance} SOL",
            )
        return None

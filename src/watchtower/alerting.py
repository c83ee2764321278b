"""
Alert state machine with notification deduplication.

The alert stream is either CLEAR (no stored message) or FIRING (the last
failure message is stored). Transitions:

- CLEAR  -> FIRING: always notify
- FIRING -> FIRING: notify unless dedup is on and the message is unchanged
- FIRING -> CLEAR:  notify "All clear"
- CLEAR  -> CLEAR:  silent
"""

from __future__ import annotations

import logging
from typing import Optional

from watchtower.constants import ALL_CLEAR_MESSAGE
from watchtower.models import AlertDecision, CheckFailure, MonitorState

logger = logging.getLogger(__name__)


def format_failure_message(failure: CheckFailure) -> str:
    return f"Error: {failure.kind.value}: {failure.message}"


class AlertStateTracker:
    """Decide whether a cycle's outcome should be notified."""

    def __init__(self, dedup_enabled: bool = False):
        self.dedup_enabled = dedup_enabled

    def reconcile(self, failure: Optional[CheckFailure], state: MonitorState) -> AlertDecision:
        """
        Compare this cycle's failure against the stored message.

        Always records the new alert state in
        ``state.last_notification_message``.

        Args:
            failure: The single failure reported this cycle, if any
            state: Monitor state owned by the poller

        Returns:
            AlertDecision with the message to deliver
        """
        if failure is not None:
            message = format_failure_message(failure)
            should_notify = (
                not self.dedup_enabled or message != state.last_notification_message
            )
            if not should_notify:
                logger.debug(f"Suppressing duplicate notification: {message}")
            state.last_notification_message = message
            return AlertDecision(should_notify=should_notify, message=message)

        was_alerting = state.alerting
        state.last_notification_message = ""
        if was_alerting:
            logger.info(ALL_CLEAR_MESSAGE)
            return AlertDecision(should_notify=True, message=ALL_CLEAR_MESSAGE)
        return AlertDecision(should_notify=False, message="")

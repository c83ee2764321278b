"""Read-only JSON-RPC client for the monitored cluster."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from watchtower.constants import LAMPORTS_PER_SOL, RPC_CLIENT_TIMEOUT_S
from watchtower.errors import BalanceLookupError, TransportError
from watchtower.models import ClusterSnapshot, VoteAccount

__all__ = ["ClusterRpcClient", "lamports_to_sol"]

logger = logging.getLogger(__name__)


def lamports_to_sol(lamports: int) -> float:
    """Convert lamports to SOL."""
    return lamports / LAMPORTS_PER_SOL


class ClusterRpcClient:
    """Client for querying cluster health over JSON-RPC 2.0.

    Every query raises ``TransportError`` on HTTP, decoding or JSON-RPC
    errors so the poller can report a single ``rpc`` failure for the cycle.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = RPC_CLIENT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout_seconds
        self._transport = transport
        self._http: Optional[httpx.Client] = None
        self._request_counter = 0

    def __enter__(self) -> "ClusterRpcClient":
        self._get_client()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        if self._http:
            self._http.close()
            self._http = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client instance."""
        if self._http is None:
            self._http = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._http

    def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        self._request_counter += 1
        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_counter,
            "method": method,
        }
        if params:
            payload["params"] = params
        logger.debug(f"JSON-RPC request {method} to {self.url}")

        try:
            response = self._get_client().post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            raise TransportError(method, str(e)) from e
        except ValueError as e:
            raise TransportError(method, f"invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise TransportError(method, "malformed JSON-RPC response")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise TransportError(
                    method, f"RPC error {error.get('code')}: {error.get('message')}"
                )
            raise TransportError(method, str(error))

        if "result" not in data:
            raise TransportError(method, "response has no result")
        return data["result"]

    def get_transaction_count(self) -> int:
        result = self._call("getTransactionCount")
        if not isinstance(result, int) or isinstance(result, bool):
            raise TransportError("getTransactionCount", f"unexpected result: {result!r}")
        return result

    def get_recent_blockhash(self) -> str:
        result = self._call("getRecentBlockhash")
        try:
            return str(result["value"]["blockhash"])
        except (KeyError, TypeError) as e:
            raise TransportError("getRecentBlockhash", f"unexpected result: {result!r}") from e

    def get_vote_accounts(self) -> Tuple[List[VoteAccount], List[VoteAccount]]:
        """Return the (current, delinquent) vote accounts."""
        result = self._call("getVoteAccounts")
        try:
            current = [VoteAccount.model_validate(v) for v in result["current"]]
            delinquent = [VoteAccount.model_validate(v) for v in result["delinquent"]]
        except (KeyError, TypeError, ValidationError) as e:
            raise TransportError("getVoteAccounts", f"unexpected result: {e}") from e
        return current, delinquent

    def get_balance(self, identity: str) -> int:
        """Return the balance of an account in lamports."""
        result = self._call("getBalance", [identity])
        value = result.get("value") if isinstance(result, dict) else result
        if not isinstance(value, int) or isinstance(value, bool):
            raise TransportError("getBalance", f"unexpected result: {result!r}")
        return value

    def get_balance_sol(self, identity: str) -> float:
        """
        Return the balance of a validator identity in SOL.

        Raises:
            BalanceLookupError: If the lookup fails for any transport reason
        """
        try:
            return lamports_to_sol(self.get_balance(identity))
        except TransportError as e:
            raise BalanceLookupError(identity, e.message) from e

    def fetch_snapshot(self) -> ClusterSnapshot:
        """Query transaction count, blockhash and vote accounts in one pass."""
        transaction_count = self.get_transaction_count()
        recent_blockhash = self.get_recent_blockhash()
        current, delinquent = self.get_vote_accounts()
        try:
            return ClusterSnapshot(
                transaction_count=transaction_count,
                recent_blockhash=recent_blockhash,
                current_validators=tuple(current),
                delinquent_validators=tuple(delinquent),
            )
        except ValidationError as e:
            raise TransportError("getTransactionCount", f"invalid snapshot: {e}") from e

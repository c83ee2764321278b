"""Error types raised by the RPC collaborators."""

from __future__ import annotations

__all__ = ["WatchtowerError", "TransportError", "BalanceLookupError"]


class WatchtowerError(Exception):
    """Base class for Watchtower errors."""


class TransportError(WatchtowerError):
    """A cluster query failed; the whole cycle reports an ``rpc`` failure."""

    def __init__(self, method: str, message: str):
        self.method = method
        self.message = message
        super().__init__(f"{method}: {message}")


class BalanceLookupError(WatchtowerError):
    """Balance of a watched identity could not be fetched. Never escalated."""

    def __init__(self, identity: str, message: str):
        self.identity = identity
        self.message = message
        super().__init__(f"Failed to get balance of {identity}: {message}")

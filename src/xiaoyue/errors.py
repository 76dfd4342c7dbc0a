"""Error taxonomy shared by the store, chain, AI and HTTP layers."""

from __future__ import annotations


class XiaoyueError(Exception):
    """Base class for every expected failure the backend can report."""


class ValidationError(XiaoyueError):
    """Malformed or missing input (empty prompt, non-UUID session id, ...)."""


class SessionNotFound(XiaoyueError):
    def __init__(self, session_id: str):
        super().__init__("Session not found")
        self.session_id = session_id


class GateBlocked(XiaoyueError):
    """The free tier is exhausted and no wallet is bound.

    This is a user-actionable outcome rather than a fault: the HTTP layer
    turns it into ``403 {requireWallet: true, message}``.
    """

    def __init__(self, message: str, user_message_count: int):
        super().__init__(message)
        self.message = message
        self.user_message_count = user_message_count


class UpstreamUnavailable(XiaoyueError):
    """A chain RPC or language-model call failed or timed out."""


class InvalidMintOrRpcFailure(UpstreamUnavailable):
    def __init__(self, mint: str, reason: str):
        super().__init__(f"Invalid token mint or RPC failure: {reason}")
        self.mint = mint
        self.reason = reason


class CompletionUnavailable(UpstreamUnavailable):
    """Model invocation failed or returned a malformed response."""


class StorageUnavailable(XiaoyueError):
    """The relational store could not complete a read or write."""

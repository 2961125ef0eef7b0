"""
Exception hierarchy for the privacy pool SDK.

    ValidationError   caller's fault, fix the input before retrying
    NotFoundError     commitment not indexed yet, retry after a delay
    ConnectivityError RPC or coordinator unreachable
    IntegrityFailure  AE hint or ciphertext failed authentication
"""

from __future__ import annotations


class PrivacyPoolError(Exception):
    """Base class for all obelysk_privacy errors."""
    pass


class ValidationError(PrivacyPoolError, ValueError):
    """Raised on malformed input: out-of-range index, bad proof shape, bad felt."""
    pass


class NotFoundError(PrivacyPoolError):
    """Raised when a commitment is not (yet) present in the deposit tree."""
    pass


class ConnectivityError(PrivacyPoolError):
    """Raised when a remote endpoint cannot be reached or times out."""
    pass


class StarknetRpcError(PrivacyPoolError):
    """Raised when the Starknet node answers with a JSON-RPC error."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"RPC error ({method}): {message}")


class IntegrityFailure(PrivacyPoolError):
    """
    Raised when an AE hint MAC or a ciphertext consistency check fails.

    This is never a soft miss: it means the hint was corrupted, tampered with,
    or built for a different key.
    """
    pass


class DecryptionError(PrivacyPoolError):
    """Raised when bounded discrete-log decryption finds no matching amount."""
    pass

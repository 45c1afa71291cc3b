"""
Smart Session error types.

Codec errors (unknown mode, unsupported account type, malformed bytes) mean
the caller and the on-chain validator disagree on the wire format and are
always raised. Chain read errors are raised for single reads only; batched
entitlement reads fold per-item failures into zero/false defaults.
"""

from typing import Any, Dict, Optional


class SmartSessionError(Exception):
    """Base exception for Smart Session errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidConfiguration(SmartSessionError):
    """Unknown policy type, module type, or missing validator data."""
    pass


class UnsupportedAccountType(SmartSessionError):
    """Signature formatting requested for an unknown account type."""

    def __init__(self, account_type: Any):
        super().__init__(
            f"Unsupported account type: {account_type}",
            details={"account_type": str(account_type)},
        )
        self.account_type = account_type


class InvalidEnableSignature(SmartSessionError):
    """permissionEnableSig does not carry the tag byte the account type requires."""
    pass


class UnknownSignatureMode(SmartSessionError):
    """Unrecognized mode discriminant byte."""

    def __init__(self, mode: Any):
        super().__init__(f"Unknown mode {mode}", details={"mode": str(mode)})
        self.mode = mode


class MalformedSignature(SmartSessionError):
    """Signature bytes are truncated or cannot be decompressed/decoded."""
    pass


class ChainQueryFailure(SmartSessionError):
    """A single read-only contract call failed."""

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        function_name: Optional[str] = None,
    ):
        super().__init__(
            message,
            details={"chain_id": chain_id, "function": function_name},
        )
        self.chain_id = chain_id
        self.function_name = function_name


class MissingClientForChain(SmartSessionError):
    """No chain reader available for a chain referenced by a session."""

    def __init__(self, chain_id: int):
        super().__init__(
            f"Client not found for chainId {chain_id}",
            details={"chain_id": chain_id},
        )
        self.chain_id = chain_id

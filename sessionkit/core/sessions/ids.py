"""
Deterministic identifiers shared with the Smart Sessions contracts.

Each derivation must match the contract byte for byte: the permission id is
the primary key for every later lookup or mutation of a session.
"""

from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak, to_canonical_address

from .models import Session, as_bytes


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 over a canonical function signature."""
    return keccak(text=signature)[:4]


def permission_id(session: Session) -> bytes:
    """
    keccak256(abi.encode(sessionValidator, sessionValidatorInitData, salt)).

    Actions, policies and chain id do not participate, so the same logical
    permission can be re-enabled with different action sets on other chains.
    """
    return keccak(
        encode(
            ["address", "bytes", "bytes32"],
            [
                session.session_validator,
                session.session_validator_init_data,
                session.salt,
            ],
        )
    )


def action_id(target: str, selector: bytes) -> bytes:
    """keccak256(abi.encodePacked(address target, bytes4 selector))."""
    selector = as_bytes(selector)
    if len(selector) != 4:
        raise ValueError(f"Function selector must be 4 bytes, got {len(selector)}")
    return keccak(to_canonical_address(target) + selector)


def config_id(permission_id: bytes, action_id: bytes, account: str) -> bytes:
    """Key a policy contract stores per (account, permission, action) state under."""
    return keccak(
        to_canonical_address(account) + as_bytes(permission_id) + as_bytes(action_id)
    )

"""
Policy and validator init-data encoding.

These produce the init-data layouts the ownable validator, spend-limit
policy and sudo policy contracts expect. Policy addresses come from the
versioned constants table.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from .constants import ProtocolConstants
from .models import PolicyData, TokenLimit


def encode_validation_data(threshold: int, owners: Sequence[str]) -> bytes:
    """
    Ownable validator init data: abi.encode(uint256 threshold, address[] owners).

    Owners are sorted ascending (case-insensitive). The validator keeps them in
    a sorted set and rejects unsorted input, so the sort is not optional.
    """
    if threshold < 1:
        raise ValueError("Threshold must be at least 1")
    if threshold > len(owners):
        raise ValueError("Threshold cannot exceed the number of owners")

    sorted_owners = sorted(
        (to_checksum_address(owner) for owner in owners),
        key=lambda owner: owner.lower(),
    )
    return encode(["uint256", "address[]"], [threshold, sorted_owners])


def decode_validation_data(data: bytes) -> Tuple[int, List[str]]:
    threshold, owners = decode(["uint256", "address[]"], data)
    return threshold, [to_checksum_address(owner) for owner in owners]


def spend_limit_policy_data(
    entries: Iterable[TokenLimit],
    constants: ProtocolConstants,
) -> PolicyData:
    """
    Spending limits policy config: abi.encode(address[] tokens, uint256[] limits).

    The policy zips the two arrays positionally, so input order is kept.
    """
    entries = list(entries)
    tokens = [to_checksum_address(entry.token) for entry in entries]
    limits = [int(entry.amount) for entry in entries]
    if any(limit < 0 for limit in limits):
        raise ValueError("Spending limits must be non-negative")

    return PolicyData(
        policy=constants.policies.spend_limit_policy,
        init_data=encode(["address[]", "uint256[]"], [tokens, limits]),
    )


def decode_spend_limit_init_data(data: bytes) -> List[TokenLimit]:
    tokens, limits = decode(["address[]", "uint256[]"], data)
    return [
        TokenLimit(token=to_checksum_address(token), amount=limit)
        for token, limit in zip(tokens, limits)
    ]


def sudo_policy_data(constants: ProtocolConstants) -> PolicyData:
    """The sudo policy is parameterless: it permits every call it guards."""
    return PolicyData(policy=constants.policies.sudo_policy, init_data=b"")

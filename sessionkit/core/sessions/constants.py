"""
Versioned contract addresses and protocol constants.

Each protocol version pins the validator, policy and Smart Sessions module
deployments a delegated account talks to. The table is immutable; components
receive the resolved ``ProtocolConstants`` for an explicit version instead of
reaching for a process-wide default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Union

from eth_utils import to_checksum_address


class ProtocolVersion(str, Enum):
    """Deployed contract sets, oldest first."""
    V1_0_0 = "1.0.0"
    V1_1_0 = "1.1.0"
    V1_2_0 = "1.2.0"


def _checksum_fields(obj: object, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, to_checksum_address(getattr(obj, name)))


@dataclass(frozen=True)
class ValidatorAddresses:
    ownable_validator: str
    webauthn_validator: str
    webauthn_session_validator: str

    def __post_init__(self) -> None:
        _checksum_fields(
            self, "ownable_validator", "webauthn_validator", "webauthn_session_validator"
        )


@dataclass(frozen=True)
class PolicyAddresses:
    spend_limit_policy: str
    sudo_policy: str

    def __post_init__(self) -> None:
        _checksum_fields(self, "spend_limit_policy", "sudo_policy")


@dataclass(frozen=True)
class ProtocolConstants:
    """Contract addresses for one protocol version."""
    version: ProtocolVersion
    safe4337_module_address: str
    erc7579_launchpad_address: str
    safe_singleton_address: str
    attesters: Tuple[str, ...]
    attesters_threshold: int
    validators: ValidatorAddresses
    policies: PolicyAddresses
    smart_sessions: str
    default_safe_signer_address: str

    def __post_init__(self) -> None:
        _checksum_fields(
            self,
            "safe4337_module_address",
            "erc7579_launchpad_address",
            "safe_singleton_address",
            "smart_sessions",
            "default_safe_signer_address",
        )
        object.__setattr__(
            self, "attesters", tuple(to_checksum_address(a) for a in self.attesters)
        )


_ATTESTERS = (
    "0x000000333034E9f539ce08819E12c1b8Cb29084d",  # Rhinestone attester
    "0xC9e29745a752B551a7FCD19Afe50EcCEf5fd7d02",  # Brewit attester
)

_POLICIES = PolicyAddresses(
    spend_limit_policy="0x6d12b354080557a9e74db3c0e2e0c26607597a08",
    sudo_policy="0x0000003111cD8e92337C100F22B7A9dbf8DEE301",
)

PROTOCOL_CONSTANTS: Dict[ProtocolVersion, ProtocolConstants] = {
    ProtocolVersion.V1_0_0: ProtocolConstants(
        version=ProtocolVersion.V1_0_0,
        safe4337_module_address="0x7579EE8307284F293B1927136486880611F20002",
        erc7579_launchpad_address="0x7579011aB74c46090561ea277Ba79D510c6C00ff",
        safe_singleton_address="0x29fcB43b46531BcA003ddC8FCB67FFE91900C762",
        attesters=_ATTESTERS,
        attesters_threshold=1,
        validators=ValidatorAddresses(
            ownable_validator="0x2483DA3A338895199E5e538530213157e931Bf06",
            webauthn_validator="0x2f167e55d42584f65e2e30a748f41ee75a311414",
            webauthn_session_validator="0x4853727f59C3C161a58E153E2B0F9F683EcFB9Df",
        ),
        policies=_POLICIES,
        smart_sessions="0x00000000002B0eCfbD0496EE71e01257dA0E37DE",
        default_safe_signer_address="0x000000000000000000000000000000000000dEaD",
    ),
    ProtocolVersion.V1_1_0: ProtocolConstants(
        version=ProtocolVersion.V1_1_0,
        safe4337_module_address="0x7579EE8307284F293B1927136486880611F20002",
        erc7579_launchpad_address="0x7579011aB74c46090561ea277Ba79D510c6C00ff",
        safe_singleton_address="0x29fcB43b46531BcA003ddC8FCB67FFE91900C762",
        attesters=_ATTESTERS,
        attesters_threshold=1,
        validators=ValidatorAddresses(
            ownable_validator="0x2483DA3A338895199E5e538530213157e931Bf06",
            webauthn_validator="0x7ab16Ff354AcB328452F1D445b3Ddee9a91e9e69",
            webauthn_session_validator="0x4853727f59C3C161a58E153E2B0F9F683EcFB9Df",
        ),
        policies=_POLICIES,
        smart_sessions="0x00000000002B0eCfbD0496EE71e01257dA0E37DE",
        default_safe_signer_address="0x000000000000000000000000000000000000dEaD",
    ),
    ProtocolVersion.V1_2_0: ProtocolConstants(
        version=ProtocolVersion.V1_2_0,
        safe4337_module_address="0x7579f2AD53b01c3D8779Fe17928e0D48885B0003",
        erc7579_launchpad_address="0x75798463024Bda64D83c94A64Bc7D7eaB41300eF",
        safe_singleton_address="0x29fcB43b46531BcA003ddC8FCB67FFE91900C762",
        attesters=_ATTESTERS,
        attesters_threshold=1,
        validators=ValidatorAddresses(
            ownable_validator="0x2483DA3A338895199E5e538530213157e931Bf06",
            webauthn_validator="0x0000000000578c4cB0e472a5462da43C495C3F33",
            webauthn_session_validator="0x4853727f59C3C161a58E153E2B0F9F683EcFB9Df",
        ),
        policies=_POLICIES,
        smart_sessions="0x00000000008bdaba73cd9815d79069c247eb4bda",
        default_safe_signer_address="0x000000000000000000000000000000000000dEaD",
    ),
}

# Ordered oldest -> newest
PROTOCOL_VERSIONS: List[ProtocolVersion] = [
    ProtocolVersion.V1_0_0,
    ProtocolVersion.V1_1_0,
    ProtocolVersion.V1_2_0,
]


def get_protocol_constants(version: Union[ProtocolVersion, str]) -> ProtocolConstants:
    """Look up the contract set for an explicit protocol version."""
    return PROTOCOL_CONSTANTS[ProtocolVersion(version)]


# ERC-20 selectors
ERC20_TRANSFER_SIGNATURE = "transfer(address,uint256)"
ERC20_APPROVE_SIGNATURE = "approve(address,uint256)"
ERC20_TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
ERC20_APPROVE_SELECTOR = bytes.fromhex("095ea7b3")

# UTF-8 "1" right padded to bytes32. Every caller that omits a salt shares
# this value, so their permission ids collide for the same validator.
DEFAULT_SESSION_SALT = b"1".ljust(32, b"\x00")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
SENTINEL_ADDRESS = "0x0000000000000000000000000000000000000001"

# ERC-1271 magic value returned by isValidSignatureWithSender
ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")

# EIP-1967 implementation slot
IMPLEMENTATION_SLOT = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"

# Swap aggregators a sudo session may call unconditionally
LIFI_DIAMOND_ADDRESS = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"
LIFI_SWAP_SELECTORS: Tuple[bytes, ...] = (
    bytes.fromhex("5fd9ae2e"),  # swapTokensMultipleV3ERC20ToERC20
    bytes.fromhex("2c57e884"),  # swapTokensMultipleV3ERC20ToNative
    bytes.fromhex("736eac0b"),  # swapTokensMultipleV3NativeToERC20
    bytes.fromhex("4666fc80"),  # swapTokensSingleV3ERC20ToERC20
    bytes.fromhex("733214a3"),  # swapTokensSingleV3ERC20ToNative
    bytes.fromhex("af7060fd"),  # swapTokensSingleV3NativeToERC20
)

KURU_ROUTER_ADDRESS = "0xc816865f172d640d93712C68a7E1F83F3fA63235"
KURU_SWAP_SELECTORS: Tuple[bytes, ...] = (
    bytes.fromhex("ffa5210a"),  # anyToAnySwap
)

SWAP_AGGREGATOR_ALLOWLIST: Tuple[Tuple[str, Tuple[bytes, ...]], ...] = (
    (LIFI_DIAMOND_ADDRESS, LIFI_SWAP_SELECTORS),
    (KURU_ROUTER_ADDRESS, KURU_SWAP_SELECTORS),
)


class ModuleType(str, Enum):
    """ERC-7579 module types."""
    VALIDATOR = "validator"
    EXECUTOR = "executor"
    FALLBACK = "fallback"
    HOOK = "hook"


MODULE_TYPE_IDS: Dict[ModuleType, int] = {
    ModuleType.VALIDATOR: 1,
    ModuleType.EXECUTOR: 2,
    ModuleType.FALLBACK: 3,
    ModuleType.HOOK: 4,
}

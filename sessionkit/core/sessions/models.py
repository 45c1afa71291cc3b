"""
Smart Session data structures.

Sessions are rebuilt on demand for every call and never persisted here; the
permission id they derive is the durable handle for on-chain state. All
records are frozen, sequence fields are stored as tuples, addresses are
checksummed and byte fields are raw ``bytes`` so that values decoded from the
wire compare equal to the values that were encoded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from eth_utils import to_bytes, to_checksum_address

from .constants import DEFAULT_SESSION_SALT


def as_bytes(value: Union[bytes, bytearray, str, None]) -> bytes:
    """Accept raw bytes or a 0x-prefixed hex string."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=value)


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


class SmartSessionMode(IntEnum):
    """One-byte discriminant prefixed to every session signature."""
    USE = 0x00
    ENABLE = 0x01
    UNSAFE_ENABLE = 0x02

    def to_byte(self) -> bytes:
        return bytes([int(self)])


class AccountType(str, Enum):
    """Smart account implementations that can enable sessions."""
    ERC7579 = "erc7579-implementation"
    NEXUS = "nexus"
    SAFE = "safe"
    KERNEL = "kernel"


class PolicyType(str, Enum):
    SPEND_LIMIT = "spendlimit"
    SUDO = "sudo"


class ValidatorKind(str, Enum):
    OWNABLE = "ownable"
    PASSKEY = "passkey"


# ---------------------------------------------------------------------------
# Policies and actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PolicyData:
    """A policy contract plus the opaque config it is initialised with."""
    policy: str
    init_data: bytes = b""

    def __post_init__(self) -> None:
        _set(self, "policy", to_checksum_address(self.policy))
        _set(self, "init_data", as_bytes(self.init_data))

    def to_abi(self) -> Tuple[str, bytes]:
        return (self.policy, self.init_data)

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "PolicyData":
        return cls(policy=value[0], init_data=value[1])


@dataclass(frozen=True)
class ERC7739Context:
    app_domain_separator: bytes
    content_names: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _set(self, "app_domain_separator", as_bytes(self.app_domain_separator))
        _set(self, "content_names", tuple(self.content_names))

    def to_abi(self) -> Tuple[bytes, list]:
        return (self.app_domain_separator, list(self.content_names))

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "ERC7739Context":
        return cls(app_domain_separator=value[0], content_names=tuple(value[1]))


@dataclass(frozen=True)
class ERC7739Data:
    allowed_erc7739_content: Tuple[ERC7739Context, ...] = ()
    erc1271_policies: Tuple[PolicyData, ...] = ()

    def __post_init__(self) -> None:
        _set(self, "allowed_erc7739_content", tuple(self.allowed_erc7739_content))
        _set(self, "erc1271_policies", tuple(self.erc1271_policies))

    def to_abi(self) -> Tuple[list, list]:
        return (
            [c.to_abi() for c in self.allowed_erc7739_content],
            [p.to_abi() for p in self.erc1271_policies],
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "ERC7739Data":
        return cls(
            allowed_erc7739_content=tuple(ERC7739Context.from_abi(c) for c in value[0]),
            erc1271_policies=tuple(PolicyData.from_abi(p) for p in value[1]),
        )


@dataclass(frozen=True)
class ActionData:
    """Calls to ``action_target`` with ``action_target_selector`` are subject to ``action_policies``."""
    action_target: str
    action_target_selector: bytes
    action_policies: Tuple[PolicyData, ...] = ()

    def __post_init__(self) -> None:
        selector = as_bytes(self.action_target_selector)
        if len(selector) != 4:
            raise ValueError(f"Function selector must be 4 bytes, got {len(selector)}")
        _set(self, "action_target", to_checksum_address(self.action_target))
        _set(self, "action_target_selector", selector)
        _set(self, "action_policies", tuple(self.action_policies))

    def to_abi(self) -> Tuple[bytes, str, list]:
        # On-chain struct order: selector first
        return (
            self.action_target_selector,
            self.action_target,
            [p.to_abi() for p in self.action_policies],
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "ActionData":
        return cls(
            action_target_selector=value[0],
            action_target=value[1],
            action_policies=tuple(PolicyData.from_abi(p) for p in value[2]),
        )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    """
    A scoped delegation to ``session_validator``.

    ``chain_id`` selects the chain the session is enabled on; it is not part of
    the on-chain Session struct and therefore not part of the ABI tuple.
    """
    session_validator: str
    session_validator_init_data: bytes
    salt: bytes = DEFAULT_SESSION_SALT
    user_op_policies: Tuple[PolicyData, ...] = ()
    erc7739_policies: ERC7739Data = field(default_factory=ERC7739Data)
    actions: Tuple[ActionData, ...] = ()
    permit_erc4337_paymaster: bool = True
    chain_id: int = 0

    def __post_init__(self) -> None:
        salt = as_bytes(self.salt)
        if len(salt) != 32:
            raise ValueError(f"Session salt must be 32 bytes, got {len(salt)}")
        _set(self, "session_validator", to_checksum_address(self.session_validator))
        _set(self, "session_validator_init_data", as_bytes(self.session_validator_init_data))
        _set(self, "salt", salt)
        _set(self, "user_op_policies", tuple(self.user_op_policies))
        _set(self, "actions", tuple(self.actions))
        _set(self, "chain_id", int(self.chain_id))

    def to_abi(self) -> Tuple[Any, ...]:
        return (
            self.session_validator,
            self.session_validator_init_data,
            self.salt,
            [p.to_abi() for p in self.user_op_policies],
            self.erc7739_policies.to_abi(),
            [a.to_abi() for a in self.actions],
            self.permit_erc4337_paymaster,
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any], chain_id: int = 0) -> "Session":
        return cls(
            session_validator=value[0],
            session_validator_init_data=value[1],
            salt=value[2],
            user_op_policies=tuple(PolicyData.from_abi(p) for p in value[3]),
            erc7739_policies=ERC7739Data.from_abi(value[4]),
            actions=tuple(ActionData.from_abi(a) for a in value[5]),
            permit_erc4337_paymaster=bool(value[6]),
            chain_id=chain_id,
        )


@dataclass(frozen=True)
class ChainDigest:
    chain_id: int
    session_digest: bytes

    def __post_init__(self) -> None:
        _set(self, "chain_id", int(self.chain_id))
        _set(self, "session_digest", as_bytes(self.session_digest))

    def to_abi(self) -> Tuple[int, bytes]:
        return (self.chain_id, self.session_digest)


@dataclass(frozen=True)
class EnableSession:
    chain_digest_index: int
    hashes_and_chain_ids: Tuple[ChainDigest, ...]
    session_to_enable: Session
    permission_enable_sig: bytes = b""

    def __post_init__(self) -> None:
        _set(self, "hashes_and_chain_ids", tuple(self.hashes_and_chain_ids))
        _set(self, "permission_enable_sig", as_bytes(self.permission_enable_sig))


@dataclass(frozen=True)
class EnableSessionData:
    """Owner-side proof that enabling ``enable_session`` was authorized."""
    enable_session: EnableSession
    validator: str
    account_type: AccountType

    def __post_init__(self) -> None:
        _set(self, "validator", to_checksum_address(self.validator))


@dataclass(frozen=True)
class SmartSessionSignature:
    """Decoded form of a session signature blob."""
    mode: SmartSessionMode
    permission_id: bytes
    signature: bytes = b""
    enable_session_data: Optional[EnableSessionData] = None

    def __post_init__(self) -> None:
        _set(self, "mode", SmartSessionMode(self.mode))
        _set(self, "permission_id", as_bytes(self.permission_id))
        _set(self, "signature", as_bytes(self.signature))


@dataclass(frozen=True)
class EnableSessionDetails:
    """Material the account owner signs to enable sessions on one or more chains."""
    permission_enable_hash: bytes
    mode: SmartSessionMode
    permission_id: bytes
    enable_session_data: EnableSessionData
    signature: bytes = b""

    def to_signature(self) -> SmartSessionSignature:
        return SmartSessionSignature(
            mode=self.mode,
            permission_id=self.permission_id,
            signature=self.signature,
            enable_session_data=self.enable_session_data,
        )


# ---------------------------------------------------------------------------
# Multi-chain records (hashed, never sent as calldata)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignedPermissions:
    permit_generic_policy: bool
    permit_admin_access: bool
    ignore_security_attestations: bool
    permit_erc4337_paymaster: bool
    user_op_policies: Tuple[PolicyData, ...]
    erc7739_policies: ERC7739Data
    actions: Tuple[ActionData, ...]


@dataclass(frozen=True)
class SignedSession:
    account: str
    permissions: SignedPermissions
    session_validator: str
    session_validator_init_data: bytes
    salt: bytes
    smart_session: str
    nonce: int


@dataclass(frozen=True)
class ChainSession:
    chain_id: int
    session: SignedSession


# ---------------------------------------------------------------------------
# Transactions and policy parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transaction:
    """Call payload handed back to the caller for submission."""
    to: str
    value: int = 0
    data: bytes = b""

    def __post_init__(self) -> None:
        _set(self, "to", to_checksum_address(self.to))
        _set(self, "data", as_bytes(self.data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "value": hex(self.value),
            "data": to_hex(self.data),
        }


@dataclass(frozen=True)
class SessionValidator:
    """The session key's validator module, its init data, and an optional salt."""
    address: str
    init_data: bytes
    salt: Optional[bytes] = None

    def __post_init__(self) -> None:
        _set(self, "address", to_checksum_address(self.address))
        _set(self, "init_data", as_bytes(self.init_data))
        if self.salt is not None:
            _set(self, "salt", as_bytes(self.salt))


@dataclass(frozen=True)
class TokenLimit:
    token: str
    amount: int


@dataclass(frozen=True)
class SpendLimitParams:
    token_limits: Tuple[TokenLimit, ...]
    policy: PolicyType = field(default=PolicyType.SPEND_LIMIT, init=False)

    def __post_init__(self) -> None:
        _set(self, "token_limits", tuple(self.token_limits))


@dataclass(frozen=True)
class TokenAccess:
    """Per-token sudo flags. ``None`` leaves that permission untouched."""
    token: str
    is_transfer_enabled: Optional[bool] = None
    is_swap_enabled: Optional[bool] = None


@dataclass(frozen=True)
class SudoParams:
    token_access: Tuple[TokenAccess, ...]
    policy: PolicyType = field(default=PolicyType.SUDO, init=False)

    def __post_init__(self) -> None:
        _set(self, "token_access", tuple(self.token_access))


PolicyParams = Union[SpendLimitParams, SudoParams]


# ---------------------------------------------------------------------------
# Tokens and entitlements
# ---------------------------------------------------------------------------

@dataclass
class Token:
    """A token held by the account, as supplied by the caller's portfolio."""
    address: str
    decimals: int = 18
    symbol: str = ""
    balance: str = "0"  # human units
    raw_balance: int = 0  # native units
    price: Optional[float] = None
    usd_value: Optional[float] = None


@dataclass(frozen=True)
class SpendLimitEntitlement:
    address: str
    limit: str
    spent: str
    balance: int  # native units, limit - spent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "limit": self.limit,
            "spent": self.spent,
            "balance": str(self.balance),
        }


@dataclass(frozen=True)
class TokenPermissions:
    swap: bool = False
    spend: bool = False


@dataclass(frozen=True)
class SudoEntitlement:
    address: str
    permissions: TokenPermissions = field(default_factory=TokenPermissions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "permissions": {
                "swap": self.permissions.swap,
                "spend": self.permissions.spend,
            },
        }


@dataclass(frozen=True)
class PolicyEnabled:
    address: str
    enabled: bool


@dataclass
class Subaccount:
    """A delegated account as stored by the wallet backend."""
    name: str
    validator: ValidatorKind
    policy: PolicyType
    validator_init_data: bytes
    salt: bytes
    account_address: str
    tag: str = ""
    chain_id: int = 0
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "validator": self.validator.value,
            "policy": self.policy.value,
            "validatorInitData": to_hex(self.validator_init_data),
            "salt": to_hex(self.salt),
            "accountAddress": self.account_address,
            "tag": self.tag,
            "chainid": self.chain_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subaccount":
        return cls(
            name=data["name"],
            validator=ValidatorKind(data["validator"]),
            policy=PolicyType(data["policy"]),
            validator_init_data=as_bytes(data["validatorInitData"]),
            salt=as_bytes(data["salt"]),
            account_address=data["accountAddress"],
            tag=data.get("tag", ""),
            chain_id=int(data.get("chainid", 0)),
            created_at=data.get("created_at"),
        )

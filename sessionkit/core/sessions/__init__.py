"""
Smart Sessions Module

Delegates restricted signing authority from a smart account to a session
validator under on-chain policies:
- Identifier derivation (permission id, action id, config id)
- Session signature encoding for USE / ENABLE / UNSAFE_ENABLE modes
- Multi-chain EIP-712 digest for enabling a session on several chains at once
- Session, policy and module transaction builders
- Per-token entitlements read back from the policy contracts

Usage:
    from sessionkit.core.sessions import (
        OwnableValidator,
        SmartSessionOrchestrator,
        SpendLimitParams,
        TokenLimit,
        get_protocol_constants,
        session_validator_for,
    )

    constants = get_protocol_constants("1.1.0")
    validator = session_validator_for(OwnableValidator(owner="0x..."), constants)

    orchestrator = SmartSessionOrchestrator(constants)
    tx = orchestrator.build_enable_session(
        chain_id=8453,
        params=SpendLimitParams([TokenLimit(token="0x...", amount=10**6)]),
        validator=validator,
    )

    # Later, sign user operations with the session key
    use = orchestrator.build_use_session(8453, validator)
    blob = encode_smart_session_signature(replace(use, signature=session_key_sig))
"""

from .constants import (
    DEFAULT_SESSION_SALT,
    ModuleType,
    PROTOCOL_CONSTANTS,
    PROTOCOL_VERSIONS,
    ProtocolConstants,
    ProtocolVersion,
    get_protocol_constants,
)
from .digest import chain_session_from, hash_chain_sessions
from .entitlements import EntitlementReader, format_units
from .errors import (
    ChainQueryFailure,
    InvalidConfiguration,
    InvalidEnableSignature,
    MalformedSignature,
    MissingClientForChain,
    SmartSessionError,
    UnknownSignatureMode,
    UnsupportedAccountType,
)
from .ids import action_id, config_id, function_selector, permission_id
from .models import (
    AccountType,
    ActionData,
    ChainDigest,
    ChainSession,
    EnableSession,
    EnableSessionData,
    EnableSessionDetails,
    ERC7739Context,
    ERC7739Data,
    PolicyData,
    PolicyType,
    Session,
    SessionValidator,
    SmartSessionMode,
    SmartSessionSignature,
    SpendLimitEntitlement,
    SpendLimitParams,
    Subaccount,
    SudoEntitlement,
    SudoParams,
    Token,
    TokenAccess,
    TokenLimit,
    Transaction,
    ValidatorKind,
)
from .modules import ModuleTransactionBuilder
from .orchestrator import SmartSessionOrchestrator
from .policies import (
    decode_spend_limit_init_data,
    decode_validation_data,
    encode_validation_data,
    spend_limit_policy_data,
    sudo_policy_data,
)
from .signature import (
    decode_smart_session_signature,
    encode_smart_session_signature,
    encode_use_or_enable_signature,
)
from .validators import (
    OwnableValidator,
    PasskeyValidator,
    format_subaccounts,
    get_session_validator,
    session_validator_for,
)

__all__ = [
    # Constants
    "DEFAULT_SESSION_SALT",
    "ModuleType",
    "PROTOCOL_CONSTANTS",
    "PROTOCOL_VERSIONS",
    "ProtocolConstants",
    "ProtocolVersion",
    "get_protocol_constants",
    # Models
    "AccountType",
    "ActionData",
    "ChainDigest",
    "ChainSession",
    "EnableSession",
    "EnableSessionData",
    "EnableSessionDetails",
    "ERC7739Context",
    "ERC7739Data",
    "PolicyData",
    "PolicyType",
    "Session",
    "SessionValidator",
    "SmartSessionMode",
    "SmartSessionSignature",
    "SpendLimitEntitlement",
    "SpendLimitParams",
    "Subaccount",
    "SudoEntitlement",
    "SudoParams",
    "Token",
    "TokenAccess",
    "TokenLimit",
    "Transaction",
    "ValidatorKind",
    # Identifiers
    "action_id",
    "config_id",
    "function_selector",
    "permission_id",
    # Codecs
    "decode_smart_session_signature",
    "encode_smart_session_signature",
    "encode_use_or_enable_signature",
    "decode_spend_limit_init_data",
    "decode_validation_data",
    "encode_validation_data",
    "spend_limit_policy_data",
    "sudo_policy_data",
    "chain_session_from",
    "hash_chain_sessions",
    # Builders and readers
    "EntitlementReader",
    "ModuleTransactionBuilder",
    "SmartSessionOrchestrator",
    "format_units",
    # Validators
    "OwnableValidator",
    "PasskeyValidator",
    "format_subaccounts",
    "get_session_validator",
    "session_validator_for",
    # Errors
    "ChainQueryFailure",
    "InvalidConfiguration",
    "InvalidEnableSignature",
    "MalformedSignature",
    "MissingClientForChain",
    "SmartSessionError",
    "UnknownSignatureMode",
    "UnsupportedAccountType",
]

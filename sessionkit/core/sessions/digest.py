"""
Multi-chain session digest.

One EIP-712 hash over an ordered list of (chainId, SignedSession) pairs lets
the account owner authorize a session on several chains with a single
signature. The type schema and the field order inside each struct are part of
the on-chain contract; changing either changes the digest.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_checksum_address

from .models import (
    ActionData,
    ChainSession,
    ERC7739Context,
    ERC7739Data,
    PolicyData,
    Session,
    SignedPermissions,
    SignedSession,
)

SMART_SESSION_DOMAIN: Dict[str, str] = {"name": "SmartSession", "version": "1"}

MULTI_CHAIN_SESSION_TYPES: Dict[str, List[Dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
    ],
    "PolicyData": [
        {"name": "policy", "type": "address"},
        {"name": "initData", "type": "bytes"},
    ],
    "ActionData": [
        {"name": "actionTargetSelector", "type": "bytes4"},
        {"name": "actionTarget", "type": "address"},
        {"name": "actionPolicies", "type": "PolicyData[]"},
    ],
    "ERC7739Context": [
        {"name": "appDomainSeparator", "type": "bytes32"},
        {"name": "contentName", "type": "string[]"},
    ],
    "ERC7739Data": [
        {"name": "allowedERC7739Content", "type": "ERC7739Context[]"},
        {"name": "erc1271Policies", "type": "PolicyData[]"},
    ],
    "SignedPermissions": [
        {"name": "permitGenericPolicy", "type": "bool"},
        {"name": "permitAdminAccess", "type": "bool"},
        {"name": "ignoreSecurityAttestations", "type": "bool"},
        {"name": "permitERC4337Paymaster", "type": "bool"},
        {"name": "userOpPolicies", "type": "PolicyData[]"},
        {"name": "erc7739Policies", "type": "ERC7739Data"},
        {"name": "actions", "type": "ActionData[]"},
    ],
    "SignedSession": [
        {"name": "account", "type": "address"},
        {"name": "permissions", "type": "SignedPermissions"},
        {"name": "sessionValidator", "type": "address"},
        {"name": "sessionValidatorInitData", "type": "bytes"},
        {"name": "salt", "type": "bytes32"},
        {"name": "smartSession", "type": "address"},
        {"name": "nonce", "type": "uint256"},
    ],
    "ChainSession": [
        {"name": "chainId", "type": "uint64"},
        {"name": "session", "type": "SignedSession"},
    ],
    "MultiChainSession": [
        {"name": "sessionsAndChainIds", "type": "ChainSession[]"},
    ],
}


def _policy(policy: PolicyData) -> Dict[str, Any]:
    return {"policy": policy.policy, "initData": policy.init_data}


def _action(action: ActionData) -> Dict[str, Any]:
    return {
        "actionTargetSelector": action.action_target_selector,
        "actionTarget": action.action_target,
        "actionPolicies": [_policy(p) for p in action.action_policies],
    }


def _context(context: ERC7739Context) -> Dict[str, Any]:
    return {
        "appDomainSeparator": context.app_domain_separator,
        "contentName": list(context.content_names),
    }


def _erc7739(data: ERC7739Data) -> Dict[str, Any]:
    return {
        "allowedERC7739Content": [_context(c) for c in data.allowed_erc7739_content],
        "erc1271Policies": [_policy(p) for p in data.erc1271_policies],
    }


def _permissions(permissions: SignedPermissions) -> Dict[str, Any]:
    return {
        "permitGenericPolicy": permissions.permit_generic_policy,
        "permitAdminAccess": permissions.permit_admin_access,
        "ignoreSecurityAttestations": permissions.ignore_security_attestations,
        "permitERC4337Paymaster": permissions.permit_erc4337_paymaster,
        "userOpPolicies": [_policy(p) for p in permissions.user_op_policies],
        "erc7739Policies": _erc7739(permissions.erc7739_policies),
        "actions": [_action(a) for a in permissions.actions],
    }


def _signed_session(session: SignedSession) -> Dict[str, Any]:
    return {
        "account": session.account,
        "permissions": _permissions(session.permissions),
        "sessionValidator": session.session_validator,
        "sessionValidatorInitData": session.session_validator_init_data,
        "salt": session.salt,
        "smartSession": session.smart_session,
        "nonce": session.nonce,
    }


def multi_chain_session_typed_data(chain_sessions: Sequence[ChainSession]) -> Dict[str, Any]:
    """Full EIP-712 message for ``MultiChainSession``."""
    return {
        "types": MULTI_CHAIN_SESSION_TYPES,
        "primaryType": "MultiChainSession",
        "domain": dict(SMART_SESSION_DOMAIN),
        "message": {
            "sessionsAndChainIds": [
                {"chainId": cs.chain_id, "session": _signed_session(cs.session)}
                for cs in chain_sessions
            ],
        },
    }


def hash_chain_sessions(chain_sessions: Sequence[ChainSession]) -> bytes:
    """keccak256(0x19 0x01 || domainSeparator || hashStruct(MultiChainSession))."""
    signable = encode_typed_data(full_message=multi_chain_session_typed_data(chain_sessions))
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def chain_session_from(
    session: Session,
    account: str,
    smart_session: str,
    nonce: int,
    permit_generic_policy: bool = False,
    permit_admin_access: bool = False,
    ignore_security_attestations: bool = False,
) -> ChainSession:
    """Wrap a session with the account, module and nonce it is signed for."""
    return ChainSession(
        chain_id=session.chain_id,
        session=SignedSession(
            account=to_checksum_address(account),
            permissions=SignedPermissions(
                permit_generic_policy=permit_generic_policy,
                permit_admin_access=permit_admin_access,
                ignore_security_attestations=ignore_security_attestations,
                permit_erc4337_paymaster=session.permit_erc4337_paymaster,
                user_op_policies=session.user_op_policies,
                erc7739_policies=session.erc7739_policies,
                actions=session.actions,
            ),
            session_validator=session.session_validator,
            session_validator_init_data=session.session_validator_init_data,
            salt=session.salt,
            smart_session=to_checksum_address(smart_session),
            nonce=nonce,
        ),
    )

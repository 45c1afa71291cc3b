"""
Minimal ABI fragments for the contracts a delegated account talks to.

Only the functions this package calls are described. Struct types are
spelled as tuples in canonical order, which is also what the selector is
computed over.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import keccak


POLICY_DATA = "(address,bytes)"
ERC7739_CONTEXT = "(bytes32,string[])"
ERC7739_DATA = f"({ERC7739_CONTEXT}[],{POLICY_DATA}[])"
ACTION_DATA = f"(bytes4,address,{POLICY_DATA}[])"
SESSION = (
    f"(address,bytes,bytes32,{POLICY_DATA}[],{ERC7739_DATA},{ACTION_DATA}[],bool)"
)
CHAIN_DIGEST = "(uint64,bytes32)"
ENABLE_SESSION = f"(uint8,{CHAIN_DIGEST}[],{SESSION},bytes)"

# abi.encode(EnableSession enableData, bytes signature)
ENABLE_SESSION_SIGNATURE_TYPES: Tuple[str, ...] = (ENABLE_SESSION, "bytes")


@dataclass(frozen=True)
class ContractFunction:
    """One function of a contract ABI."""
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return keccak(text=self.signature)[:4]

    def encode_call(self, *args: Any) -> bytes:
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.name} expects {len(self.inputs)} arguments, got {len(args)}"
            )
        return self.selector + encode(list(self.inputs), list(args))

    def decode_output(self, data: bytes) -> Any:
        """Decode return data; single-value functions return the value itself."""
        values = decode(list(self.outputs), data)
        if len(self.outputs) == 1:
            return values[0]
        return values


def _fn(name: str, inputs: Sequence[str] = (), outputs: Sequence[str] = ()) -> ContractFunction:
    return ContractFunction(name=name, inputs=tuple(inputs), outputs=tuple(outputs))


class SmartSessionsAbi:
    """Smart Sessions ERC-7579 validator module."""
    enable_sessions = _fn("enableSessions", [f"{SESSION}[]"], ["bytes32[]"])
    remove_session = _fn("removeSession", ["bytes32"])
    enable_action_policies = _fn("enableActionPolicies", ["bytes32", f"{ACTION_DATA}[]"])
    disable_action_policies = _fn("disableActionPolicies", ["bytes32", "bytes32", "address[]"])
    enable_user_op_policies = _fn("enableUserOpPolicies", ["bytes32", f"{POLICY_DATA}[]"])
    disable_user_op_policies = _fn("disableUserOpPolicies", ["bytes32", "address[]"])
    enable_erc1271_policies = _fn("enableERC1271Policies", ["bytes32", ERC7739_DATA])
    disable_erc1271_policies = _fn(
        "disableERC1271Policies", ["bytes32", "address[]", f"{ERC7739_CONTEXT}[]"]
    )
    get_nonce = _fn("getNonce", ["bytes32", "address"], ["uint256"])
    get_session_digest = _fn(
        "getSessionDigest", ["bytes32", "address", SESSION, "uint8"], ["bytes32"]
    )
    is_permission_enabled = _fn("isPermissionEnabled", ["bytes32", "address"], ["bool"])
    is_action_policy_enabled = _fn(
        "isActionPolicyEnabled", ["address", "bytes32", "bytes32", "address"], ["bool"]
    )
    get_enabled_actions = _fn("getEnabledActions", ["address", "bytes32"], ["bytes32[]"])
    is_valid_signature_with_sender = _fn(
        "isValidSignatureWithSender", ["address", "bytes32", "bytes"], ["bytes4"]
    )


class SpendingLimitPolicyAbi:
    # returns (spendingLimit, alreadySpent)
    get_policy_data = _fn(
        "getPolicyData", ["bytes32", "address", "address", "address"], ["uint256", "uint256"]
    )


class ERC7579AccountAbi:
    install_module = _fn("installModule", ["uint256", "address", "bytes"])
    uninstall_module = _fn("uninstallModule", ["uint256", "address", "bytes"])
    is_module_installed = _fn("isModuleInstalled", ["uint256", "address", "bytes"], ["bool"])


class Multicall3Abi:
    aggregate3 = _fn("aggregate3", ["(address,bool,bytes)[]"], ["(bool,bytes)[]"])

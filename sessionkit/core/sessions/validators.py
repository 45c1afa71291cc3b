"""
Session validator resolution.

A delegated account is signed for either by an EOA key (ownable validator,
threshold 1) or by a passkey (WebAuthn session validator). Each kind is a
separate variant carrying only what it needs; the versioned constants table
turns it into a concrete ``SessionValidator``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from eth_utils import to_checksum_address

from .constants import ProtocolConstants
from .errors import InvalidConfiguration
from .models import SessionValidator, Subaccount, ValidatorKind, as_bytes
from .policies import encode_validation_data


@dataclass(frozen=True)
class OwnableValidator:
    """Session key is a plain EOA."""
    owner: str
    kind: ValidatorKind = ValidatorKind.OWNABLE


@dataclass(frozen=True)
class PasskeyValidator:
    """Session key is a passkey; ``enable_data`` is the WebAuthn validator's init data."""
    enable_data: bytes
    kind: ValidatorKind = ValidatorKind.PASSKEY


ValidatorRef = Union[OwnableValidator, PasskeyValidator]


def validator_address(kind: ValidatorKind, constants: ProtocolConstants) -> str:
    if kind == ValidatorKind.OWNABLE:
        return constants.validators.ownable_validator
    if kind == ValidatorKind.PASSKEY:
        return constants.validators.webauthn_session_validator
    raise InvalidConfiguration(f"Unknown validator kind: {kind}")


def session_validator_for(
    validator: ValidatorRef,
    constants: ProtocolConstants,
    salt: Optional[bytes] = None,
) -> SessionValidator:
    """Resolve a validator variant to its on-chain address and init data."""
    if isinstance(validator, OwnableValidator):
        init_data = encode_validation_data(1, [validator.owner])
    elif isinstance(validator, PasskeyValidator):
        init_data = as_bytes(validator.enable_data)
        if not init_data:
            raise InvalidConfiguration("Passkey validator requires enable data")
    else:
        raise InvalidConfiguration(f"Unsupported validator: {type(validator).__name__}")

    return SessionValidator(
        address=validator_address(validator.kind, constants),
        init_data=init_data,
        salt=salt,
    )


def get_session_validator(
    subaccount: Subaccount,
    constants: ProtocolConstants,
) -> SessionValidator:
    """Rebuild the session validator of a stored subaccount."""
    if not subaccount.validator_init_data:
        raise InvalidConfiguration(
            "Subaccount is missing validator init data",
            {"name": subaccount.name},
        )
    return SessionValidator(
        address=validator_address(ValidatorKind(subaccount.validator), constants),
        init_data=subaccount.validator_init_data,
        salt=subaccount.salt or None,
    )


def format_subaccounts(
    account: str,
    init_data: bytes,
    subaccounts: Sequence[Subaccount],
) -> Dict[str, List[Subaccount]]:
    """
    Split subaccounts into those this account created and those it can sign for.

    ``created`` matches on the owning account address, ``owned`` on the
    session validator init data.
    """
    if not subaccounts:
        return {"owned": [], "created": []}

    account = to_checksum_address(account)
    init_data = as_bytes(init_data)
    return {
        "created": [
            s for s in subaccounts
            if to_checksum_address(s.account_address) == account
        ],
        "owned": [s for s in subaccounts if s.validator_init_data == init_data],
    }

"""
Tests for session validator resolution and subaccount grouping.
"""

import pytest

from sessionkit.core.sessions.constants import get_protocol_constants
from sessionkit.core.sessions.errors import InvalidConfiguration
from sessionkit.core.sessions.models import PolicyType, Subaccount, ValidatorKind
from sessionkit.core.sessions.policies import encode_validation_data
from sessionkit.core.sessions.validators import (
    OwnableValidator,
    PasskeyValidator,
    format_subaccounts,
    get_session_validator,
    session_validator_for,
)

CONSTANTS = get_protocol_constants("1.1.0")
OWNER = "0x1111111111111111111111111111111111111111"
ACCOUNT = "0x2222222222222222222222222222222222222222"
OTHER_ACCOUNT = "0x5555555555555555555555555555555555555555"


def _subaccount(name: str, account: str, init_data: bytes, **kwargs) -> Subaccount:
    return Subaccount(
        name=name,
        validator=kwargs.pop("validator", ValidatorKind.OWNABLE),
        policy=kwargs.pop("policy", PolicyType.SPEND_LIMIT),
        validator_init_data=init_data,
        salt=kwargs.pop("salt", b""),
        account_address=account,
        **kwargs,
    )


def test_ownable_validator_resolution() -> None:
    validator = session_validator_for(OwnableValidator(owner=OWNER), CONSTANTS)

    assert validator.address == CONSTANTS.validators.ownable_validator
    assert validator.init_data == encode_validation_data(1, [OWNER])
    assert validator.salt is None


def test_passkey_validator_resolution() -> None:
    validator = session_validator_for(
        PasskeyValidator(enable_data=b"\x01\x02"), CONSTANTS, salt=b"\x09" * 32
    )

    assert validator.address == CONSTANTS.validators.webauthn_session_validator
    assert validator.init_data == b"\x01\x02"
    assert validator.salt == b"\x09" * 32


def test_passkey_without_enable_data() -> None:
    with pytest.raises(InvalidConfiguration):
        session_validator_for(PasskeyValidator(enable_data=b""), CONSTANTS)


def test_unknown_validator_variant() -> None:
    with pytest.raises(InvalidConfiguration):
        session_validator_for(object(), CONSTANTS)


def test_get_session_validator_from_subaccount() -> None:
    init_data = encode_validation_data(1, [OWNER])
    subaccount = _subaccount("bot", ACCOUNT, init_data, salt=b"\x03" * 32)

    validator = get_session_validator(subaccount, CONSTANTS)

    assert validator.address == CONSTANTS.validators.ownable_validator
    assert validator.init_data == init_data
    assert validator.salt == b"\x03" * 32


def test_get_session_validator_without_salt_uses_default() -> None:
    subaccount = _subaccount("bot", ACCOUNT, b"\x01", validator=ValidatorKind.PASSKEY)

    validator = get_session_validator(subaccount, CONSTANTS)

    assert validator.address == CONSTANTS.validators.webauthn_session_validator
    assert validator.salt is None


def test_get_session_validator_requires_init_data() -> None:
    with pytest.raises(InvalidConfiguration):
        get_session_validator(_subaccount("bot", ACCOUNT, b""), CONSTANTS)


def test_format_subaccounts_splits_created_and_owned() -> None:
    mine = encode_validation_data(1, [OWNER])
    theirs = encode_validation_data(1, [OTHER_ACCOUNT])
    subaccounts = [
        _subaccount("created-by-me", ACCOUNT, theirs),
        _subaccount("signed-by-me", OTHER_ACCOUNT, mine),
        _subaccount("both", ACCOUNT, mine),
        _subaccount("unrelated", OTHER_ACCOUNT, theirs),
    ]

    grouped = format_subaccounts(ACCOUNT, mine, subaccounts)

    assert [s.name for s in grouped["created"]] == ["created-by-me", "both"]
    assert [s.name for s in grouped["owned"]] == ["signed-by-me", "both"]


def test_format_subaccounts_empty() -> None:
    assert format_subaccounts(ACCOUNT, b"\x01", []) == {"owned": [], "created": []}


def test_subaccount_dict_round_trip() -> None:
    subaccount = _subaccount(
        "bot", ACCOUNT, b"\xab\xcd", policy=PolicyType.SUDO, salt=b"\x01" * 32, chain_id=8453, tag="trading"
    )
    data = subaccount.to_dict()

    assert data["validatorInitData"] == "0xabcd"
    assert data["policy"] == "sudo"
    assert data["chainid"] == 8453
    assert Subaccount.from_dict(data) == subaccount

"""
Smart Session signature encoding.

Every signature handed to the Smart Sessions validator starts with a one-byte
mode:

    USE            0x00 || permissionId (32) || signature
    ENABLE         0x01 || flzCompress(abi.encode(EnableSession, signature))
    UNSAFE_ENABLE  0x02 || same layout as ENABLE

Inside ``EnableSession`` the owner's ``permissionEnableSig`` is prefixed with
the validator that checks it (and a ``0x01`` tag byte for Kernel accounts).
The account type cannot be read back from the bytes, so decoding an ENABLE
signature needs it supplied by the caller.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import to_canonical_address, to_checksum_address

from ...providers.base import CallRequest, ChainReader
from .abi import ENABLE_SESSION_SIGNATURE_TYPES, SmartSessionsAbi
from .errors import (
    InvalidConfiguration,
    InvalidEnableSignature,
    MalformedSignature,
    UnknownSignatureMode,
    UnsupportedAccountType,
)
from .flz import flz_compress, flz_decompress
from .ids import permission_id as derive_permission_id
from .models import (
    AccountType,
    ChainDigest,
    EnableSession,
    EnableSessionData,
    Session,
    SmartSessionMode,
    SmartSessionSignature,
)

logger = logging.getLogger(__name__)

KERNEL_ENABLE_TAG = b"\x01"


def resolve_account_type(account_type: Union[AccountType, str]) -> AccountType:
    try:
        return AccountType(account_type)
    except ValueError as exc:
        raise UnsupportedAccountType(account_type) from exc


def format_permission_enable_sig(
    signature: bytes,
    validator: str,
    account_type: Union[AccountType, str],
) -> bytes:
    """validator || signature, with a leading 0x01 tag for Kernel accounts."""
    account_type = resolve_account_type(account_type)
    packed = to_canonical_address(validator) + bytes(signature)
    if account_type == AccountType.KERNEL:
        return KERNEL_ENABLE_TAG + packed
    return packed


def parse_permission_enable_sig(
    data: bytes,
    account_type: Union[AccountType, str],
) -> tuple:
    """Split a formatted permissionEnableSig into (validator, signature)."""
    account_type = resolve_account_type(account_type)
    offset = 0
    if account_type == AccountType.KERNEL:
        if not data.startswith(KERNEL_ENABLE_TAG):
            raise InvalidEnableSignature("Invalid permissionEnableSig for kernel account")
        offset = 1
    if len(data) < offset + 20:
        raise MalformedSignature("permissionEnableSig is shorter than a validator address")
    validator = to_checksum_address(data[offset:offset + 20])
    return validator, data[offset + 20:]


def encode_enable_session_signature(
    enable_session_data: EnableSessionData,
    signature: bytes,
) -> bytes:
    """abi.encode(EnableSession, bytes signature) before compression."""
    enable_session = enable_session_data.enable_session
    return encode(
        list(ENABLE_SESSION_SIGNATURE_TYPES),
        [
            (
                enable_session.chain_digest_index,
                [digest.to_abi() for digest in enable_session.hashes_and_chain_ids],
                enable_session.session_to_enable.to_abi(),
                format_permission_enable_sig(
                    signature=enable_session.permission_enable_sig,
                    validator=enable_session_data.validator,
                    account_type=enable_session_data.account_type,
                ),
            ),
            bytes(signature),
        ],
    )


def encode_smart_session_signature(value: SmartSessionSignature) -> bytes:
    """Encode a session signature for the account's validation path."""
    mode = value.mode

    if mode == SmartSessionMode.USE:
        if len(value.permission_id) != 32:
            raise InvalidConfiguration("permissionId must be 32 bytes")
        return mode.to_byte() + value.permission_id + value.signature

    if mode in (SmartSessionMode.ENABLE, SmartSessionMode.UNSAFE_ENABLE):
        if value.enable_session_data is None:
            raise InvalidConfiguration("enableSession is required for ENABLE mode")
        payload = encode_enable_session_signature(
            value.enable_session_data, value.signature
        )
        return mode.to_byte() + flz_compress(payload)

    raise UnknownSignatureMode(mode)


def decode_smart_session_signature(
    data: bytes,
    account_type: Optional[Union[AccountType, str]] = None,
) -> SmartSessionSignature:
    """
    Decode a session signature.

    For ENABLE modes the permission id is re-derived from the embedded session
    rather than trusted from the wire, and ``account_type`` decides whether the
    permissionEnableSig carries the Kernel tag byte.
    """
    data = bytes(data)
    if not data:
        raise MalformedSignature("Empty signature")

    try:
        mode = SmartSessionMode(data[0])
    except ValueError as exc:
        raise UnknownSignatureMode(f"0x{data[0]:02x}") from exc

    if mode == SmartSessionMode.USE:
        if len(data) < 33:
            raise MalformedSignature("USE signature is shorter than mode + permissionId")
        return SmartSessionSignature(
            mode=mode,
            permission_id=data[1:33],
            signature=data[33:],
        )

    if account_type is None:
        raise InvalidConfiguration("account type is required for ENABLE mode decoding")
    account_type = resolve_account_type(account_type)

    try:
        payload = flz_decompress(data[1:])
        enable_tuple, signature = decode(list(ENABLE_SESSION_SIGNATURE_TYPES), payload)
    except (ValueError, DecodingError) as exc:
        raise MalformedSignature(f"Cannot decode enable session payload: {exc}") from exc

    chain_digest_index, raw_digests, raw_session, permission_enable_sig = enable_tuple
    hashes_and_chain_ids = tuple(
        ChainDigest(chain_id=chain_id, session_digest=digest)
        for chain_id, digest in raw_digests
    )
    # The session's chain is the one its digest index points at
    chain_id = 0
    if chain_digest_index < len(hashes_and_chain_ids):
        chain_id = hashes_and_chain_ids[chain_digest_index].chain_id
    session = Session.from_abi(raw_session, chain_id=chain_id)

    validator, owner_signature = parse_permission_enable_sig(
        permission_enable_sig, account_type
    )

    return SmartSessionSignature(
        mode=mode,
        permission_id=derive_permission_id(session),
        signature=signature,
        enable_session_data=EnableSessionData(
            enable_session=EnableSession(
                chain_digest_index=chain_digest_index,
                hashes_and_chain_ids=hashes_and_chain_ids,
                session_to_enable=session,
                permission_enable_sig=owner_signature,
            ),
            validator=validator,
            account_type=account_type,
        ),
    )


async def encode_use_or_enable_signature(
    reader: ChainReader,
    smart_sessions_address: str,
    account: str,
    permission_id: bytes,
    signature: bytes,
    enable_session_data: EnableSessionData,
) -> bytes:
    """USE encoding when the permission is already enabled on-chain, ENABLE otherwise."""
    enabled = await reader.call(
        CallRequest(
            address=smart_sessions_address,
            function=SmartSessionsAbi.is_permission_enabled,
            args=(permission_id, account),
        )
    )
    mode = SmartSessionMode.USE if enabled else SmartSessionMode.ENABLE
    logger.debug(f"Permission {permission_id.hex()} enabled={enabled}, encoding as {mode.name}")

    return encode_smart_session_signature(
        SmartSessionSignature(
            mode=mode,
            permission_id=permission_id,
            signature=signature,
            enable_session_data=None if enabled else enable_session_data,
        )
    )

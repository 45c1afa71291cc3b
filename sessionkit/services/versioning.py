"""
Protocol version detection and migration planning for deployed accounts.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from eth_utils import to_checksum_address

from ..config import settings
from ..core.sessions.constants import (
    IMPLEMENTATION_SLOT,
    PROTOCOL_CONSTANTS,
    PROTOCOL_VERSIONS,
    ProtocolVersion,
)
from ..core.sessions.errors import ChainQueryFailure
from ..providers.base import ChainReader

logger = logging.getLogger(__name__)

VersionLike = Union[ProtocolVersion, str]


def default_version() -> ProtocolVersion:
    """Version new accounts are created with."""
    return ProtocolVersion(settings.protocol_version)


async def detect_account_version(reader: ChainReader, account: str) -> Optional[ProtocolVersion]:
    """
    Match the account's EIP-1967 implementation against each version's Safe singleton.

    Versions are tried newest first, so when several versions share a
    singleton the newest one wins. Returns None for unknown implementations.
    """
    try:
        slot = await reader.get_storage_at(account, IMPLEMENTATION_SLOT)
    except Exception as exc:
        raise ChainQueryFailure(
            f"Cannot read implementation slot of {account}: {exc}",
            chain_id=getattr(reader, "chain_id", None),
            function_name="eth_getStorageAt",
        ) from exc

    implementation = to_checksum_address(bytes(slot)[-20:])
    for version in reversed(PROTOCOL_VERSIONS):
        if PROTOCOL_CONSTANTS[version].safe_singleton_address.lower() == implementation.lower():
            return version

    logger.info(f"Unknown implementation {implementation} for account {account}")
    return None


def needs_migration(current: VersionLike, target: Optional[VersionLike] = None) -> bool:
    current = ProtocolVersion(current)
    target = ProtocolVersion(target) if target is not None else default_version()
    return PROTOCOL_VERSIONS.index(current) < PROTOCOL_VERSIONS.index(target)


def migration_path(source: VersionLike, target: Optional[VersionLike] = None) -> List[ProtocolVersion]:
    """Versions to step through after ``source`` up to and including ``target``."""
    source = ProtocolVersion(source)
    target = ProtocolVersion(target) if target is not None else default_version()
    start = PROTOCOL_VERSIONS.index(source)
    end = PROTOCOL_VERSIONS.index(target)
    if start >= end:
        return []
    return PROTOCOL_VERSIONS[start + 1:end + 1]


def version_info(version: VersionLike) -> dict:
    constants = PROTOCOL_CONSTANTS[ProtocolVersion(version)]
    return {
        "version": constants.version.value,
        "safeSingletonAddress": constants.safe_singleton_address,
        "safe4337ModuleAddress": constants.safe4337_module_address,
        "erc7579LaunchpadAddress": constants.erc7579_launchpad_address,
        "validators": {
            "ownableValidator": constants.validators.ownable_validator,
            "webauthnValidator": constants.validators.webauthn_validator,
            "webauthnSessionValidator": constants.validators.webauthn_session_validator,
        },
        "attesters": list(constants.attesters),
    }

"""
ERC-7579 module install/uninstall payloads.

Install is check-then-act: the builder reads ``isModuleInstalled`` first and
returns nothing when the module is already there. That keeps repeated calls
harmless at this layer; it does not make the install atomic on chain.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from eth_abi import encode

from ...providers.base import CallRequest, ChainReader
from .abi import ERC7579AccountAbi
from .constants import MODULE_TYPE_IDS, SENTINEL_ADDRESS, ModuleType, ProtocolConstants
from .errors import InvalidConfiguration
from .models import Transaction, as_bytes

logger = logging.getLogger(__name__)


def module_type_id(module_type: Union[ModuleType, str]) -> int:
    try:
        return MODULE_TYPE_IDS[ModuleType(module_type)]
    except ValueError as exc:
        raise InvalidConfiguration(f"Invalid module type: {module_type}") from exc


class ModuleTransactionBuilder:
    """Module management calls for accounts on one chain."""

    def __init__(self, reader: ChainReader, constants: ProtocolConstants):
        self.reader = reader
        self.constants = constants

    async def is_installed(
        self,
        account: str,
        module: str,
        module_type: Union[ModuleType, str] = ModuleType.VALIDATOR,
        additional_context: bytes = b"",
    ) -> bool:
        """True only when the account confirms the module. Read errors count as not installed."""
        type_id = module_type_id(module_type)
        try:
            installed = await self.reader.call(
                CallRequest(
                    address=account,
                    function=ERC7579AccountAbi.is_module_installed,
                    args=(type_id, module, as_bytes(additional_context)),
                )
            )
        except Exception as exc:
            logger.debug(f"isModuleInstalled({module}) on {account} failed: {exc}")
            return False
        return bool(installed)

    def build_install_module(
        self,
        account: str,
        module: str,
        module_type: Union[ModuleType, str],
        init_data: bytes = b"",
    ) -> Transaction:
        """``installModule`` called on the account itself."""
        return Transaction(
            to=account,
            value=0,
            data=ERC7579AccountAbi.install_module.encode_call(
                module_type_id(module_type), module, as_bytes(init_data)
            ),
        )

    async def build_install_smart_session_module(self, account: str) -> Optional[Transaction]:
        """Install transaction for the Smart Sessions validator, or None if already installed."""
        smart_sessions = self.constants.smart_sessions
        if await self.is_installed(account, smart_sessions, ModuleType.VALIDATOR):
            logger.info(f"Smart Sessions already installed on {account}")
            return None
        return self.build_install_module(account, smart_sessions, ModuleType.VALIDATOR, b"")

    async def build_uninstall_module(
        self,
        account: str,
        module: str,
        module_type: Union[ModuleType, str],
        previous_module: str,
    ) -> Transaction:
        """
        ``uninstallModule`` with ``deInitData = abi.encode(prev, "")``.

        Validators live in a linked list on the account, so removal needs the
        entry before ``module``. ``previous_module`` is used when it is itself
        an installed validator, otherwise the list head sentinel.
        """
        type_id = module_type_id(module_type)
        prev_installed = await self.is_installed(account, previous_module, ModuleType.VALIDATOR)
        prev = previous_module if prev_installed else SENTINEL_ADDRESS
        de_init_data = encode(["address", "bytes"], [prev, b""])

        return Transaction(
            to=account,
            value=0,
            data=ERC7579AccountAbi.uninstall_module.encode_call(type_id, module, de_init_data),
        )

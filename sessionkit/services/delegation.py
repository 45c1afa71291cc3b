"""
Delegated account lifecycle.

A delegated account is a session on the owner's smart account: creating one
installs the Smart Sessions module when needed and enables the session,
updating it re-scopes per-token actions, removing it drops the session.
All methods return transactions for the caller to submit.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from ..core.sessions.constants import ProtocolConstants, ProtocolVersion, get_protocol_constants
from ..core.sessions.entitlements import EntitlementReader
from ..core.sessions.errors import InvalidConfiguration
from ..core.sessions.models import (
    PolicyParams,
    PolicyType,
    SessionValidator,
    SpendLimitEntitlement,
    SudoEntitlement,
    Token,
    Transaction,
)
from ..core.sessions.modules import ModuleTransactionBuilder
from ..core.sessions.orchestrator import SmartSessionOrchestrator
from ..providers.base import ChainReader
from ..providers.rpc import JsonRpcChainReader
from .versioning import default_version

logger = logging.getLogger(__name__)


class DelegationService:
    """Create, update, remove and inspect delegated accounts on one chain."""

    def __init__(self, reader: ChainReader, constants: ProtocolConstants):
        self.reader = reader
        self.constants = constants
        self.orchestrator = SmartSessionOrchestrator(constants)
        self.modules = ModuleTransactionBuilder(reader, constants)
        self.entitlements = EntitlementReader(reader, constants)

    @classmethod
    def for_chain(
        cls,
        chain_id: int,
        version: Optional[Union[ProtocolVersion, str]] = None,
    ) -> "DelegationService":
        """Service backed by the configured RPC endpoint for ``chain_id``."""
        return cls(
            reader=JsonRpcChainReader.for_chain(chain_id),
            constants=get_protocol_constants(version or default_version()),
        )

    @property
    def chain_id(self) -> int:
        return self.reader.chain_id

    async def create_delegated_account(
        self,
        account: str,
        validator: SessionValidator,
        params: PolicyParams,
    ) -> List[Transaction]:
        """Module install (if missing) followed by ``enableSessions``."""
        transactions: List[Transaction] = []

        install = await self.modules.build_install_smart_session_module(account)
        if install is not None:
            transactions.append(install)

        transactions.append(
            self.orchestrator.build_enable_session(self.chain_id, params, validator)
        )
        logger.info(
            f"Delegated account for {account} on chain {self.chain_id}: "
            f"{len(transactions)} transaction(s)"
        )
        return transactions

    async def update_delegated_account(
        self,
        validator: SessionValidator,
        params: PolicyParams,
    ) -> List[Transaction]:
        """Disable calls first, then enable calls."""
        disable = self.orchestrator.build_disable_action_policies(self.chain_id, params, validator)
        enable = self.orchestrator.build_enable_action_policies(self.chain_id, params, validator)
        return [*disable, *enable]

    async def remove_delegated_account(self, validator: SessionValidator) -> Transaction:
        return self.orchestrator.build_remove_session(validator, self.chain_id)

    async def get_delegated_account(
        self,
        tokens: Sequence[Token],
        account: str,
        validator: SessionValidator,
        policy: Union[PolicyType, str],
    ) -> Union[List[SpendLimitEntitlement], List[SudoEntitlement]]:
        try:
            policy = PolicyType(policy)
        except ValueError as exc:
            raise InvalidConfiguration(f"Unknown policy type: {policy}") from exc

        if policy == PolicyType.SPEND_LIMIT:
            return await self.entitlements.spend_limit_entitlements(tokens, account, validator)
        return await self.entitlements.sudo_entitlements(tokens, account, validator)

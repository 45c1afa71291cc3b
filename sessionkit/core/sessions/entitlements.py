"""
Entitlement reader.

Reconstructs what a session key may still do with each token from on-chain
policy state: remaining spend allowance under the spending-limits policy, or
which of transfer/approve the sudo policy enables. Every query is a single
multicall; a failing entry only zeroes its own token.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from ...providers.base import CallRequest, CallResult, ChainReader
from .abi import SmartSessionsAbi, SpendingLimitPolicyAbi
from .constants import (
    ERC20_APPROVE_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    ZERO_ADDRESS,
    ProtocolConstants,
)
from .ids import action_id, config_id
from .models import (
    PolicyEnabled,
    PolicyType,
    SessionValidator,
    SpendLimitEntitlement,
    SudoEntitlement,
    Subaccount,
    Token,
    TokenPermissions,
)
from .orchestrator import SmartSessionOrchestrator
from .validators import get_session_validator

logger = logging.getLogger(__name__)


def format_units(value: int, decimals: int) -> str:
    """Integer amount in native units to a decimal string, trailing zeros dropped."""
    negative = value < 0
    digits = str(abs(value)).rjust(decimals, "0")
    split = len(digits) - decimals
    integer = digits[:split] or "0"
    fraction = digits[split:].rstrip("0")
    result = integer + (f".{fraction}" if fraction else "")
    return f"-{result}" if negative else result


class EntitlementReader:
    """Per-token session entitlements for accounts on one chain."""

    def __init__(self, reader: ChainReader, constants: ProtocolConstants):
        self.reader = reader
        self.constants = constants
        self.orchestrator = SmartSessionOrchestrator(constants)

    def _chain_id(self, chain_id: Optional[int]) -> int:
        return self.reader.chain_id if chain_id is None else chain_id

    async def _multicall(self, requests: List[CallRequest]) -> List[CallResult]:
        if not requests:
            return []
        try:
            results = await self.reader.multicall(requests)
        except Exception as exc:
            logger.warning(f"Batched read of {len(requests)} calls failed: {exc}")
            return [CallResult(success=False, error=str(exc)) for _ in requests]
        if len(results) != len(requests):
            logger.warning(
                f"Multicall returned {len(results)} results for {len(requests)} calls"
            )
            return [CallResult(success=False, error="result count mismatch") for _ in requests]
        return results

    async def check_policy_enabled(
        self,
        tokens: Sequence[Token],
        account: str,
        validator: SessionValidator,
        chain_id: Optional[int] = None,
    ) -> List[PolicyEnabled]:
        """Whether the spend-limit policy is active on each token's transfer action."""
        pid = self.orchestrator.build_use_session(self._chain_id(chain_id), validator).permission_id
        policy = self.constants.policies.spend_limit_policy

        results = await self._multicall([
            CallRequest(
                address=self.constants.smart_sessions,
                function=SmartSessionsAbi.is_action_policy_enabled,
                args=(account, pid, action_id(token.address, ERC20_TRANSFER_SELECTOR), policy),
            )
            for token in tokens
        ])

        enabled = []
        for token, result in zip(tokens, results):
            if not result.success:
                logger.debug(f"isActionPolicyEnabled failed for {token.address}: {result.error}")
            enabled.append(
                PolicyEnabled(address=token.address, enabled=bool(result.success and result.result))
            )
        return enabled

    async def spend_limit_entitlements(
        self,
        tokens: Sequence[Token],
        account: str,
        validator: SessionValidator,
        chain_id: Optional[int] = None,
    ) -> List[SpendLimitEntitlement]:
        """
        Limit, spent and remaining allowance per token.

        ``limit`` and ``spent`` are formatted with the token's decimals;
        ``balance`` stays in native units. Tokens whose read failed or whose
        policy is not enabled report zeros.
        """
        pid = self.orchestrator.build_use_session(self._chain_id(chain_id), validator).permission_id
        smart_sessions = self.constants.smart_sessions

        policy_data = await self._multicall([
            CallRequest(
                address=self.constants.policies.spend_limit_policy,
                function=SpendingLimitPolicyAbi.get_policy_data,
                args=(
                    config_id(pid, action_id(token.address, ERC20_TRANSFER_SELECTOR), account),
                    smart_sessions,
                    token.address,
                    account,
                ),
            )
            for token in tokens
        ])
        enabled = await self.check_policy_enabled(tokens, account, validator, chain_id)

        entitlements = []
        for token, result, policy in zip(tokens, policy_data, enabled):
            if not result.success or not result.result or not policy.enabled:
                if not result.success:
                    logger.debug(f"getPolicyData failed for {token.address}: {result.error}")
                entitlements.append(
                    SpendLimitEntitlement(address=token.address, limit="0", spent="0", balance=0)
                )
                continue

            limit, spent = result.result
            entitlements.append(
                SpendLimitEntitlement(
                    address=token.address,
                    limit=format_units(limit, token.decimals),
                    spent=format_units(spent, token.decimals),
                    balance=limit - spent,
                )
            )
        return entitlements

    async def sudo_entitlements(
        self,
        tokens: Sequence[Token],
        account: str,
        validator: SessionValidator,
        chain_id: Optional[int] = None,
    ) -> List[SudoEntitlement]:
        """swap = approve action enabled, spend = transfer action enabled."""
        pid = self.orchestrator.build_use_session(self._chain_id(chain_id), validator).permission_id

        results = await self._multicall([
            CallRequest(
                address=self.constants.smart_sessions,
                function=SmartSessionsAbi.get_enabled_actions,
                args=(account, pid),
            )
            for _ in tokens
        ])

        entitlements = []
        for token, result in zip(tokens, results):
            if not result.success or result.result is None:
                if not result.success:
                    logger.debug(f"getEnabledActions failed for {token.address}: {result.error}")
                entitlements.append(SudoEntitlement(address=token.address))
                continue

            enabled_actions = {bytes(a) for a in result.result}
            entitlements.append(
                SudoEntitlement(
                    address=token.address,
                    permissions=TokenPermissions(
                        swap=action_id(token.address, ERC20_APPROVE_SELECTOR) in enabled_actions,
                        spend=action_id(token.address, ERC20_TRANSFER_SELECTOR) in enabled_actions,
                    ),
                )
            )
        return entitlements

    async def delegated_tokens(
        self,
        tokens: Sequence[Token],
        subaccount: Subaccount,
        account: str,
    ) -> List[Token]:
        """
        Narrow an account's portfolio to what ``subaccount`` may move.

        Spend-limit balances are capped at the remaining allowance; sudo keeps
        tokens with either permission. The native token is never delegated.
        Tokens left with a zero balance are dropped.
        """
        tokens = [t for t in tokens if t.address.lower() != ZERO_ADDRESS]
        validator = get_session_validator(subaccount, self.constants)
        chain_id = subaccount.chain_id or None

        updated: List[Token] = []
        if subaccount.policy == PolicyType.SPEND_LIMIT:
            entitlements = await self.spend_limit_entitlements(tokens, account, validator, chain_id)
            for token, entitlement in zip(tokens, entitlements):
                allowance = format_units(entitlement.balance, token.decimals)
                balance = allowance if entitlement.balance < token.raw_balance else token.balance
                updated.append(
                    replace(
                        token,
                        balance=balance,
                        usd_value=float(allowance) * (token.price or 0),
                    )
                )
        elif subaccount.policy == PolicyType.SUDO:
            entitlements = await self.sudo_entitlements(tokens, account, validator, chain_id)
            for token, entitlement in zip(tokens, entitlements):
                allowed = entitlement.permissions.spend or entitlement.permissions.swap
                updated.append(replace(token, balance=token.balance if allowed else "0"))

        return [t for t in updated if t.balance != "0"]

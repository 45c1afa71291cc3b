"""
Smart Session orchestration.

Builds the session shapes the Smart Sessions module understands, derives
their permission ids, and turns policy parameters into call payloads. Chain
state is only ever read, through a ``ChainReader``; nothing here submits
transactions.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ...providers.base import CallRequest, ChainReader, Signer
from .abi import ContractFunction, SmartSessionsAbi
from .constants import (
    DEFAULT_SESSION_SALT,
    ERC1271_MAGIC_VALUE,
    ERC20_APPROVE_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    SWAP_AGGREGATOR_ALLOWLIST,
    ProtocolConstants,
)
from .digest import chain_session_from, hash_chain_sessions
from .errors import ChainQueryFailure, InvalidConfiguration, MissingClientForChain
from .ids import action_id, permission_id
from .models import (
    AccountType,
    ActionData,
    ChainDigest,
    EnableSession,
    EnableSessionData,
    EnableSessionDetails,
    ERC7739Context,
    ERC7739Data,
    PolicyData,
    PolicyParams,
    Session,
    SessionValidator,
    SmartSessionMode,
    SmartSessionSignature,
    SpendLimitParams,
    SudoParams,
    TokenLimit,
    Transaction,
)
from .policies import spend_limit_policy_data, sudo_policy_data
from .signature import resolve_account_type

logger = logging.getLogger(__name__)


class SmartSessionOrchestrator:
    """
    Session and policy call builder for one protocol version.

    All builders are pure: they derive identifiers from the validator
    reference and encode calldata against the Smart Sessions module of
    ``constants``. Read helpers take the ``ChainReader`` of the chain being
    queried.
    """

    def __init__(self, constants: ProtocolConstants):
        self.constants = constants
        self.smart_sessions = constants.smart_sessions

    # ------------------------------------------------------------------
    # Session shapes
    # ------------------------------------------------------------------

    def session_for(
        self,
        chain_id: int,
        validator: SessionValidator,
        actions: Sequence[ActionData] = (),
        with_sudo_user_op_policy: bool = True,
    ) -> Session:
        """Session scoped by ``validator`` with the given actions."""
        user_op_policies = [sudo_policy_data(self.constants)] if with_sudo_user_op_policy else []
        return Session(
            session_validator=validator.address,
            session_validator_init_data=validator.init_data,
            salt=validator.salt or DEFAULT_SESSION_SALT,
            user_op_policies=user_op_policies,
            erc7739_policies=ERC7739Data(),
            actions=actions,
            permit_erc4337_paymaster=True,
            chain_id=chain_id,
        )

    def permission_id_for(self, validator: SessionValidator, chain_id: int = 0) -> bytes:
        return permission_id(self.session_for(chain_id, validator))

    def build_use_session(self, chain_id: int, validator: SessionValidator) -> SmartSessionSignature:
        """
        Use-mode details for an already enabled session.

        Only validator and salt feed the permission id, so a bare session
        without actions or policies is enough. No chain access.
        """
        session = self.session_for(chain_id, validator, with_sudo_user_op_policy=False)
        return SmartSessionSignature(
            mode=SmartSessionMode.USE,
            permission_id=permission_id(session),
            signature=b"",
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _spend_limit_action(self, entry: TokenLimit) -> ActionData:
        return ActionData(
            action_target=entry.token,
            action_target_selector=ERC20_TRANSFER_SELECTOR,
            action_policies=[spend_limit_policy_data([entry], self.constants)],
        )

    def _sudo_action(self, target: str, selector: bytes) -> ActionData:
        return ActionData(
            action_target=target,
            action_target_selector=selector,
            action_policies=[sudo_policy_data(self.constants)],
        )

    def swap_aggregator_actions(self) -> List[ActionData]:
        """Unconditional sudo actions for the allow-listed swap routers."""
        return [
            self._sudo_action(target, selector)
            for target, selectors in SWAP_AGGREGATOR_ALLOWLIST
            for selector in selectors
        ]

    def actions_for(self, params: PolicyParams) -> List[ActionData]:
        """Full action set for a new session with ``params``."""
        _check_params(params)

        if isinstance(params, SpendLimitParams):
            return [self._spend_limit_action(entry) for entry in params.token_limits]

        actions = self.swap_aggregator_actions()
        for access in params.token_access:
            if access.is_swap_enabled:
                actions.append(self._sudo_action(access.token, ERC20_APPROVE_SELECTOR))
            if access.is_transfer_enabled:
                actions.append(self._sudo_action(access.token, ERC20_TRANSFER_SELECTOR))
        return actions

    # ------------------------------------------------------------------
    # Transaction builders
    # ------------------------------------------------------------------

    def _transaction(self, function: ContractFunction, *args: Any) -> Transaction:
        return Transaction(to=self.smart_sessions, value=0, data=function.encode_call(*args))

    def build_enable_session(
        self,
        chain_id: int,
        params: PolicyParams,
        validator: SessionValidator,
    ) -> Transaction:
        """``enableSessions([session])`` for a new session governed by ``params``."""
        session = self.session_for(chain_id, validator, actions=self.actions_for(params))
        logger.info(
            f"Enable session {permission_id(session).hex()} on chain {chain_id} "
            f"({params.policy.value}, {len(session.actions)} actions)"
        )
        return self._transaction(SmartSessionsAbi.enable_sessions, [session.to_abi()])

    def build_remove_session(self, validator: SessionValidator, chain_id: int) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.remove_session,
            self.permission_id_for(validator, chain_id),
        )

    def build_disable_action_policies(
        self,
        chain_id: int,
        params: PolicyParams,
        validator: SessionValidator,
    ) -> List[Transaction]:
        """
        Disable calls for every token whose permission was withdrawn.

        Spend limits: a zero amount disables the token's transfer policy.
        Sudo: an explicit ``False`` flag disables that action; ``None`` leaves
        it alone. Apply these before the matching enable list.
        """
        _check_params(params)
        pid = self.permission_id_for(validator, chain_id)
        transactions: List[Transaction] = []

        if isinstance(params, SpendLimitParams):
            policy = self.constants.policies.spend_limit_policy
            for entry in params.token_limits:
                if entry.amount == 0:
                    transactions.append(
                        self._disable(pid, entry.token, ERC20_TRANSFER_SELECTOR, policy)
                    )
            return transactions

        policy = self.constants.policies.sudo_policy
        for access in params.token_access:
            if access.is_transfer_enabled is False:
                transactions.append(
                    self._disable(pid, access.token, ERC20_TRANSFER_SELECTOR, policy)
                )
            if access.is_swap_enabled is False:
                transactions.append(
                    self._disable(pid, access.token, ERC20_APPROVE_SELECTOR, policy)
                )
        return transactions

    def _disable(self, pid: bytes, token: str, selector: bytes, policy: str) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.disable_action_policies,
            pid,
            action_id(token, selector),
            [policy],
        )

    def build_enable_action_policies(
        self,
        chain_id: int,
        params: PolicyParams,
        validator: SessionValidator,
    ) -> List[Transaction]:
        """
        Enable calls for every token whose permission was granted.

        Spend limits: one call per token with a positive amount. Sudo: all
        ``True`` flags are batched into a single call.
        """
        _check_params(params)
        pid = self.permission_id_for(validator, chain_id)

        if isinstance(params, SpendLimitParams):
            return [
                self._transaction(
                    SmartSessionsAbi.enable_action_policies,
                    pid,
                    [self._spend_limit_action(entry).to_abi()],
                )
                for entry in params.token_limits
                if entry.amount > 0
            ]

        actions: List[ActionData] = []
        for access in params.token_access:
            if access.is_transfer_enabled is True:
                actions.append(self._sudo_action(access.token, ERC20_TRANSFER_SELECTOR))
            if access.is_swap_enabled is True:
                actions.append(self._sudo_action(access.token, ERC20_APPROVE_SELECTOR))
        if not actions:
            return []
        return [
            self._transaction(
                SmartSessionsAbi.enable_action_policies,
                pid,
                [a.to_abi() for a in actions],
            )
        ]

    def build_enable_user_op_policies(
        self, permission_id: bytes, policies: Sequence[PolicyData]
    ) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.enable_user_op_policies,
            permission_id,
            [p.to_abi() for p in policies],
        )

    def build_disable_user_op_policies(
        self, permission_id: bytes, policies: Sequence[str]
    ) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.disable_user_op_policies, permission_id, list(policies)
        )

    def build_enable_erc1271_policies(
        self, permission_id: bytes, erc1271_policies: ERC7739Data
    ) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.enable_erc1271_policies,
            permission_id,
            erc1271_policies.to_abi(),
        )

    def build_disable_erc1271_policies(
        self,
        permission_id: bytes,
        policies: Sequence[str],
        contents: Sequence[ERC7739Context] = (),
    ) -> Transaction:
        return self._transaction(
            SmartSessionsAbi.disable_erc1271_policies,
            permission_id,
            list(policies),
            [c.to_abi() for c in contents],
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read(self, reader: ChainReader, function: ContractFunction, *args: Any) -> Any:
        try:
            return await reader.call(
                CallRequest(address=self.smart_sessions, function=function, args=args)
            )
        except ChainQueryFailure:
            raise
        except Exception as exc:
            chain_id = getattr(reader, "chain_id", None)
            logger.error(f"{function.name} failed on chain {chain_id}: {exc}")
            raise ChainQueryFailure(
                f"{function.name} failed: {exc}",
                chain_id=chain_id,
                function_name=function.name,
            ) from exc

    async def get_session_nonce(
        self, reader: ChainReader, permission_id: bytes, account: str
    ) -> int:
        return int(await self._read(reader, SmartSessionsAbi.get_nonce, permission_id, account))

    async def get_session_digest(
        self,
        reader: ChainReader,
        session: Session,
        account: str,
        mode: SmartSessionMode = SmartSessionMode.ENABLE,
    ) -> bytes:
        return await self._read(
            reader,
            SmartSessionsAbi.get_session_digest,
            permission_id(session),
            account,
            session.to_abi(),
            int(mode),
        )

    async def is_session_enabled(
        self, reader: ChainReader, permission_id: bytes, account: str
    ) -> bool:
        return bool(
            await self._read(reader, SmartSessionsAbi.is_permission_enabled, permission_id, account)
        )

    async def is_valid_signature(
        self, reader: ChainReader, sender: str, digest: bytes, signature: bytes
    ) -> bool:
        """ERC-1271 check of a session signature against the module."""
        result = await self._read(
            reader, SmartSessionsAbi.is_valid_signature_with_sender, sender, digest, signature
        )
        return bytes(result) == ERC1271_MAGIC_VALUE

    # ------------------------------------------------------------------
    # Multi-chain enable
    # ------------------------------------------------------------------

    async def get_enable_session_details(
        self,
        sessions: Sequence[Session],
        account: str,
        account_type: Union[AccountType, str],
        readers: Iterable[ChainReader],
        session_index: int = 0,
        enable_mode: SmartSessionMode = SmartSessionMode.ENABLE,
        enable_validator_address: Optional[str] = None,
        permit_generic_policy: bool = False,
        permit_admin_access: bool = False,
        ignore_security_attestations: bool = False,
    ) -> EnableSessionDetails:
        """
        Collect what the account owner signs to enable ``sessions``.

        For every session the nonce and digest are read on its own chain, and
        a single MultiChainSession hash covers them all. The returned details
        carry an empty ``permission_enable_sig``; see :meth:`sign_enable_session`.
        """
        if not sessions:
            raise InvalidConfiguration("At least one session is required")
        if not 0 <= session_index < len(sessions):
            raise InvalidConfiguration(
                f"Session index {session_index} out of range",
                {"sessions": len(sessions)},
            )
        account_type = resolve_account_type(account_type)
        by_chain: Dict[int, ChainReader] = {reader.chain_id: reader for reader in readers}

        chain_digests: List[ChainDigest] = []
        chain_sessions = []
        for session in sessions:
            reader = by_chain.get(session.chain_id)
            if reader is None:
                raise MissingClientForChain(session.chain_id)

            pid = permission_id(session)
            nonce = await self.get_session_nonce(reader, pid, account)
            digest = await self.get_session_digest(reader, session, account, enable_mode)

            chain_digests.append(ChainDigest(chain_id=session.chain_id, session_digest=digest))
            chain_sessions.append(
                chain_session_from(
                    session,
                    account=account,
                    smart_session=self.smart_sessions,
                    nonce=nonce,
                    permit_generic_policy=permit_generic_policy,
                    permit_admin_access=permit_admin_access,
                    ignore_security_attestations=ignore_security_attestations,
                )
            )

        session_to_enable = sessions[session_index]
        logger.debug(
            f"Enable details for {len(sessions)} session(s), "
            f"chains={[d.chain_id for d in chain_digests]}"
        )
        return EnableSessionDetails(
            permission_enable_hash=hash_chain_sessions(chain_sessions),
            mode=enable_mode,
            permission_id=permission_id(session_to_enable),
            enable_session_data=EnableSessionData(
                enable_session=EnableSession(
                    chain_digest_index=session_index,
                    hashes_and_chain_ids=chain_digests,
                    session_to_enable=session_to_enable,
                    permission_enable_sig=b"",
                ),
                validator=enable_validator_address or session_to_enable.session_validator,
                account_type=account_type,
            ),
        )

    async def sign_enable_session(
        self, details: EnableSessionDetails, signer: Signer
    ) -> EnableSessionDetails:
        """Have the owner sign the multi-chain hash and attach it as permissionEnableSig."""
        owner_signature = await signer.sign(details.permission_enable_hash)
        data = details.enable_session_data
        return replace(
            details,
            enable_session_data=replace(
                data,
                enable_session=replace(data.enable_session, permission_enable_sig=owner_signature),
            ),
        )


def _check_params(params: PolicyParams) -> None:
    if isinstance(params, SpendLimitParams):
        for entry in params.token_limits:
            if entry.amount < 0:
                raise InvalidConfiguration(
                    "Spend limit amount must be non-negative",
                    {"token": entry.token, "amount": str(entry.amount)},
                )
        return
    if isinstance(params, SudoParams):
        return
    raise InvalidConfiguration(f"Unknown policy parameters: {type(params).__name__}")

"""
Tests for the Smart Session orchestrator.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from eth_abi import decode

from sessionkit.core.sessions.abi import SmartSessionsAbi
from sessionkit.core.sessions.constants import (
    DEFAULT_SESSION_SALT,
    ERC20_APPROVE_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    KURU_ROUTER_ADDRESS,
    LIFI_DIAMOND_ADDRESS,
    get_protocol_constants,
)
from sessionkit.core.sessions.digest import chain_session_from, hash_chain_sessions
from sessionkit.core.sessions.errors import (
    ChainQueryFailure,
    InvalidConfiguration,
    MissingClientForChain,
)
from sessionkit.core.sessions.ids import action_id, permission_id
from sessionkit.core.sessions.models import (
    AccountType,
    Session,
    SessionValidator,
    SmartSessionMode,
    SpendLimitParams,
    SudoParams,
    TokenAccess,
    TokenLimit,
)
from sessionkit.core.sessions.orchestrator import SmartSessionOrchestrator
from sessionkit.core.sessions.policies import decode_spend_limit_init_data, encode_validation_data
from sessionkit.core.sessions.signature import (
    decode_smart_session_signature,
    encode_smart_session_signature,
)

CONSTANTS = get_protocol_constants("1.1.0")
OWNER = "0x1111111111111111111111111111111111111111"
ACCOUNT = "0x2222222222222222222222222222222222222222"
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
WETH = "0x4200000000000000000000000000000000000006"
DAI = "0x50c5725949a6f0c72e6c4a641f24049a917db0cb"


@pytest.fixture
def orchestrator():
    return SmartSessionOrchestrator(CONSTANTS)


@pytest.fixture
def validator():
    return SessionValidator(
        address=CONSTANTS.validators.ownable_validator,
        init_data=encode_validation_data(1, [OWNER]),
    )


def _args(function, data: bytes):
    assert data[:4] == function.selector
    return decode(list(function.inputs), data[4:])


def _enabled_sessions(tx):
    (sessions,) = _args(SmartSessionsAbi.enable_sessions, tx.data)
    return [Session.from_abi(s) for s in sessions]


def _action_keys(transactions):
    """Action ids touched by a list of disable/enable calls."""
    keys = set()
    for tx in transactions:
        if tx.data[:4] == SmartSessionsAbi.disable_action_policies.selector:
            _, aid, _ = _args(SmartSessionsAbi.disable_action_policies, tx.data)
            keys.add(aid)
        else:
            _, actions = _args(SmartSessionsAbi.enable_action_policies, tx.data)
            for selector, target, _ in actions:
                keys.add(action_id(target, selector))
    return keys


# =============================================================================
# Use / remove
# =============================================================================

def test_use_session_has_empty_signature(orchestrator, validator) -> None:
    use = orchestrator.build_use_session(8453, validator)

    assert use.mode == SmartSessionMode.USE
    assert use.signature == b""
    assert use.permission_id == permission_id(
        Session(
            session_validator=validator.address,
            session_validator_init_data=validator.init_data,
            salt=DEFAULT_SESSION_SALT,
        )
    )


def test_use_session_is_chain_independent(orchestrator, validator) -> None:
    assert (
        orchestrator.build_use_session(1, validator).permission_id
        == orchestrator.build_use_session(8453, validator).permission_id
    )


def test_explicit_salt_changes_permission_id(orchestrator, validator) -> None:
    salted = SessionValidator(address=validator.address, init_data=validator.init_data, salt=b"\x05" * 32)
    assert (
        orchestrator.build_use_session(1, salted).permission_id
        != orchestrator.build_use_session(1, validator).permission_id
    )


def test_remove_session(orchestrator, validator) -> None:
    tx = orchestrator.build_remove_session(validator, 8453)

    assert tx.to == CONSTANTS.smart_sessions
    assert tx.value == 0
    (pid,) = _args(SmartSessionsAbi.remove_session, tx.data)
    assert pid == orchestrator.build_use_session(8453, validator).permission_id


# =============================================================================
# Enable session
# =============================================================================

def test_enable_spend_limit_session(orchestrator, validator) -> None:
    params = SpendLimitParams([TokenLimit(token=USDC, amount=1000), TokenLimit(token=WETH, amount=5)])
    tx = orchestrator.build_enable_session(8453, params, validator)

    assert tx.to == CONSTANTS.smart_sessions
    (session,) = _enabled_sessions(tx)
    assert session.session_validator == validator.address
    assert session.salt == DEFAULT_SESSION_SALT
    assert [p.policy for p in session.user_op_policies] == [CONSTANTS.policies.sudo_policy]
    assert session.permit_erc4337_paymaster is True

    assert [a.action_target.lower() for a in session.actions] == [USDC, WETH]
    for action, amount in zip(session.actions, (1000, 5)):
        assert action.action_target_selector == ERC20_TRANSFER_SELECTOR
        (policy,) = action.action_policies
        assert policy.policy == CONSTANTS.policies.spend_limit_policy
        (limit,) = decode_spend_limit_init_data(policy.init_data)
        assert limit.amount == amount


def test_enable_sudo_session_includes_swap_allowlist(orchestrator, validator) -> None:
    params = SudoParams([
        TokenAccess(token=USDC, is_transfer_enabled=True, is_swap_enabled=True),
        TokenAccess(token=WETH, is_transfer_enabled=True, is_swap_enabled=False),
        TokenAccess(token=DAI),
    ])
    (session,) = _enabled_sessions(orchestrator.build_enable_session(1, params, validator))

    targets = [a.action_target.lower() for a in session.actions]
    assert targets[:6] == [LIFI_DIAMOND_ADDRESS.lower()] * 6
    assert targets[6] == KURU_ROUTER_ADDRESS.lower()

    token_actions = [(a.action_target.lower(), a.action_target_selector) for a in session.actions[7:]]
    assert token_actions == [
        (USDC, ERC20_APPROVE_SELECTOR),
        (USDC, ERC20_TRANSFER_SELECTOR),
        (WETH, ERC20_TRANSFER_SELECTOR),
    ]
    for action in session.actions:
        assert [p.policy for p in action.action_policies] == [CONSTANTS.policies.sudo_policy]
        assert action.action_policies[0].init_data == b""


def test_enable_session_permission_id_matches_use(orchestrator, validator) -> None:
    params = SpendLimitParams([TokenLimit(token=USDC, amount=1)])
    (session,) = _enabled_sessions(orchestrator.build_enable_session(1, params, validator))
    assert permission_id(session) == orchestrator.build_use_session(1, validator).permission_id


def test_unknown_policy_params(orchestrator, validator) -> None:
    with pytest.raises(InvalidConfiguration):
        orchestrator.build_enable_session(1, {"policy": "sudo"}, validator)


def test_negative_spend_limit(orchestrator, validator) -> None:
    params = SpendLimitParams([TokenLimit(token=USDC, amount=-1)])
    with pytest.raises(InvalidConfiguration):
        orchestrator.build_enable_action_policies(1, params, validator)


# =============================================================================
# Action policy diffs
# =============================================================================

def test_spend_limit_diff_partitions_tokens(orchestrator, validator) -> None:
    params = SpendLimitParams([
        TokenLimit(token=USDC, amount=0),
        TokenLimit(token=WETH, amount=500),
        TokenLimit(token=DAI, amount=0),
    ])
    disable = orchestrator.build_disable_action_policies(1, params, validator)
    enable = orchestrator.build_enable_action_policies(1, params, validator)

    assert len(disable) == 2
    assert len(enable) == 1
    assert _action_keys(disable).isdisjoint(_action_keys(enable))
    assert _action_keys(disable) == {
        action_id(USDC, ERC20_TRANSFER_SELECTOR),
        action_id(DAI, ERC20_TRANSFER_SELECTOR),
    }

    pid, _, policies = _args(SmartSessionsAbi.disable_action_policies, disable[0].data)
    assert pid == orchestrator.build_use_session(1, validator).permission_id
    assert [p.lower() for p in policies] == [CONSTANTS.policies.spend_limit_policy.lower()]


def test_spend_limit_enable_encodes_new_limit(orchestrator, validator) -> None:
    params = SpendLimitParams([TokenLimit(token=WETH, amount=500)])
    (tx,) = orchestrator.build_enable_action_policies(1, params, validator)

    _, actions = _args(SmartSessionsAbi.enable_action_policies, tx.data)
    ((selector, target, policies),) = actions
    assert selector == ERC20_TRANSFER_SELECTOR
    assert target.lower() == WETH
    ((policy, init_data),) = policies
    assert decode_spend_limit_init_data(init_data)[0].amount == 500


def test_sudo_diff_only_touches_explicit_flags(orchestrator, validator) -> None:
    params = SudoParams([
        TokenAccess(token=USDC, is_transfer_enabled=False, is_swap_enabled=True),
        TokenAccess(token=WETH, is_transfer_enabled=True),
        TokenAccess(token=DAI),
    ])
    disable = orchestrator.build_disable_action_policies(1, params, validator)
    enable = orchestrator.build_enable_action_policies(1, params, validator)

    assert _action_keys(disable) == {action_id(USDC, ERC20_TRANSFER_SELECTOR)}
    # all grants are batched into one call
    assert len(enable) == 1
    assert _action_keys(enable) == {
        action_id(USDC, ERC20_APPROVE_SELECTOR),
        action_id(WETH, ERC20_TRANSFER_SELECTOR),
    }
    assert _action_keys(disable).isdisjoint(_action_keys(enable))


def test_sudo_diff_without_grants_is_empty(orchestrator, validator) -> None:
    params = SudoParams([TokenAccess(token=USDC, is_swap_enabled=False)])
    assert orchestrator.build_enable_action_policies(1, params, validator) == []
    assert len(orchestrator.build_disable_action_policies(1, params, validator)) == 1


def test_user_op_and_erc1271_policy_builders(orchestrator) -> None:
    pid = b"\x42" * 32

    tx = orchestrator.build_disable_user_op_policies(pid, [CONSTANTS.policies.sudo_policy])
    assert _args(SmartSessionsAbi.disable_user_op_policies, tx.data)[0] == pid

    tx = orchestrator.build_disable_erc1271_policies(pid, [CONSTANTS.policies.sudo_policy])
    _, policies, contents = _args(SmartSessionsAbi.disable_erc1271_policies, tx.data)
    assert contents == ()
    assert tx.to == CONSTANTS.smart_sessions


# =============================================================================
# Reads
# =============================================================================

def _reader(chain_id: int, nonce: int = 0, digest: bytes = b"\x00" * 32):
    async def call(request):
        if request.function.name == "getNonce":
            return nonce
        if request.function.name == "getSessionDigest":
            return digest
        if request.function.name == "isPermissionEnabled":
            return True
        raise AssertionError(f"unexpected call {request.function.name}")

    reader = MagicMock()
    reader.chain_id = chain_id
    reader.call = AsyncMock(side_effect=call)
    return reader


@pytest.mark.asyncio
async def test_reads_use_smart_sessions_module(orchestrator) -> None:
    reader = _reader(1, nonce=7)
    pid = b"\x01" * 32

    assert await orchestrator.get_session_nonce(reader, pid, ACCOUNT) == 7
    assert await orchestrator.is_session_enabled(reader, pid, ACCOUNT) is True

    request = reader.call.await_args.args[0]
    assert request.address == CONSTANTS.smart_sessions
    assert request.args == (pid, ACCOUNT)


@pytest.mark.asyncio
async def test_read_failure_raises_chain_query_failure(orchestrator) -> None:
    reader = MagicMock()
    reader.chain_id = 10
    reader.call = AsyncMock(side_effect=RuntimeError("execution reverted"))

    with pytest.raises(ChainQueryFailure) as exc_info:
        await orchestrator.get_session_nonce(reader, b"\x01" * 32, ACCOUNT)

    assert exc_info.value.chain_id == 10
    assert exc_info.value.function_name == "getNonce"


@pytest.mark.asyncio
async def test_enable_session_details_across_chains(orchestrator, validator) -> None:
    params = SpendLimitParams([TokenLimit(token=USDC, amount=1000)])
    sessions = [
        orchestrator.session_for(1, validator, orchestrator.actions_for(params)),
        orchestrator.session_for(8453, validator, orchestrator.actions_for(params)),
    ]
    readers = [_reader(8453, nonce=2, digest=b"\xbb" * 32), _reader(1, nonce=1, digest=b"\xaa" * 32)]

    details = await orchestrator.get_enable_session_details(
        sessions, ACCOUNT, AccountType.SAFE, readers, session_index=1
    )

    enable_session = details.enable_session_data.enable_session
    assert details.mode == SmartSessionMode.ENABLE
    assert details.permission_id == permission_id(sessions[1])
    assert enable_session.chain_digest_index == 1
    assert [(d.chain_id, d.session_digest) for d in enable_session.hashes_and_chain_ids] == [
        (1, b"\xaa" * 32),
        (8453, b"\xbb" * 32),
    ]
    assert enable_session.session_to_enable == sessions[1]
    assert enable_session.permission_enable_sig == b""
    assert details.enable_session_data.validator == validator.address
    assert details.permission_enable_hash == hash_chain_sessions([
        chain_session_from(sessions[0], ACCOUNT, CONSTANTS.smart_sessions, 1),
        chain_session_from(sessions[1], ACCOUNT, CONSTANTS.smart_sessions, 2),
    ])

    digest_request = readers[0].call.await_args_list[1].args[0]
    assert digest_request.function.name == "getSessionDigest"
    assert digest_request.args[3] == int(SmartSessionMode.ENABLE)


@pytest.mark.asyncio
async def test_enable_session_details_missing_reader(orchestrator, validator) -> None:
    sessions = [orchestrator.session_for(1, validator), orchestrator.session_for(137, validator)]

    with pytest.raises(MissingClientForChain) as exc_info:
        await orchestrator.get_enable_session_details(
            sessions, ACCOUNT, AccountType.SAFE, [_reader(1)]
        )
    assert exc_info.value.chain_id == 137


@pytest.mark.asyncio
async def test_enable_session_details_index_out_of_range(orchestrator, validator) -> None:
    with pytest.raises(InvalidConfiguration):
        await orchestrator.get_enable_session_details(
            [orchestrator.session_for(1, validator)], ACCOUNT, AccountType.SAFE, [_reader(1)],
            session_index=1,
        )


@pytest.mark.asyncio
async def test_signed_enable_details_encode_and_decode(orchestrator, validator) -> None:
    session = orchestrator.session_for(1, validator)
    details = await orchestrator.get_enable_session_details(
        [session], ACCOUNT, AccountType.KERNEL, [_reader(1, digest=b"\xcc" * 32)]
    )
    signer = AsyncMock()
    signer.sign.return_value = b"\x5a" * 65

    signed = await orchestrator.sign_enable_session(details, signer)

    signer.sign.assert_awaited_once_with(details.permission_enable_hash)
    assert signed.enable_session_data.enable_session.permission_enable_sig == b"\x5a" * 65

    encoded = encode_smart_session_signature(signed.to_signature())
    decoded = decode_smart_session_signature(encoded, AccountType.KERNEL)
    assert decoded == signed.to_signature()


@pytest.mark.asyncio
async def test_is_valid_signature_compares_magic_value(orchestrator) -> None:
    reader = MagicMock()
    reader.chain_id = 1
    reader.call = AsyncMock(return_value=bytes.fromhex("1626ba7e"))

    assert await orchestrator.is_valid_signature(reader, ACCOUNT, b"\x01" * 32, b"\x02" * 65) is True

    reader.call.return_value = b"\xff\xff\xff\xff"
    assert await orchestrator.is_valid_signature(reader, ACCOUNT, b"\x01" * 32, b"\x02" * 65) is False

    request = reader.call.await_args.args[0]
    assert request.function.name == "isValidSignatureWithSender"
    assert request.args == (ACCOUNT, b"\x01" * 32, b"\x02" * 65)


def test_enable_user_op_and_erc1271_policies(orchestrator) -> None:
    from sessionkit.core.sessions.models import ERC7739Context, ERC7739Data
    from sessionkit.core.sessions.policies import sudo_policy_data

    pid = b"\x42" * 32
    sudo = sudo_policy_data(CONSTANTS)

    tx = orchestrator.build_enable_user_op_policies(pid, [sudo])
    _, policies = _args(SmartSessionsAbi.enable_user_op_policies, tx.data)
    assert [(p.lower(), data) for p, data in policies] == [(sudo.policy.lower(), b"")]

    data = ERC7739Data(
        allowed_erc7739_content=[ERC7739Context(app_domain_separator=b"\x01" * 32, content_names=["Permit"])],
        erc1271_policies=[sudo],
    )
    tx = orchestrator.build_enable_erc1271_policies(pid, data)
    _, (contents, erc1271_policies) = _args(SmartSessionsAbi.enable_erc1271_policies, tx.data)
    assert contents == ((b"\x01" * 32, ("Permit",)),)
    assert len(erc1271_policies) == 1

"""Command line helpers for inspecting delegated accounts"""

import argparse
import asyncio
from typing import Optional

from .config import settings
from .core.sessions import (
    OwnableValidator,
    SmartSessionOrchestrator,
    SmartSessionError,
    decode_smart_session_signature,
    get_protocol_constants,
    session_validator_for,
)
from .core.sessions.models import as_bytes, to_hex
from .logging_config import setup_logging
from .providers.rpc import JsonRpcChainReader
from .services.versioning import detect_account_version, migration_path


def print_signature(decoded) -> None:
    """Pretty print a decoded session signature"""
    print(f"Mode: {decoded.mode.name}")
    print(f"Permission ID: {to_hex(decoded.permission_id)}")
    print(f"Signature: {to_hex(decoded.signature) if decoded.signature else '(empty)'}")

    data = decoded.enable_session_data
    if data is None:
        return

    enable = data.enable_session
    session = enable.session_to_enable
    print(f"\nAccount type: {data.account_type.value}")
    print(f"Enable validator: {data.validator}")
    print(f"Session validator: {session.session_validator}")
    print(f"Chain: {session.chain_id} (digest {enable.chain_digest_index})")
    print("Chain digests:")
    for digest in enable.hashes_and_chain_ids:
        print(f" - {digest.chain_id}: {to_hex(digest.session_digest)}")
    if session.actions:
        print("Actions:")
        for action in session.actions:
            policies = ", ".join(p.policy for p in action.action_policies)
            print(f" - {action.action_target} {to_hex(action.action_target_selector)} [{policies}]")


def cli_permission_id(owner: str, salt: Optional[str], version: str) -> None:
    """Permission id of an ownable session key"""
    constants = get_protocol_constants(version)
    validator = session_validator_for(
        OwnableValidator(owner=owner),
        constants,
        salt=as_bytes(salt) if salt else None,
    )
    use = SmartSessionOrchestrator(constants).build_use_session(0, validator)
    print(f"Validator: {validator.address}")
    print(f"Permission ID: {to_hex(use.permission_id)}")


def cli_decode_signature(signature: str, account_type: Optional[str]) -> None:
    try:
        decoded = decode_smart_session_signature(as_bytes(signature), account_type)
    except SmartSessionError as e:
        print(f"❌ Error: {e}")
        return
    print_signature(decoded)


async def cli_version(chain_id: int, account: str) -> None:
    """Detect the protocol version an account was deployed with"""
    reader = JsonRpcChainReader.for_chain(chain_id)
    try:
        version = await detect_account_version(reader, account)
    finally:
        await reader.aclose()

    if version is None:
        print(f"⚠️  {account} does not use a known Safe singleton")
        return

    print(f"Account: {account}")
    print(f"Version: {version.value}")
    path = migration_path(version)
    if path:
        print(f"Migration to {settings.protocol_version}: {' -> '.join(v.value for v in path)}")
    else:
        print("Up to date")


async def cli_health(chain_id: int) -> None:
    reader = JsonRpcChainReader.for_chain(chain_id)
    try:
        health = await reader.health_check()
    finally:
        await reader.aclose()
    status = "✅" if health.get("status") == "healthy" else "❌"
    print(f"{status} chain {chain_id}: {health}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Smart Session CLI")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    pid_parser = subparsers.add_parser("permission-id", help="Permission id of an ownable session key")
    pid_parser.add_argument("owner", help="Session key address")
    pid_parser.add_argument("--salt", help="32-byte salt as hex (default: shared default salt)")
    pid_parser.add_argument("--version", default=settings.protocol_version, help="Protocol version")

    decode_parser = subparsers.add_parser("decode-signature", help="Decode a session signature")
    decode_parser.add_argument("signature", help="Signature as 0x-prefixed hex")
    decode_parser.add_argument(
        "--account-type",
        help="erc7579-implementation, nexus, safe or kernel (required for enable signatures)",
    )

    version_parser = subparsers.add_parser("version", help="Detect an account's protocol version")
    version_parser.add_argument("chain_id", type=int, help="Chain ID")
    version_parser.add_argument("account", help="Smart account address")

    health_parser = subparsers.add_parser("health", help="Check the configured RPC for a chain")
    health_parser.add_argument("chain_id", type=int, help="Chain ID")

    return parser


async def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return

    command = args.command.lower()

    try:
        if command == "permission-id":
            cli_permission_id(args.owner, args.salt, args.version)

        elif command == "decode-signature":
            cli_decode_signature(args.signature, args.account_type)

        elif command == "version":
            await cli_version(args.chain_id, args.account)

        elif command == "health":
            await cli_health(args.chain_id)

    except SmartSessionError as e:
        print(f"❌ Error: {e}")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

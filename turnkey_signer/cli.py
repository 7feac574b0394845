"""Turnkey signer: CLI entry point.

Usage:
    python3 -m turnkey_signer.cli whoami
    echo -n '<json body>' | python3 -m turnkey_signer.cli stamp
    python3 -m turnkey_signer.cli generate-key
    python3 -m turnkey_signer.cli sign-payload --selector example_key --hex 010203

Exit codes:
    0 = success (JSON result on stdout)
    1 = error ({"status": "FAILED", "error": ...} on stdout)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from turnkey_signer.clients.turnkey import TurnkeyClient
from turnkey_signer.config import load_settings
from turnkey_signer.errors import TurnkeyError
from turnkey_signer.signer.registry import KeySelector
from turnkey_signer.signer.stamp import Credential, generate_api_key_pair, stamp
from turnkey_signer.utils.encoding import bytes_to_hex, hex_to_bytes


async def _whoami() -> dict[str, Any]:
    async with TurnkeyClient.from_env() as client:
        who = await client.who_am_i()
    return {"status": "OK", **who.model_dump()}


async def _sign_payload(selector: str, payload_hex: str) -> dict[str, Any]:
    payload = hex_to_bytes(payload_hex)
    async with TurnkeyClient.from_env() as client:
        identity = client.registry.resolve(KeySelector(selector))
        signature = await client.sign_payload(payload, identity)
    return {
        "status": "OK",
        "selector": selector,
        "public_key": str(identity.public_key),
        "signature": bytes_to_hex(signature),
    }


def _stamp(body: str) -> dict[str, Any]:
    settings = load_settings()
    credential = Credential(
        api_public_key=settings.api_public_key,
        api_private_key=settings.api_private_key,
    )
    return {
        "status": "OK",
        "x_stamp": stamp(body, credential, settings.stamp_digest),
        "digest": settings.stamp_digest.value,
    }


def _generate_key() -> dict[str, Any]:
    credential = generate_api_key_pair()
    return {
        "status": "OK",
        "api_public_key": credential.api_public_key,
        "api_private_key": credential.api_private_key,
    }


def run(args: argparse.Namespace) -> dict[str, Any]:
    if args.command == "whoami":
        return asyncio.run(_whoami())
    if args.command == "sign-payload":
        return asyncio.run(_sign_payload(args.selector, args.hex))
    if args.command == "stamp":
        return _stamp(sys.stdin.read())
    return _generate_key()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="turnkey-signer", description="Turnkey API signer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("whoami", help="Show the organization and user for the API key")
    sub.add_parser("stamp", help="Stamp a request body read from stdin")
    sub.add_parser("generate-key", help="Generate a new P-256 API key pair")

    sign = sub.add_parser("sign-payload", help="Sign hex bytes with a registered key")
    sign.add_argument(
        "--selector",
        required=True,
        choices=[s.value for s in KeySelector],
    )
    sign.add_argument("--hex", required=True, help="Payload as hex")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        result = run(args)
    except TurnkeyError as e:
        result = {"status": "FAILED", "command": args.command, "error": str(e)}
        print(json.dumps(result, indent=2))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

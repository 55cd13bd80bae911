"""
Command-line interface for issuing challenges and checking Solana payments.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Iterable, Mapping, Sequence, Tuple

from .api import ConfigError, PaymentServer, create_payment_server, load_server_config
from .core.ledger import LedgerError


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _env_override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _collect_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def _emit(payload: Mapping[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-solana",
        description="Issue x402 payment challenges and verify Solana payments",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_env_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    challenge = commands.add_parser("challenge", help="Print a 402 payment challenge")
    challenge.add_argument("price", help="Price in display units, e.g. 0.01")
    challenge.add_argument("--resource-id", default=None, help="Payment option id")
    challenge.add_argument("--resource", default=None, help="Path of the protected resource")
    challenge.add_argument("--description", default=None, help="Human-readable description of the resource")
    challenge.add_argument("--mime-type", default=None, help="MIME type of the resource response")
    challenge.add_argument(
        "--max-timeout",
        type=int,
        default=None,
        help="Maximum seconds the client has to complete the payment",
    )

    verify = commands.add_parser("verify", help="Verify a payment transaction")
    verify.add_argument("signature", help="Transaction signature")
    verify.add_argument("amount", help="Expected amount in display units")
    verify.add_argument(
        "--max-age",
        type=int,
        default=None,
        help="Reject transactions older than this many seconds",
    )

    status = commands.add_parser("status", help="Report confirmation status")
    status.add_argument("signature", help="Transaction signature")

    return parser


def _run_command(server: PaymentServer, args: argparse.Namespace) -> int:
    if args.command == "challenge":
        response = server.create_402_response(
            args.price,
            args.resource_id,
            resource=args.resource,
            description=args.description,
            mime_type=args.mime_type,
            max_timeout_seconds=args.max_timeout,
        )
        _emit(response.to_dict())
        return 0

    if args.command == "verify":
        verification = server.verify_payment(args.signature, args.amount, args.max_age)
        _emit(verification.to_host_dict(args.signature))
        if not verification.valid:
            logging.error("Payment rejected: %s", verification.error)
            return 1
        return 0

    status = server.get_payment_status(args.signature)
    _emit(status.to_dict())
    return 0


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    try:
        config = load_server_config(env_file=args.env_file, overrides=overrides)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    server = create_payment_server(config=config)

    try:
        return _run_command(server, args)
    except ValueError as exc:
        logging.error("Invalid input: %s", exc)
        return 1
    except LedgerError as exc:
        logging.error("Ledger request failed: %s", exc)
        return 1


def main() -> None:
    sys.exit(run_cli())

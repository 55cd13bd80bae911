"""
Verify a batch of payment signatures using the public API.

Each line of the input file holds ``<signature> <expected amount>``. With
``--continue-on-fail`` a malformed line or a ledger error is reported for
that item and the rest of the batch still runs.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Tuple

from x402_solana import (
    ConfigError,
    LedgerError,
    create_payment_server,
    load_server_config,
    verify_batch,
)


def _override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify x402 Solana payments in bulk")
    parser.add_argument("input", help="File with one '<signature> <amount>' pair per line")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing X402_* settings",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--recipient-address",
        help="Override the receiving wallet without editing local files",
    )
    parser.add_argument(
        "--redeem",
        action="store_true",
        help="Mark valid payments as spent so repeated signatures are rejected",
    )
    parser.add_argument(
        "--continue-on-fail",
        action="store_true",
        help="Report ledger errors per item instead of aborting the batch",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_server_config(
            env_file=args.env_file,
            overrides=dict(args.set or ()),
            recipient_address=args.recipient_address,
        )
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    server = create_payment_server(config=config)

    with open(args.input, encoding="utf-8") as handle:
        try:
            results = verify_batch(
                server,
                handle,
                redeem=args.redeem,
                continue_on_fail=args.continue_on_fail,
            )
        except (LedgerError, ValueError):
            return 1

    print(json.dumps(results, indent=2))
    return 0 if all(item.get("verified") for item in results) else 1


if __name__ == "__main__":
    sys.exit(main())

"""
Public, high-level helpers for protecting resources with x402 payments.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import requests

from .core.config import (
    ConfigError,
    ServerConfig,
    ServerParameters,
    load_server_config,
)
from .core.ledger import LedgerError
from .core.replay import ReplayGuard
from .core.server import PaymentServer
from .core.types import PaymentVerification, X402Response

__all__ = [
    "ConfigError",
    "PaymentServer",
    "ServerConfig",
    "ServerParameters",
    "create_402_response",
    "create_payment_server",
    "verify_batch",
    "verify_payment",
]


def create_payment_server(
    *,
    config: Optional[ServerConfig] = None,
    session: Optional[requests.Session] = None,
    replay_guard: Optional[ReplayGuard] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ServerParameters] = None,
    network: Optional[str] = None,
    recipient_address: Optional[str] = None,
    rpc_url: Optional[str] = None,
    asset: Optional[str] = None,
    token_decimals: Optional[int | str] = None,
    asset_symbol: Optional[str] = None,
    max_age_seconds: Optional[int | str] = None,
    amount_tolerance: Optional[Decimal | str | float] = None,
    rpc_timeout_seconds: Optional[float | int | str] = None,
) -> PaymentServer:
    """
    Construct a :class:`PaymentServer`.

    Callers can either supply a ready-made :class:`ServerConfig` or let the
    helper assemble one from environment data.
    """
    if config is not None:
        extras = (
            overrides,
            base,
            parameters,
            network,
            recipient_address,
            rpc_url,
            asset,
            token_decimals,
            asset_symbol,
            max_age_seconds,
            amount_tolerance,
            rpc_timeout_seconds,
        )
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ServerConfig or individual parameters, not both."
            )
        cfg = config
    else:
        cfg = load_server_config(
            env_file=env_file,
            overrides=overrides,
            base=base,
            parameters=parameters,
            network=network,
            recipient_address=recipient_address,
            rpc_url=rpc_url,
            asset=asset,
            token_decimals=token_decimals,
            asset_symbol=asset_symbol,
            max_age_seconds=max_age_seconds,
            amount_tolerance=amount_tolerance,
            rpc_timeout_seconds=rpc_timeout_seconds,
        )
    return PaymentServer(cfg, session=session, replay_guard=replay_guard)


def create_402_response(
    price: Decimal | str | float | int,
    *,
    config: ServerConfig,
    resource_id: Optional[str] = None,
    resource: Optional[str] = None,
    description: Optional[str] = None,
    mime_type: Optional[str] = None,
    max_timeout_seconds: Optional[int] = None,
) -> X402Response:
    """One-shot helper for building a challenge without keeping a server around."""
    return PaymentServer(config).create_402_response(
        price,
        resource_id,
        resource=resource,
        description=description,
        mime_type=mime_type,
        max_timeout_seconds=max_timeout_seconds,
    )


def verify_payment(
    signature: str,
    expected_amount: Decimal | str | float | int,
    *,
    config: ServerConfig,
    session: Optional[requests.Session] = None,
    max_age_seconds: Optional[int] = None,
) -> PaymentVerification:
    """
    High-level helper that verifies a single payment signature.

    No replay state is kept between calls; use :meth:`PaymentServer.redeem_payment`
    on a long-lived server to stop one payment unlocking a resource twice.
    """
    server = PaymentServer(config, session=session)
    return server.verify_payment(signature, expected_amount, max_age_seconds)


def _parse_batch_line(line: str) -> Tuple[str, str]:
    fields = line.split()
    if len(fields) < 2:
        raise ValueError(f"expected '<signature> <amount>', got {line!r}")
    return fields[0], fields[1]


def verify_batch(
    server: PaymentServer,
    lines: Iterable[str],
    *,
    redeem: bool = False,
    continue_on_fail: bool = False,
) -> List[Dict[str, Any]]:
    """
    Check ``<signature> <amount>`` lines and return one host dict per item.

    Blank lines and ``#`` comments are skipped. A malformed line, a bad
    amount or a ledger failure aborts the batch by re-raising, unless
    ``continue_on_fail`` is set, in which case the item is reported as
    ``{"signature": ..., "error": ...}`` and the batch goes on.
    """
    check = server.redeem_payment if redeem else server.verify_payment
    results: List[Dict[str, Any]] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        signature = line.split()[0]
        try:
            signature, amount = _parse_batch_line(line)
            results.append(check(signature, amount).to_host_dict(signature))
        except (LedgerError, ValueError) as exc:
            if not continue_on_fail:
                logging.error("Aborting batch at %s: %s", signature, exc)
                raise
            logging.warning("Batch item %s failed: %s", signature, exc)
            results.append({"signature": signature, "error": str(exc)})
    return results

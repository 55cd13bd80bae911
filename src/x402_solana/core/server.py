"""
Server-side facade tying challenges, verification and replay protection together.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Callable, Optional

import requests

from .challenge import ChallengeBuilder
from .config import ServerConfig
from .ledger import LedgerClient, normalize_signature
from .replay import InMemoryReplayGuard, ReplayGuard
from .types import PaymentRequirements, PaymentStatus, PaymentVerification, X402Response
from .verifier import PaymentVerifier

__all__ = ["ALREADY_USED", "PaymentServer"]

ALREADY_USED = "Transaction signature already used"


class PaymentServer:
    """
    Thin convenience wrapper for a resource owner accepting x402 payments.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        ledger: Optional[LedgerClient] = None,
        session: Optional[requests.Session] = None,
        replay_guard: Optional[ReplayGuard] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.ledger = ledger or LedgerClient(
            config.resolved_rpc_url,
            session=session,
            timeout=config.rpc_timeout_seconds,
        )
        self.replay_guard = replay_guard or InMemoryReplayGuard()
        self.challenges = ChallengeBuilder(config, clock=clock)
        self.verifier = PaymentVerifier(config, self.ledger, clock=clock)

    def create_payment_requirements(
        self,
        price: Decimal | str | float | int,
        resource_id: Optional[str] = None,
        **metadata: Any,
    ) -> PaymentRequirements:
        """
        Requirements for ``price``.

        ``metadata`` accepts ``resource``, ``description``, ``mime_type`` and
        ``max_timeout_seconds``, see :meth:`ChallengeBuilder.build_requirements`.
        """
        return self.challenges.build_requirements(price, resource_id, **metadata)

    def create_402_response(
        self,
        price: Decimal | str | float | int,
        resource_id: Optional[str] = None,
        **metadata: Any,
    ) -> X402Response:
        return self.challenges.build_response(price, resource_id, **metadata)

    def verify_payment(
        self,
        signature: str,
        expected_amount: Decimal | str | float | int,
        max_age_seconds: Optional[int] = None,
    ) -> PaymentVerification:
        """
        Check a payment without consuming it.

        Verifying the same signature repeatedly yields the same verdict as
        long as the ledger does not change.
        """
        return self.verifier.verify(signature, expected_amount, max_age_seconds)

    def redeem_payment(
        self,
        signature: str,
        expected_amount: Decimal | str | float | int,
        max_age_seconds: Optional[int] = None,
    ) -> PaymentVerification:
        """
        Verify a payment and mark it spent so it unlocks exactly one request.

        The signature is only recorded after a valid verdict. If another
        request consumed it in the meantime the payment is rejected.
        Raises :class:`InvalidSignatureError` for a malformed reference.
        """
        signature = normalize_signature(signature)
        if self.replay_guard.is_consumed(signature):
            return PaymentVerification.rejected(ALREADY_USED)

        verification = self.verifier.verify(signature, expected_amount, max_age_seconds)
        if not verification.valid:
            return verification

        if not self.replay_guard.mark_consumed(signature):
            return PaymentVerification.rejected(ALREADY_USED)

        logging.info("Payment %s redeemed", signature)
        return verification

    def get_payment_status(self, signature: str) -> PaymentStatus:
        return self.verifier.get_status(signature)

    def get_balance(self, address: Optional[str] = None) -> int:
        """Lamport balance of ``address`` (the recipient by default)."""
        return self.ledger.get_balance(address or self.config.recipient_address)

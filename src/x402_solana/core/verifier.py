"""
Verification of submitted payment proofs against the ledger.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from .config import ServerConfig, parse_amount
from .extractors import TransferExtractor, build_extractor
from .ledger import LedgerClient
from .types import PaymentStatus, PaymentVerification

__all__ = ["PaymentVerifier"]


class PaymentVerifier:
    """
    Decides whether a transaction pays for a resource.

    :meth:`verify` walks a fixed sequence of checks (fetch, freshness,
    execution result, transfer extraction, recipient, amount) and stops at
    the first failure. Failed checks come back as a rejected
    :class:`PaymentVerification`; only ledger access problems raise.
    """

    def __init__(
        self,
        config: ServerConfig,
        ledger: LedgerClient,
        *,
        extractor: Optional[TransferExtractor] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.extractor = extractor or build_extractor(config)
        self._clock = clock

    def verify(
        self,
        signature: str,
        expected_amount: Decimal | str | float | int,
        max_age_seconds: Optional[int] = None,
    ) -> PaymentVerification:
        expected = parse_amount(expected_amount, "expected_amount")
        if expected <= 0:
            raise ValueError(f"expected_amount must be greater than zero, got {expected_amount!r}")
        max_age = self.config.max_age_seconds if max_age_seconds is None else max_age_seconds

        record = self.ledger.get_transaction(signature, "confirmed")
        if record is None:
            return self._reject(signature, "Transaction not found")

        if record.block_time is not None:
            age = self._clock() - record.block_time
            if age > max_age:
                return self._reject(
                    signature, f"Transaction too old ({int(age)}s > {max_age}s)"
                )

        if not record.succeeded:
            return self._reject(signature, "Transaction failed")

        transfer = self.extractor.extract(record)
        if transfer is None:
            return self._reject(signature, "No transfer found in transaction")

        if transfer.destination not in self.extractor.receiving_accounts:
            return self._reject(signature, "Payment sent to wrong address")

        amount_error = self.extractor.amount_error(transfer.amount, expected)
        if amount_error is not None:
            return self._reject(signature, amount_error)

        verification = PaymentVerification.accepted(
            signature=record.signature,
            amount=self.extractor.to_display(transfer.amount),
            token=self.extractor.symbol,
            from_address=transfer.source,
            to_address=transfer.destination,
            timestamp=record.block_time,
        )
        logging.info(
            "Payment %s verified: %s %s from %s",
            signature,
            verification.amount,
            verification.token,
            transfer.source,
        )
        return verification

    @staticmethod
    def _reject(signature: str, reason: str) -> PaymentVerification:
        logging.info("Payment %s rejected: %s", signature, reason)
        return PaymentVerification.rejected(reason)

    def get_status(self, signature: str) -> PaymentStatus:
        confirmed = self.ledger.get_transaction(signature, "confirmed")
        finalized = self.ledger.get_transaction(signature, "finalized")
        return PaymentStatus(
            confirmed=confirmed is not None,
            finalized=finalized is not None,
        )

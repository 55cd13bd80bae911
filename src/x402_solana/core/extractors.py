"""
Strategies that pull a value transfer out of a parsed transaction.

Token payments are read from SPL Token ``transfer``/``transferChecked``
instructions and must land in the recipient's associated token account.
Native SOL payments are read from the recipient's lamport balance delta.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, FrozenSet, Mapping, Optional

from solders.pubkey import Pubkey

from .config import LAMPORTS_DECIMALS, ServerConfig, to_base_units, to_display_units
from .ledger import TransactionRecord
from .types import TransferInfo

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "NativeTransferExtractor",
    "TOKEN_2022_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "TokenTransferExtractor",
    "TransferExtractor",
    "build_extractor",
    "derive_associated_token_address",
]

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

_TOKEN_PROGRAMS = frozenset({TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})
_TOKEN_PROGRAM_NAMES = frozenset({"spl-token", "spl-token-2022"})
_TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})


def derive_associated_token_address(
    owner: str,
    mint: str,
    token_program: str = TOKEN_PROGRAM_ID,
) -> str:
    """Associated token account of ``owner`` for ``mint``."""
    address, _bump = Pubkey.find_program_address(
        [
            bytes(Pubkey.from_string(owner)),
            bytes(Pubkey.from_string(token_program)),
            bytes(Pubkey.from_string(mint)),
        ],
        Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID),
    )
    return str(address)


class TransferExtractor(ABC):
    """
    One asset mode's view of a payment.

    Subclasses decide where the transfer is read from, which account must
    receive it, and how strictly the amount is compared.
    """

    symbol: str
    decimals: int

    @property
    @abstractmethod
    def receiving_accounts(self) -> FrozenSet[str]:
        """Accounts a valid payment may be credited to."""

    @abstractmethod
    def extract(self, record: TransactionRecord) -> Optional[TransferInfo]:
        """Return the payment transfer in ``record``, or ``None``."""

    @abstractmethod
    def amount_error(self, actual: int, expected: Decimal) -> Optional[str]:
        """
        Compare ``actual`` base units against the ``expected`` display
        amount. Returns a rejection reason, or ``None`` if acceptable.
        """

    def to_display(self, base_units: int) -> Decimal:
        return to_display_units(base_units, self.decimals)


class TokenTransferExtractor(TransferExtractor):
    """
    Reads the first SPL Token transfer in the transaction.

    Only top-level instructions are scanned and the first match wins, so a
    transaction carrying several token transfers is judged by the earliest.
    """

    def __init__(self, recipient: str, mint: str, decimals: int, symbol: str) -> None:
        self.recipient = recipient
        self.mint = mint
        self.decimals = decimals
        self.symbol = symbol
        self._receiving_accounts = frozenset(
            derive_associated_token_address(recipient, mint, program)
            for program in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID)
        )

    @property
    def receiving_accounts(self) -> FrozenSet[str]:
        return self._receiving_accounts

    @staticmethod
    def _is_token_instruction(instruction: Mapping[str, Any]) -> bool:
        return (
            instruction.get("programId") in _TOKEN_PROGRAMS
            or instruction.get("program") in _TOKEN_PROGRAM_NAMES
        )

    def extract(self, record: TransactionRecord) -> Optional[TransferInfo]:
        for instruction in record.instructions:
            parsed = instruction.get("parsed")
            if not isinstance(parsed, Mapping) or not self._is_token_instruction(instruction):
                continue
            if parsed.get("type") not in _TRANSFER_TYPES:
                continue

            info = parsed.get("info") or {}
            mint = info.get("mint")
            if mint is not None and mint != self.mint:
                continue

            raw_amount = info.get("amount")
            if raw_amount is None:
                raw_amount = (info.get("tokenAmount") or {}).get("amount")
            if raw_amount is None:
                continue

            return TransferInfo(
                source=info.get("source", ""),
                destination=info.get("destination", ""),
                amount=int(raw_amount),
            )
        return None

    def amount_error(self, actual: int, expected: Decimal) -> Optional[str]:
        if actual >= to_base_units(expected, self.decimals):
            return None
        return f"Insufficient payment amount: {self.to_display(actual)} < {expected}"


class NativeTransferExtractor(TransferExtractor):
    """
    Reads the recipient's SOL balance change.

    Fees and rent can nudge balances slightly, so the amount is compared
    within ``tolerance`` display units in either direction.
    """

    decimals = LAMPORTS_DECIMALS

    def __init__(
        self,
        recipient: str,
        tolerance: Decimal = Decimal("0.0001"),
        symbol: str = "SOL",
    ) -> None:
        self.recipient = recipient
        self.tolerance = tolerance
        self.symbol = symbol

    @property
    def receiving_accounts(self) -> FrozenSet[str]:
        return frozenset({self.recipient})

    def extract(self, record: TransactionRecord) -> Optional[TransferInfo]:
        try:
            index = record.account_keys.index(self.recipient)
        except ValueError:
            return None
        if index >= len(record.pre_balances) or index >= len(record.post_balances):
            return None

        delta = record.post_balances[index] - record.pre_balances[index]
        return TransferInfo(
            source=record.fee_payer or "",
            destination=self.recipient,
            amount=delta,
        )

    def amount_error(self, actual: int, expected: Decimal) -> Optional[str]:
        difference = abs(Decimal(actual) - to_base_units(expected, self.decimals))
        if difference <= to_base_units(self.tolerance, self.decimals):
            return None
        return f"Payment amount mismatch: {self.to_display(actual)} != {expected}"


def build_extractor(config: ServerConfig) -> TransferExtractor:
    """Pick the strategy for the configured asset."""
    if config.is_native:
        return NativeTransferExtractor(
            config.recipient_address, config.amount_tolerance, config.symbol
        )
    return TokenTransferExtractor(
        recipient=config.recipient_address,
        mint=config.mint_address,
        decimals=config.decimals,
        symbol=config.symbol,
    )

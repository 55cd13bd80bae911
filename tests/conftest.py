# tests/conftest.py
"""
Shared fixtures: addresses, a canned ledger, and RPC-shaped transactions.
"""
from decimal import Decimal
from typing import Dict, Optional, Tuple

import pytest
from solders.pubkey import Pubkey
from solders.signature import Signature

from x402_solana.core.config import ServerConfig, USDC_MINTS
from x402_solana.core.extractors import TOKEN_PROGRAM_ID, derive_associated_token_address
from x402_solana.core.ledger import TransactionRecord

NOW = 1_700_000_000
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"


class StubLedger:
    """In-memory stand-in for LedgerClient."""

    def __init__(self):
        self.records: Dict[Tuple[str, str], TransactionRecord] = {}
        self.balances: Dict[str, int] = {}
        self.calls = []

    def add(self, record: TransactionRecord, *, finalized: bool = True) -> None:
        self.records[(record.signature, "confirmed")] = record
        if finalized:
            self.records[(record.signature, "finalized")] = record

    def get_transaction(self, signature: str, commitment: str = "confirmed") -> Optional[TransactionRecord]:
        self.calls.append((signature, commitment))
        return self.records.get((signature, commitment))

    def get_balance(self, address: str, commitment: str = "confirmed") -> int:
        return self.balances.get(address, 0)


def make_signature() -> str:
    return str(Signature.new_unique())


def token_transfer_tx(
    *,
    source: str,
    destination: str,
    amount: int,
    authority: str,
    block_time: Optional[int] = NOW - 10,
    err=None,
    checked_mint: Optional[str] = None,
    decimals: int = 6,
) -> dict:
    if checked_mint is None:
        parsed = {
            "type": "transfer",
            "info": {
                "source": source,
                "destination": destination,
                "amount": str(amount),
                "authority": authority,
            },
        }
    else:
        parsed = {
            "type": "transferChecked",
            "info": {
                "source": source,
                "destination": destination,
                "mint": checked_mint,
                "authority": authority,
                "tokenAmount": {
                    "amount": str(amount),
                    "decimals": decimals,
                    "uiAmountString": str(Decimal(amount) / Decimal(10) ** decimals),
                },
            },
        }
    return {
        "blockTime": block_time,
        "slot": 250_000_000,
        "meta": {
            "err": err,
            "fee": 5000,
            "preBalances": [1_000_000_000, 2_039_280, 2_039_280, 934_087_680],
            "postBalances": [999_995_000, 2_039_280, 2_039_280, 934_087_680],
        },
        "transaction": {
            "message": {
                "accountKeys": [
                    {"pubkey": authority, "signer": True, "writable": True, "source": "transaction"},
                    {"pubkey": source, "signer": False, "writable": True, "source": "transaction"},
                    {"pubkey": destination, "signer": False, "writable": True, "source": "transaction"},
                    {"pubkey": TOKEN_PROGRAM_ID, "signer": False, "writable": False, "source": "transaction"},
                ],
                "instructions": [
                    {
                        "program": "spl-token",
                        "programId": TOKEN_PROGRAM_ID,
                        "parsed": parsed,
                        "stackHeight": None,
                    }
                ],
            },
            "signatures": [],
        },
    }


def native_transfer_tx(
    *,
    payer: str,
    recipient: str,
    lamports: int,
    block_time: Optional[int] = NOW - 10,
    err=None,
    fee: int = 5000,
) -> dict:
    payer_pre = 5_000_000_000
    recipient_pre = 1_000_000_000
    return {
        "blockTime": block_time,
        "slot": 250_000_000,
        "meta": {
            "err": err,
            "fee": fee,
            "preBalances": [payer_pre, recipient_pre, 1],
            "postBalances": [payer_pre - lamports - fee, recipient_pre + lamports, 1],
        },
        "transaction": {
            "message": {
                "accountKeys": [
                    {"pubkey": payer, "signer": True, "writable": True, "source": "transaction"},
                    {"pubkey": recipient, "signer": False, "writable": True, "source": "transaction"},
                    {"pubkey": SYSTEM_PROGRAM_ID, "signer": False, "writable": False, "source": "transaction"},
                ],
                "instructions": [
                    {
                        "program": "system",
                        "programId": SYSTEM_PROGRAM_ID,
                        "parsed": {
                            "type": "transfer",
                            "info": {"source": payer, "destination": recipient, "lamports": lamports},
                        },
                        "stackHeight": None,
                    }
                ],
            },
            "signatures": [],
        },
    }


@pytest.fixture
def recipient():
    return str(Pubkey.new_unique())


@pytest.fixture
def payer():
    return str(Pubkey.new_unique())


@pytest.fixture
def usdc_mint():
    return USDC_MINTS["devnet"]


@pytest.fixture
def recipient_ata(recipient, usdc_mint):
    return derive_associated_token_address(recipient, usdc_mint)


@pytest.fixture
def payer_ata(payer, usdc_mint):
    return derive_associated_token_address(payer, usdc_mint)


@pytest.fixture
def token_config(recipient):
    return ServerConfig(recipient_address=recipient, network="devnet", asset="usdc")


@pytest.fixture
def native_config(recipient):
    return ServerConfig(recipient_address=recipient, network="devnet")


@pytest.fixture
def ledger():
    return StubLedger()


@pytest.fixture
def clock():
    return lambda: float(NOW)

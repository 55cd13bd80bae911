# tests/test_extractors.py
"""
Unit tests for the token and native transfer extraction strategies.
"""
from decimal import Decimal

import pytest
from solders.pubkey import Pubkey

from x402_solana.core.config import ServerConfig
from x402_solana.core.extractors import (
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    NativeTransferExtractor,
    TokenTransferExtractor,
    build_extractor,
    derive_associated_token_address,
)
from x402_solana.core.ledger import TransactionRecord

from conftest import make_signature, native_transfer_tx, token_transfer_tx


class TestAssociatedTokenAddress:

    def test_deterministic(self, recipient, usdc_mint):
        assert derive_associated_token_address(recipient, usdc_mint) == derive_associated_token_address(
            recipient, usdc_mint
        )

    def test_differs_per_owner(self, recipient, payer, usdc_mint):
        assert derive_associated_token_address(recipient, usdc_mint) != derive_associated_token_address(
            payer, usdc_mint
        )

    def test_differs_per_token_program(self, recipient, usdc_mint):
        classic = derive_associated_token_address(recipient, usdc_mint, TOKEN_PROGRAM_ID)
        token_2022 = derive_associated_token_address(recipient, usdc_mint, TOKEN_2022_PROGRAM_ID)
        assert classic != token_2022

    def test_result_is_valid_pubkey(self, recipient, usdc_mint):
        address = derive_associated_token_address(recipient, usdc_mint)
        assert str(Pubkey.from_string(address)) == address


class TestTokenTransferExtractor:

    def _extractor(self, recipient, mint):
        return TokenTransferExtractor(recipient=recipient, mint=mint, decimals=6, symbol="USDC")

    def test_extracts_transfer(self, recipient, payer, usdc_mint, payer_ata, recipient_ata):
        record = TransactionRecord.from_rpc(
            make_signature(),
            token_transfer_tx(source=payer_ata, destination=recipient_ata, amount=15_000, authority=payer),
        )

        transfer = self._extractor(recipient, usdc_mint).extract(record)

        assert transfer.source == payer_ata
        assert transfer.destination == recipient_ata
        assert transfer.amount == 15_000

    def test_extracts_transfer_checked_amount(self, recipient, payer, usdc_mint, payer_ata, recipient_ata):
        record = TransactionRecord.from_rpc(
            make_signature(),
            token_transfer_tx(
                source=payer_ata, destination=recipient_ata, amount=42, authority=payer, checked_mint=usdc_mint
            ),
        )

        assert self._extractor(recipient, usdc_mint).extract(record).amount == 42

    def test_skips_transfer_checked_of_other_mint(self, recipient, payer, usdc_mint, payer_ata, recipient_ata):
        record = TransactionRecord.from_rpc(
            make_signature(),
            token_transfer_tx(
                source=payer_ata,
                destination=recipient_ata,
                amount=42,
                authority=payer,
                checked_mint=str(Pubkey.new_unique()),
            ),
        )

        assert self._extractor(recipient, usdc_mint).extract(record) is None

    def test_ignores_system_transfers(self, recipient, payer, usdc_mint):
        record = TransactionRecord.from_rpc(
            make_signature(), native_transfer_tx(payer=payer, recipient=recipient, lamports=1_000)
        )

        assert self._extractor(recipient, usdc_mint).extract(record) is None

    def test_first_match_wins(self, recipient, payer, usdc_mint, payer_ata, recipient_ata):
        tx = token_transfer_tx(source=payer_ata, destination=recipient_ata, amount=1, authority=payer)
        second = dict(tx["transaction"]["message"]["instructions"][0])
        second["parsed"] = {
            "type": "transfer",
            "info": {"source": payer_ata, "destination": recipient_ata, "amount": "999", "authority": payer},
        }
        tx["transaction"]["message"]["instructions"].append(second)

        transfer = self._extractor(recipient, usdc_mint).extract(TransactionRecord.from_rpc(make_signature(), tx))

        assert transfer.amount == 1

    def test_skips_unparsed_instructions(self, recipient, payer, usdc_mint, payer_ata, recipient_ata):
        tx = token_transfer_tx(source=payer_ata, destination=recipient_ata, amount=7, authority=payer)
        tx["transaction"]["message"]["instructions"].insert(
            0, {"programId": TOKEN_PROGRAM_ID, "accounts": [], "data": "3Bxs4h24hBtQy9rw"}
        )

        transfer = self._extractor(recipient, usdc_mint).extract(TransactionRecord.from_rpc(make_signature(), tx))

        assert transfer.amount == 7

    def test_receiving_accounts_cover_both_token_programs(self, recipient, usdc_mint, recipient_ata):
        extractor = self._extractor(recipient, usdc_mint)
        assert recipient_ata in extractor.receiving_accounts
        assert derive_associated_token_address(recipient, usdc_mint, TOKEN_2022_PROGRAM_ID) in (
            extractor.receiving_accounts
        )
        assert recipient not in extractor.receiving_accounts

    def test_amount_threshold(self, recipient, usdc_mint):
        extractor = self._extractor(recipient, usdc_mint)
        assert extractor.amount_error(10_000, Decimal("0.01")) is None
        assert extractor.amount_error(10_001, Decimal("0.01")) is None
        assert extractor.amount_error(9_999, Decimal("0.01")) is not None

    def test_fractional_base_unit_price_requires_next_unit(self, recipient, usdc_mint):
        extractor = self._extractor(recipient, usdc_mint)
        assert extractor.amount_error(10_000, Decimal("0.0100001")) is not None
        assert extractor.amount_error(10_001, Decimal("0.0100001")) is None


class TestNativeTransferExtractor:

    def test_balance_delta(self, recipient, payer):
        record = TransactionRecord.from_rpc(
            make_signature(), native_transfer_tx(payer=payer, recipient=recipient, lamports=10_000_000)
        )

        transfer = NativeTransferExtractor(recipient).extract(record)

        assert transfer.source == payer
        assert transfer.destination == recipient
        assert transfer.amount == 10_000_000

    def test_recipient_absent(self, recipient, payer):
        record = TransactionRecord.from_rpc(
            make_signature(),
            native_transfer_tx(payer=payer, recipient=str(Pubkey.new_unique()), lamports=10_000_000),
        )

        assert NativeTransferExtractor(recipient).extract(record) is None

    def test_plain_string_account_keys(self, recipient, payer):
        tx = native_transfer_tx(payer=payer, recipient=recipient, lamports=500)
        tx["transaction"]["message"]["accountKeys"] = [
            entry["pubkey"] for entry in tx["transaction"]["message"]["accountKeys"]
        ]

        transfer = NativeTransferExtractor(recipient).extract(TransactionRecord.from_rpc(make_signature(), tx))

        assert transfer.amount == 500

    def test_negative_delta_is_reported(self, recipient, payer):
        """The recipient paying the fee shows up as a loss, not a missing transfer."""
        record = TransactionRecord.from_rpc(
            make_signature(), native_transfer_tx(payer=recipient, recipient=payer, lamports=1_000)
        )

        transfer = NativeTransferExtractor(recipient).extract(record)

        assert transfer.amount < 0

    @pytest.mark.parametrize(
        "actual,ok",
        [
            (10_000_000, True),
            (10_100_000, True),
            (9_900_000, True),
            (10_100_001, False),
            (9_899_999, False),
        ],
    )
    def test_tolerance_band(self, recipient, actual, ok):
        extractor = NativeTransferExtractor(recipient, Decimal("0.0001"))
        assert (extractor.amount_error(actual, Decimal("0.01")) is None) is ok


class TestBuildExtractor:

    def test_native_by_default(self, recipient):
        extractor = build_extractor(ServerConfig(recipient_address=recipient))
        assert isinstance(extractor, NativeTransferExtractor)
        assert extractor.symbol == "SOL"
        assert extractor.decimals == 9

    def test_token_for_usdc(self, token_config):
        extractor = build_extractor(token_config)
        assert isinstance(extractor, TokenTransferExtractor)
        assert extractor.symbol == "USDC"
        assert extractor.decimals == 6

    def test_custom_mint(self, recipient):
        mint = str(Pubkey.new_unique())
        extractor = build_extractor(
            ServerConfig(recipient_address=recipient, asset=mint, token_decimals=9, asset_symbol="BONK")
        )
        assert extractor.mint == mint
        assert extractor.symbol == "BONK"
        assert extractor.decimals == 9

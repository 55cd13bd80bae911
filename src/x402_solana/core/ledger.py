"""
JSON-RPC access to the Solana ledger.

Only the two calls the payment server needs are implemented:
``getTransaction`` (parsed, used for verification and status lookups)
and ``getBalance``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import requests
from solders.signature import Signature

__all__ = [
    "COMMITMENTS",
    "InvalidSignatureError",
    "LedgerClient",
    "LedgerError",
    "RpcUnavailableError",
    "TransactionRecord",
    "normalize_signature",
]

COMMITMENTS = ("confirmed", "finalized")


class LedgerError(Exception):
    """The ledger could not be asked, so no verdict can be formed."""


class RpcUnavailableError(LedgerError):
    """Timeout, transport failure, or an error reply from the RPC node."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidSignatureError(LedgerError):
    """The transaction reference is not a well-formed signature."""


def _account_key(entry: Any) -> str:
    # jsonParsed encoding returns objects, json encoding returns bare strings.
    if isinstance(entry, Mapping):
        return str(entry.get("pubkey", ""))
    return str(entry)


@dataclass(frozen=True)
class TransactionRecord:
    """
    The parts of a ``getTransaction`` result the verifier looks at.

    ``account_keys`` keeps the message order, so the fee payer comes first
    and indices line up with ``pre_balances`` and ``post_balances``.
    """

    signature: str
    error: Any
    block_time: Optional[int]
    instructions: Tuple[Mapping[str, Any], ...]
    account_keys: Tuple[str, ...]
    pre_balances: Tuple[int, ...]
    post_balances: Tuple[int, ...]
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def fee_payer(self) -> Optional[str]:
        return self.account_keys[0] if self.account_keys else None

    @classmethod
    def from_rpc(cls, signature: str, result: Mapping[str, Any]) -> "TransactionRecord":
        meta = result.get("meta") or {}
        message = (result.get("transaction") or {}).get("message") or {}
        block_time = result.get("blockTime")
        return cls(
            signature=signature,
            error=meta.get("err"),
            block_time=int(block_time) if block_time is not None else None,
            instructions=tuple(message.get("instructions") or ()),
            account_keys=tuple(_account_key(entry) for entry in message.get("accountKeys") or ()),
            pre_balances=tuple(int(value) for value in meta.get("preBalances") or ()),
            post_balances=tuple(int(value) for value in meta.get("postBalances") or ()),
            raw=result,
        )


def normalize_signature(signature: str) -> str:
    """
    Canonical base58 form of a transaction signature.

    Surrounding whitespace is dropped so that one payment always maps to
    one key.
    """
    value = (signature or "").strip()
    try:
        return str(Signature.from_string(value))
    except ValueError as exc:
        raise InvalidSignatureError(f"Malformed transaction signature: {signature!r}") from exc


class LedgerClient:
    """
    Minimal Solana JSON-RPC client.

    Every request is bounded by ``timeout`` seconds; timeouts and transport
    failures surface as :class:`RpcUnavailableError` so callers can retry.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self.rpc_url = rpc_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self._ids = itertools.count(1)

    def _call(self, method: str, params: Sequence[Any]) -> Any:
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        logging.debug("RPC %s -> %s", method, self.rpc_url)
        try:
            response = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
        except requests.Timeout as exc:
            raise RpcUnavailableError(
                f"RPC {method} timed out after {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise RpcUnavailableError(f"RPC {method} failed: {exc}") from exc

        if response.status_code >= 400:
            raise RpcUnavailableError(
                f"RPC node responded with {response.status_code}: {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RpcUnavailableError(
                f"Failed to parse JSON from RPC node at {self.rpc_url}: {response.text}"
            ) from exc

        if not isinstance(payload, Mapping):
            raise RpcUnavailableError(
                f"Invalid RPC response for {method}: expected an object, got {payload!r}"
            )

        error = payload.get("error")
        if error:
            if isinstance(error, Mapping):
                raise RpcUnavailableError(
                    f"RPC error for {method}: {error.get('message', error)}",
                    code=error.get("code"),
                )
            raise RpcUnavailableError(f"RPC error for {method}: {error}")
        if "result" not in payload:
            raise RpcUnavailableError(f"Invalid RPC response for {method}: missing 'result'")
        return payload["result"]

    def get_transaction(
        self,
        signature: str,
        commitment: str = "confirmed",
    ) -> Optional[TransactionRecord]:
        """Return the parsed transaction, or ``None`` if the node has not seen it."""
        if commitment not in COMMITMENTS:
            raise ValueError(f"Unsupported commitment '{commitment}'")
        signature = normalize_signature(signature)
        result = self._call(
            "getTransaction",
            [
                signature,
                {
                    "commitment": commitment,
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        return TransactionRecord.from_rpc(signature, result)

    def get_balance(self, address: str, commitment: str = "confirmed") -> int:
        """Balance of ``address`` in lamports."""
        result = self._call("getBalance", [address, {"commitment": commitment}])
        if isinstance(result, Mapping):
            return int(result.get("value", 0))
        return int(result)

    def get_account_keys(self, signature: str, commitment: str = "confirmed") -> List[str]:
        record = self.get_transaction(signature, commitment)
        return list(record.account_keys) if record is not None else []

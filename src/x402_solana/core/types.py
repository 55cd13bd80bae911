"""
Value objects exchanged by the challenge builder, verifier and callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

__all__ = [
    "PaymentOption",
    "PaymentRequirements",
    "PaymentStatus",
    "PaymentVerification",
    "TransferInfo",
    "X402Response",
]


@dataclass(frozen=True)
class PaymentOption:
    id: str
    network: str
    recipient: str
    token: str
    amount: str
    decimals: int
    scheme: str = "solana"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scheme": self.scheme,
            "network": self.network,
            "recipient": self.recipient,
            "token": self.token,
            "amount": self.amount,
            "decimals": self.decimals,
        }


@dataclass(frozen=True)
class PaymentRequirements:
    """
    Payment options in preference order.

    ``resource``, ``description``, ``mime_type`` and ``max_timeout_seconds``
    describe what is being sold. They sit beside the options and are left
    out of the wire form when unset.
    """

    version: str
    payment_options: Tuple[PaymentOption, ...]
    resource: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    max_timeout_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "version": self.version,
            "paymentOptions": [option.to_dict() for option in self.payment_options],
        }
        if self.resource is not None:
            payload["resource"] = self.resource
        if self.description is not None:
            payload["description"] = self.description
        if self.mime_type is not None:
            payload["mimeType"] = self.mime_type
        if self.max_timeout_seconds is not None:
            payload["maxTimeoutSeconds"] = self.max_timeout_seconds
        return payload


@dataclass(frozen=True)
class X402Response:
    headers: Dict[str, str]
    body: PaymentRequirements
    status_code: int = 402

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body.to_dict(),
        }


@dataclass(frozen=True)
class TransferInfo:
    source: str
    destination: str
    amount: int


@dataclass(frozen=True)
class PaymentVerification:
    """
    Verdict for one payment proof.

    Use :meth:`accepted` or :meth:`rejected` rather than the constructor so
    that exactly one of the success or failure shapes is populated.
    """

    valid: bool
    signature: Optional[str] = None
    amount: Optional[Decimal] = None
    token: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    timestamp: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def accepted(
        cls,
        *,
        signature: str,
        amount: Decimal,
        token: str,
        from_address: str,
        to_address: str,
        timestamp: Optional[int],
    ) -> "PaymentVerification":
        return cls(
            valid=True,
            signature=signature,
            amount=amount,
            token=token,
            from_address=from_address,
            to_address=to_address,
            timestamp=timestamp,
        )

    @classmethod
    def rejected(cls, reason: str) -> "PaymentVerification":
        return cls(valid=False, error=reason)

    def to_dict(self) -> Dict[str, Any]:
        if not self.valid:
            return {"valid": False, "error": self.error}
        return {
            "valid": True,
            "signature": self.signature,
            "amount": float(self.amount) if self.amount is not None else None,
            "token": self.token,
            "from": self.from_address,
            "to": self.to_address,
            "timestamp": self.timestamp,
        }

    def to_host_dict(self, signature: str) -> Dict[str, Any]:
        """Shape reported back to a host workflow for one verified item."""
        return {
            "verified": self.valid,
            "signature": signature,
            "amount": float(self.amount) if self.amount is not None else None,
            "from": self.from_address,
            "to": self.to_address,
            "error": self.error,
        }


@dataclass(frozen=True)
class PaymentStatus:
    confirmed: bool
    finalized: bool

    def to_dict(self) -> Dict[str, bool]:
        return {"confirmed": self.confirmed, "finalized": self.finalized}

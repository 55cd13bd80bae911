"""
Construction of HTTP 402 payment challenges.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, Optional

from .config import X402_VERSION, ServerConfig, parse_amount
from .types import PaymentOption, PaymentRequirements, X402Response

__all__ = ["ChallengeBuilder", "format_amount"]


def format_amount(amount: Decimal) -> str:
    """Plain decimal notation, never scientific."""
    return format(amount, "f")


class ChallengeBuilder:
    """
    Builds the payment requirements a client must satisfy.

    The builder holds no state beyond the configuration, so one instance
    can serve any number of concurrent requests.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._clock = clock

    def _default_resource_id(self) -> str:
        return f"payment-{int(self._clock() * 1000)}"

    def build_requirements(
        self,
        price: Decimal | str | float | int,
        resource_id: Optional[str] = None,
        *,
        resource: Optional[str] = None,
        description: Optional[str] = None,
        mime_type: Optional[str] = None,
        max_timeout_seconds: Optional[int] = None,
    ) -> PaymentRequirements:
        """
        Requirements with a single payment option for ``price``.

        The optional keyword arguments describe the protected resource and
        are carried next to the option, never inside it.
        """
        amount = parse_amount(price, "price")
        if amount <= 0:
            raise ValueError(f"price must be greater than zero, got {price!r}")
        if max_timeout_seconds is not None:
            if isinstance(max_timeout_seconds, bool) or not isinstance(max_timeout_seconds, int):
                raise ValueError(
                    f"max_timeout_seconds must be an integer, got {max_timeout_seconds!r}"
                )
            if max_timeout_seconds <= 0:
                raise ValueError(
                    f"max_timeout_seconds must be greater than zero, got {max_timeout_seconds!r}"
                )

        option = PaymentOption(
            id=resource_id or self._default_resource_id(),
            network=self.config.network,
            recipient=self.config.recipient_address,
            token=self.config.asset_identifier,
            amount=format_amount(amount),
            decimals=self.config.decimals,
        )
        return PaymentRequirements(
            version=X402_VERSION,
            payment_options=(option,),
            resource=resource,
            description=description,
            mime_type=mime_type,
            max_timeout_seconds=max_timeout_seconds,
        )

    def build_response(
        self,
        price: Decimal | str | float | int,
        resource_id: Optional[str] = None,
        **metadata: Any,
    ) -> X402Response:
        requirements = self.build_requirements(price, resource_id, **metadata)
        return X402Response(
            headers={
                "Content-Type": "application/json",
                "WWW-Authenticate": f'x402 version="{X402_VERSION}"',
            },
            body=requirements,
        )

"""
Configuration objects and helpers for the x402 Solana payment server.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from solders.pubkey import Pubkey

from .environment import build_environment

__all__ = [
    "ConfigError",
    "DEFAULT_RPC_URLS",
    "LAMPORTS_DECIMALS",
    "NATIVE_ASSET",
    "ServerConfig",
    "ServerParameters",
    "USDC_MINTS",
    "X402_VERSION",
    "load_server_config",
    "to_base_units",
    "to_display_units",
]

X402_VERSION = "1"

NATIVE_ASSET = "native"
LAMPORTS_DECIMALS = 9
USDC_DECIMALS = 6

DEFAULT_RPC_URLS = {
    "devnet": "https://api.devnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}

USDC_MINTS = {
    "devnet": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    "mainnet-beta": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
}

_PARAMETER_TO_ENV_KEY = {
    "network": "X402_NETWORK",
    "recipient_address": "X402_RECIPIENT_ADDRESS",
    "rpc_url": "X402_RPC_URL",
    "asset": "X402_ASSET",
    "token_decimals": "X402_TOKEN_DECIMALS",
    "asset_symbol": "X402_ASSET_SYMBOL",
    "max_age_seconds": "X402_MAX_AGE_SECONDS",
    "amount_tolerance": "X402_AMOUNT_TOLERANCE",
    "rpc_timeout_seconds": "X402_RPC_TIMEOUT_SECONDS",
}


class ConfigError(Exception):
    """Raised when the supplied configuration is invalid."""


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_base_units(amount: Decimal, decimals: int) -> Decimal:
    """Scale a display amount to base units without rounding."""
    return amount * (Decimal(10) ** decimals)


def to_display_units(base_units: int, decimals: int) -> Decimal:
    return Decimal(base_units) / (Decimal(10) ** decimals)


def parse_amount(value: Decimal | str | float | int, field_name: str = "amount") -> Decimal:
    """
    Coerce a price into a :class:`Decimal`.

    Floats go through ``str`` first so ``0.01`` stays ``0.01`` instead of
    its binary expansion.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"{field_name} must be a decimal number, got {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return parsed


def _validate_pubkey(raw_address: str, field_name: str) -> str:
    value = raw_address.strip()
    if not value:
        raise ConfigError(f"{field_name} must not be empty")
    try:
        return str(Pubkey.from_string(value))
    except ValueError as exc:
        raise ConfigError(f"{field_name} is not a valid Solana address: {value!r}") from exc


def _parse_int(raw: str, field_name: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{field_name} must be an integer, got '{raw}'") from exc


def _parse_decimal(raw: str, field_name: str) -> Decimal:
    try:
        return parse_amount(raw, field_name)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


@dataclass(frozen=True)
class ServerParameters:
    """
    Explicit parameter bundle for constructing :class:`ServerConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_server_config`.
    """

    network: Optional[str] = None
    recipient_address: Optional[str] = None
    rpc_url: Optional[str] = None
    asset: Optional[str] = None
    token_decimals: Optional[int | str] = None
    asset_symbol: Optional[str] = None
    max_age_seconds: Optional[int | str] = None
    amount_tolerance: Optional[Decimal | str | float] = None
    rpc_timeout_seconds: Optional[float | int | str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = _stringify(value)
        return overrides


def _collect_parameter_overrides(
    parameters: Optional[ServerParameters],
    explicit: Mapping[str, Any],
) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    if parameters is not None:
        overrides.update(parameters.as_overrides())

    for key, value in explicit.items():
        if value is None:
            continue
        try:
            env_key = _PARAMETER_TO_ENV_KEY[key]
        except KeyError as exc:
            raise TypeError(f"Unknown server parameter '{key}'") from exc
        overrides[env_key] = _stringify(value)
    return overrides


@dataclass(frozen=True)
class ServerConfig:
    """
    Immutable settings for one payment server.

    ``asset`` selects the payment mode: ``None`` or ``"native"`` means SOL
    verified through balance deltas, ``"usdc"`` means the network's USDC
    mint, anything else is taken as an SPL token mint address.
    """

    recipient_address: str
    network: str = "devnet"
    rpc_url: Optional[str] = None
    asset: Optional[str] = None
    token_decimals: int = USDC_DECIMALS
    asset_symbol: Optional[str] = None
    max_age_seconds: int = 300
    amount_tolerance: Decimal = Decimal("0.0001")
    rpc_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.network not in DEFAULT_RPC_URLS:
            raise ConfigError(
                f"X402_NETWORK must be one of {sorted(DEFAULT_RPC_URLS)}, got '{self.network}'"
            )
        object.__setattr__(
            self,
            "recipient_address",
            _validate_pubkey(self.recipient_address or "", "X402_RECIPIENT_ADDRESS"),
        )
        if not self.is_native and self.asset.lower() != "usdc":
            object.__setattr__(self, "asset", _validate_pubkey(self.asset, "X402_ASSET"))
        if self.token_decimals < 0:
            raise ConfigError("X402_TOKEN_DECIMALS must not be negative")
        if self.max_age_seconds <= 0:
            raise ConfigError("X402_MAX_AGE_SECONDS must be greater than zero")
        if self.amount_tolerance < 0:
            raise ConfigError("X402_AMOUNT_TOLERANCE must not be negative")
        if self.rpc_timeout_seconds <= 0:
            raise ConfigError("X402_RPC_TIMEOUT_SECONDS must be greater than zero")

    @property
    def is_native(self) -> bool:
        return self.asset is None or self.asset.strip().lower() == NATIVE_ASSET

    @property
    def mint_address(self) -> Optional[str]:
        if self.is_native:
            return None
        if self.asset.lower() == "usdc":
            return USDC_MINTS[self.network]
        return self.asset

    @property
    def asset_identifier(self) -> str:
        """Value advertised as ``token`` in payment options."""
        return self.mint_address or NATIVE_ASSET

    @property
    def decimals(self) -> int:
        return LAMPORTS_DECIMALS if self.is_native else self.token_decimals

    @property
    def symbol(self) -> str:
        if self.asset_symbol:
            return self.asset_symbol
        if self.is_native:
            return "SOL"
        if self.mint_address in USDC_MINTS.values():
            return "USDC"
        return "SPL"

    @property
    def resolved_rpc_url(self) -> str:
        return (self.rpc_url or DEFAULT_RPC_URLS[self.network]).rstrip("/")

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ServerConfig":
        recipient = values.get("X402_RECIPIENT_ADDRESS")
        if recipient is None:
            raise ConfigError("X402_RECIPIENT_ADDRESS must be provided")

        network = values.get("X402_NETWORK", "devnet")
        rpc_url = values.get("X402_RPC_URL") or None
        asset = values.get("X402_ASSET") or None
        asset_symbol = values.get("X402_ASSET_SYMBOL") or None

        token_decimals = _parse_int(
            values.get("X402_TOKEN_DECIMALS", str(USDC_DECIMALS)), "X402_TOKEN_DECIMALS"
        )
        max_age_seconds = _parse_int(
            values.get("X402_MAX_AGE_SECONDS", "300"), "X402_MAX_AGE_SECONDS"
        )
        amount_tolerance = _parse_decimal(
            values.get("X402_AMOUNT_TOLERANCE", "0.0001"), "X402_AMOUNT_TOLERANCE"
        )
        timeout_raw = values.get("X402_RPC_TIMEOUT_SECONDS", "30")
        try:
            rpc_timeout_seconds = float(timeout_raw)
        except ValueError as exc:
            raise ConfigError(
                f"X402_RPC_TIMEOUT_SECONDS must be a number, got '{timeout_raw}'"
            ) from exc

        return cls(
            recipient_address=recipient,
            network=network,
            rpc_url=rpc_url,
            asset=asset,
            token_decimals=token_decimals,
            asset_symbol=asset_symbol,
            max_age_seconds=max_age_seconds,
            amount_tolerance=amount_tolerance,
            rpc_timeout_seconds=rpc_timeout_seconds,
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        parameters: Optional[ServerParameters] = None,
        **explicit: Any,
    ) -> "ServerConfig":
        parameter_overrides = _collect_parameter_overrides(parameters, explicit)
        merged_overrides = dict(overrides or {})
        merged_overrides.update(parameter_overrides)

        environment = build_environment(
            env_file=env_file,
            base=base,
            overrides=merged_overrides,
        )
        values = {
            key: value
            for key in _PARAMETER_TO_ENV_KEY.values()
            if (value := environment.get(key)) is not None
        }
        return cls.from_mapping(values)


def load_server_config(
    *,
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
) -> ServerConfig:
    """
    Convenience wrapper that mirrors :meth:`ServerConfig.from_env`.

    The configuration can be provided entirely through environment variables,
    a ``.env`` file, direct keyword arguments, or any combination of the three.
    """
    return ServerConfig.from_env(
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

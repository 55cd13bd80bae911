"""
Public facade for the x402 Solana payment server package.

The module re-exports the most useful pieces for integrators so they can
``from x402_solana import ...`` without navigating the package.
"""

from .api import create_402_response, create_payment_server, verify_batch, verify_payment
from .core import (
    ChallengeBuilder,
    ConfigError,
    InMemoryReplayGuard,
    InvalidSignatureError,
    LedgerClient,
    LedgerError,
    PaymentOption,
    PaymentRequirements,
    PaymentServer,
    PaymentStatus,
    PaymentVerification,
    PaymentVerifier,
    ReplayGuard,
    RpcUnavailableError,
    ServerConfig,
    ServerParameters,
    TransactionRecord,
    TransferInfo,
    X402Response,
    build_environment,
    derive_associated_token_address,
    load_env_file,
    load_server_config,
)

__all__ = (
    "ChallengeBuilder",
    "ConfigError",
    "InMemoryReplayGuard",
    "InvalidSignatureError",
    "LedgerClient",
    "LedgerError",
    "PaymentOption",
    "PaymentRequirements",
    "PaymentServer",
    "PaymentStatus",
    "PaymentVerification",
    "PaymentVerifier",
    "ReplayGuard",
    "RpcUnavailableError",
    "ServerConfig",
    "ServerParameters",
    "TransactionRecord",
    "TransferInfo",
    "X402Response",
    "build_environment",
    "create_402_response",
    "create_payment_server",
    "derive_associated_token_address",
    "load_env_file",
    "load_server_config",
    "verify_batch",
    "verify_payment",
)

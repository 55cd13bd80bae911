"""
Core primitives that implement the x402 challenge and verification lifecycle.
"""

from .challenge import ChallengeBuilder
from .config import (
    ConfigError,
    ServerConfig,
    ServerParameters,
    load_server_config,
)
from .environment import ServerEnvironment, build_environment, load_env_file
from .extractors import (
    NativeTransferExtractor,
    TokenTransferExtractor,
    TransferExtractor,
    build_extractor,
    derive_associated_token_address,
)
from .ledger import (
    InvalidSignatureError,
    LedgerClient,
    LedgerError,
    RpcUnavailableError,
    TransactionRecord,
)
from .replay import InMemoryReplayGuard, ReplayGuard
from .server import PaymentServer
from .types import (
    PaymentOption,
    PaymentRequirements,
    PaymentStatus,
    PaymentVerification,
    TransferInfo,
    X402Response,
)
from .verifier import PaymentVerifier

__all__ = [
    "ChallengeBuilder",
    "ConfigError",
    "InMemoryReplayGuard",
    "InvalidSignatureError",
    "LedgerClient",
    "LedgerError",
    "NativeTransferExtractor",
    "PaymentOption",
    "PaymentRequirements",
    "PaymentServer",
    "PaymentStatus",
    "PaymentVerification",
    "PaymentVerifier",
    "ReplayGuard",
    "RpcUnavailableError",
    "ServerConfig",
    "ServerEnvironment",
    "ServerParameters",
    "TokenTransferExtractor",
    "TransactionRecord",
    "TransferExtractor",
    "TransferInfo",
    "X402Response",
    "build_environment",
    "build_extractor",
    "derive_associated_token_address",
    "load_env_file",
    "load_server_config",
]

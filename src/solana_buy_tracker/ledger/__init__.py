"""Ledger access layer - Solana JSON-RPC queries."""

from solana_buy_tracker.ledger.models import (
    LAMPORTS_PER_SOL,
    SignatureInfo,
    TokenBalance,
    TransactionMeta,
    TransactionRecord,
)
from solana_buy_tracker.ledger.rpc import (
    LedgerError,
    RateLimiter,
    RateLimitError,
    RPCError,
    SolanaRpcClient,
)

__all__ = [
    "LAMPORTS_PER_SOL",
    "LedgerError",
    "RPCError",
    "RateLimitError",
    "RateLimiter",
    "SignatureInfo",
    "SolanaRpcClient",
    "TokenBalance",
    "TransactionMeta",
    "TransactionRecord",
]

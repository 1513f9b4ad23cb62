"""Data models for the ledger module."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass(frozen=True)
class SignatureInfo:
    """A single entry returned by getSignaturesForAddress."""

    signature: str
    slot: int = 0
    err: Any = None
    block_time: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignatureInfo":
        """Create a SignatureInfo from an RPC result entry."""
        block_time = None
        raw_time = data.get("blockTime")
        if raw_time is not None:
            block_time = datetime.fromtimestamp(int(raw_time), tz=UTC)

        return cls(
            signature=str(data["signature"]),
            slot=int(data.get("slot") or 0),
            err=data.get("err"),
            block_time=block_time,
        )


@dataclass(frozen=True)
class TokenBalance:
    """Token-account balance entry from transaction metadata."""

    account_index: int
    mint: str
    owner: str | None = None
    amount: str | None = None
    decimals: int | None = None
    ui_amount_string: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenBalance":
        """Create a TokenBalance from a pre/postTokenBalances entry."""
        ui = data.get("uiTokenAmount") or {}

        ui_amount_string = ui.get("uiAmountString")
        if ui_amount_string is None and ui.get("uiAmount") is not None:
            ui_amount_string = str(ui["uiAmount"])

        decimals = ui.get("decimals")
        return cls(
            account_index=int(data.get("accountIndex", 0)),
            mint=str(data.get("mint", "")),
            owner=data.get("owner"),
            amount=ui.get("amount"),
            decimals=int(decimals) if decimals is not None else None,
            ui_amount_string=ui_amount_string,
        )


@dataclass(frozen=True)
class TransactionMeta:
    """Execution metadata of a confirmed transaction."""

    err: Any = None
    fee: int = 0
    pre_balances: tuple[int, ...] = ()
    post_balances: tuple[int, ...] = ()
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()

    @property
    def succeeded(self) -> bool:
        """Return True if the transaction executed without error."""
        return self.err is None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionMeta":
        """Create a TransactionMeta from the RPC ``meta`` object."""
        return cls(
            err=data.get("err"),
            fee=int(data.get("fee") or 0),
            pre_balances=tuple(int(b) for b in data.get("preBalances") or []),
            post_balances=tuple(int(b) for b in data.get("postBalances") or []),
            pre_token_balances=tuple(
                TokenBalance.from_dict(b) for b in data.get("preTokenBalances") or []
            ),
            post_token_balances=tuple(
                TokenBalance.from_dict(b) for b in data.get("postTokenBalances") or []
            ),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """A confirmed transaction as returned by getTransaction.

    Attributes:
        signature: Transaction signature.
        account_keys: Ordered account keys; index 0 is the fee payer.
        meta: Execution metadata, or None when the node omitted it.
        slot: Slot the transaction landed in.
        block_time: Block timestamp if known.
    """

    signature: str
    account_keys: tuple[str, ...] = ()
    meta: TransactionMeta | None = None
    slot: int = 0
    block_time: datetime | None = field(default=None, compare=False)

    @property
    def fee_payer(self) -> str | None:
        """Return the initiating account, if any."""
        return self.account_keys[0] if self.account_keys else None

    @classmethod
    def from_dict(cls, signature: str, data: dict[str, Any]) -> "TransactionRecord":
        """Create a TransactionRecord from a getTransaction result.

        Handles both legacy and versioned messages. Account keys may be
        plain strings (``json`` encoding) or ``{"pubkey": ...}`` objects
        (``jsonParsed`` encoding).
        """
        message = (data.get("transaction") or {}).get("message") or {}
        keys: list[str] = []
        for key in message.get("accountKeys") or []:
            if isinstance(key, dict):
                keys.append(str(key.get("pubkey", "")))
            else:
                keys.append(str(key))

        raw_meta = data.get("meta")
        meta = TransactionMeta.from_dict(raw_meta) if raw_meta else None

        block_time = None
        if data.get("blockTime") is not None:
            block_time = datetime.fromtimestamp(int(data["blockTime"]), tz=UTC)

        return cls(
            signature=signature,
            account_keys=tuple(keys),
            meta=meta,
            slot=int(data.get("slot") or 0),
            block_time=block_time,
        )

"""Chainhook data models.

The pydantic models validate the inbound batch shape (``apply`` /
``rollback`` block lists). :class:`ChainTransaction` is the flattened,
engine-facing view of a single confirmed transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Event type names used by chainhook predicates and by the Stacks API
FT_TRANSFER_EVENT_TYPES = frozenset({"FTTransferEvent", "ft_transfer_event"})

# ---------------------------------------------------------------------------
# Inbound payload schema
# ---------------------------------------------------------------------------


class _Loose(BaseModel):
    model_config = ConfigDict(extra="allow")


class BlockIdentifier(_Loose):
    index: int
    hash: str


class TransactionIdentifier(_Loose):
    hash: str


class ReceiptEvent(_Loose):
    """A ledger event emitted by a transaction (``{type, data}``)."""

    type: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class Receipts(_Loose):
    events: list[ReceiptEvent] = Field(default_factory=list)
    mutated_contracts_radius: list[str] = Field(default_factory=list)
    mutated_assets_radius: list[str] = Field(default_factory=list)


class TransactionMetadata(_Loose):
    success: bool
    fee: int | None = None
    sender: str | None = None
    receipts: Receipts = Field(default_factory=Receipts)
    result: str | None = None
    description: str | None = None


class TransactionPayload(_Loose):
    transaction_identifier: TransactionIdentifier
    metadata: TransactionMetadata


class BlockEvent(_Loose):
    block_identifier: BlockIdentifier
    parent_block_identifier: BlockIdentifier | None = None
    timestamp: int | None = None
    transactions: list[TransactionPayload] = Field(default_factory=list)


class ChainhookPayload(_Loose):
    """A chainhook delivery: newly confirmed blocks plus reorged-out blocks."""

    apply: list[BlockEvent] = Field(default_factory=list)
    rollback: list[BlockEvent] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Engine-facing transaction view
# ---------------------------------------------------------------------------


@dataclass
class LedgerEvent:
    """One decoded ledger event of a transaction, in emission order."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenTransfer:
    """A fungible-token transfer recovered from a transaction's events.

    ``amount`` and ``recipient`` are ``None`` when the event does not carry
    a usable value.
    """

    asset_identifier: str
    amount: int | None = None
    sender: str | None = None
    recipient: str | None = None


@dataclass
class ChainTransaction:
    """A confirmed transaction together with the block it landed in."""

    tx_id: str
    success: bool
    block_height: int
    block_hash: str
    block_timestamp: int | None = None
    sender_address: str | None = None
    fee: int | None = None
    events: list[LedgerEvent] = field(default_factory=list)
    result: str | None = None
    result_description: str | None = None
    mutated_contracts: list[str] = field(default_factory=list)
    mutated_assets: list[str] = field(default_factory=list)


def to_chain_transactions(block: BlockEvent) -> list[ChainTransaction]:
    """Flatten a block into its transactions, preserving order."""
    txs: list[ChainTransaction] = []
    for item in block.transactions:
        meta = item.metadata
        txs.append(
            ChainTransaction(
                tx_id=item.transaction_identifier.hash,
                success=meta.success,
                block_height=block.block_identifier.index,
                block_hash=block.block_identifier.hash,
                block_timestamp=block.timestamp,
                sender_address=meta.sender,
                fee=meta.fee,
                events=[
                    LedgerEvent(type=ev.type, data=dict(ev.data)) for ev in meta.receipts.events
                ],
                result=meta.result,
                result_description=meta.description,
                mutated_contracts=list(meta.receipts.mutated_contracts_radius),
                mutated_assets=list(meta.receipts.mutated_assets_radius),
            )
        )
    return txs


def _parse_amount(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def extract_token_transfer(tx: ChainTransaction, marker: str) -> TokenTransfer | None:
    """Return the first fungible-token transfer whose asset contains *marker*.

    Args:
        tx: The transaction to inspect.
        marker: Case-insensitive substring of the asset identifier, e.g. ``sbtc``.

    Returns:
        The transfer, or ``None`` if the transaction moved no such token.
    """
    needle = marker.lower()
    for event in tx.events:
        if event.type not in FT_TRANSFER_EVENT_TYPES:
            continue
        asset = event.data.get("asset_identifier")
        if not isinstance(asset, str) or needle not in asset.lower():
            continue
        recipient = event.data.get("recipient")
        sender = event.data.get("sender")
        return TokenTransfer(
            asset_identifier=asset,
            amount=_parse_amount(event.data.get("amount")),
            sender=sender if isinstance(sender, str) and sender else None,
            recipient=recipient if isinstance(recipient, str) and recipient else None,
        )
    return None

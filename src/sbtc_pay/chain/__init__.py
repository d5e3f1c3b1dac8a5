"""Chain event feed — chainhook payload schemas and normalised transactions."""

from sbtc_pay.chain.models import (
    ChainhookPayload,
    ChainTransaction,
    LedgerEvent,
    TokenTransfer,
    extract_token_transfer,
    to_chain_transactions,
)

__all__ = [
    "ChainTransaction",
    "ChainhookPayload",
    "LedgerEvent",
    "TokenTransfer",
    "extract_token_transfer",
    "to_chain_transactions",
]

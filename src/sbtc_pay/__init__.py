"""py-sbtc-pay — sBTC payment reconciliation and webhook delivery engine."""

__version__ = "0.1.0"

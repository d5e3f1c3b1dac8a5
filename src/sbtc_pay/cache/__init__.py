"""Cache client and per-record locks."""

from sbtc_pay.cache.client import CacheClient
from sbtc_pay.cache.locks import LockManager

__all__ = ["CacheClient", "LockManager"]

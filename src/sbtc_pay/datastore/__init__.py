"""Datastore — async SQLAlchemy engine and session management."""

from sbtc_pay.datastore.client import Datastore

__all__ = ["Datastore"]

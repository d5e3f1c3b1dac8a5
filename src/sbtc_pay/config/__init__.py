"""Configuration — pydantic-settings models loaded from env and YAML."""

from sbtc_pay.config.settings import AppConfig

__all__ = ["AppConfig"]

"""Configuration package for the DCA ledger service."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]

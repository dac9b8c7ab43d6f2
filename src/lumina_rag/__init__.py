"""Document-grounded chat core with citation extraction and usage gating."""

from .config import AppSettings, PagingConfig

__all__ = ["AppSettings", "PagingConfig"]

"""Public interface for the Zulip adapter."""

from __future__ import annotations

from .client import ZulipClient, ZulipStreamChannel

__all__ = ["ZulipClient", "ZulipStreamChannel"]

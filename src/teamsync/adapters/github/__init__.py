"""Public interface for the GitHub adapter."""

from __future__ import annotations

from .client import GitHubRead, GitHubWrite
from .translator import user_node_id

__all__ = [
    "GitHubRead",
    "GitHubWrite",
    "user_node_id",
]

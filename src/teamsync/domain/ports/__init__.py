from __future__ import annotations

from .desired import TeamSource
from .platform import ActionWriter, GitHubReader, ZulipReader
from .publishing import ReviewChannel

__all__ = ["ActionWriter", "GitHubReader", "ReviewChannel", "TeamSource", "ZulipReader"]

"""Where a skill import comes from. Exactly one variant per import."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID


@dataclass(frozen=True)
class UrlSource:
    url: str


@dataclass(frozen=True)
class GitHubSource:
    git_url: str
    branch: str | None = None


@dataclass(frozen=True)
class ZipSource:
    file_id: UUID
    identifier: str | None = None


@dataclass(frozen=True)
class MarketSource:
    identifier: str


ImportSource = Union[UrlSource, GitHubSource, ZipSource, MarketSource]

__all__ = ["GitHubSource", "ImportSource", "MarketSource", "UrlSource", "ZipSource"]

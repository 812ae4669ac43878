"""Marketplace lookups: resolve a published skill identifier to its package URL."""

from __future__ import annotations

from urllib.parse import quote

from skillhub.configs import configs


class MarketService:
    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = (base_url or configs.Skill.MarketplaceUrl).rstrip("/")

    def get_skill_download_url(self, identifier: str) -> str:
        return f"{self.base_url}/api/v1/skills/{quote(identifier, safe='')}/download"


__all__ = ["MarketService"]

"""Skill import configuration.

Controls how remote skill packages are fetched (URL, GitHub, marketplace)
and how packages are recognised.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class SkillConfig(BaseModel):
    """Configuration for the skill import pipeline."""

    FetchTimeout: float = Field(
        default=30.0,
        description="Timeout in seconds for downloading a skill from a URL or GitHub",
    )
    GitHubApiUrl: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL used for repository archive downloads",
    )
    GitHubToken: str = Field(
        default="",
        description="Optional GitHub token (raises rate limits, allows private repositories)",
    )
    UserAgent: str = Field(
        default="SkillHub-Skill-Importer",
        description="User-Agent header sent with outbound fetches",
    )
    MarketplaceUrl: str = Field(
        default="https://market.skillhub.dev",
        description="Marketplace base URL; skill identifiers resolve to download URLs under it",
    )
    ManifestFilename: str = Field(
        default="SKILL.md",
        description="Canonical instruction document name inside a skill package",
    )
    BuiltinDir: str = Field(
        default="",
        description="Directory of builtin skills (one sub-directory with a SKILL.md per skill); empty disables them",
    )

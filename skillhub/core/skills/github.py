"""
GitHub repository access for skill imports.

Parses repository URLs (optionally pointing at a branch and a sub-directory)
and downloads repository snapshots as ZIP archives through the GitHub API.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from skillhub.configs import configs

from .parser import SKILL_MD_FILENAME

logger = logging.getLogger(__name__)

_GITHUB_HOSTS = ("github.com", "www.github.com")
_IDENTIFIER_INVALID_RE = re.compile(r"[^a-z0-9]+")


class GitHubParseError(ValueError):
    """The URL does not point at a GitHub repository."""


class GitHubNotFoundError(LookupError):
    """The repository (or the requested ref) does not exist."""


class GitHubDownloadError(RuntimeError):
    """The snapshot could not be downloaded."""


@dataclass(frozen=True)
class GitHubRepoInfo:
    owner: str
    repo: str
    branch: str | None = None
    path: str | None = None

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"


def _normalize_identifier_part(value: str) -> str:
    return _IDENTIFIER_INVALID_RE.sub("-", value.lower()).strip("-")


class GitHubClient:
    def __init__(
        self,
        *,
        api_url: str | None = None,
        token: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = (api_url or configs.Skill.GitHubApiUrl).rstrip("/")
        self.token = token if token is not None else configs.Skill.GitHubToken
        self.user_agent = user_agent or configs.Skill.UserAgent
        self.timeout = timeout or configs.Skill.FetchTimeout
        self._http_client = http_client

    def parse_repo_url(self, url: str, branch: str | None = None) -> GitHubRepoInfo:
        """
        Parse a GitHub URL into owner, repo, branch and sub-directory.

        Accepts ``https://github.com/<owner>/<repo>[.git]`` plus the
        ``/tree/<branch>/<path>`` and ``/blob/<branch>/<path>/SKILL.md`` forms.
        An explicit ``branch`` wins over one found in the URL.

        Raises:
            GitHubParseError: If the URL is not a GitHub repository URL.
        """
        raw = url.strip()
        if raw.startswith(("github.com/", "www.github.com/")):
            raw = f"https://{raw}"

        parsed = urlparse(raw)
        if parsed.scheme not in ("http", "https") or (parsed.hostname or "").lower() not in _GITHUB_HOSTS:
            raise GitHubParseError(f"Not a GitHub repository URL: {url}")

        segments = [s for s in parsed.path.split("/") if s]
        if len(segments) < 2:
            raise GitHubParseError(f"GitHub URL must include owner and repository: {url}")

        owner, repo = segments[0], segments[1]
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        if not owner or not repo:
            raise GitHubParseError(f"GitHub URL must include owner and repository: {url}")

        url_branch: str | None = None
        path: str | None = None
        rest = segments[2:]
        if rest:
            if rest[0] not in ("tree", "blob") or len(rest) < 2:
                raise GitHubParseError(f"Unsupported GitHub URL: {url}")
            url_branch = rest[1]
            path_parts = rest[2:]
            if rest[0] == "blob" and path_parts and path_parts[-1] == SKILL_MD_FILENAME:
                path_parts = path_parts[:-1]
            path = "/".join(path_parts) or None

        return GitHubRepoInfo(owner=owner, repo=repo, branch=branch or url_branch, path=path)

    def generate_identifier(self, info: GitHubRepoInfo) -> str:
        """``<owner>-<repo>[-<last path segment>]``, lower-cased and hyphen-normalized."""
        parts = [_normalize_identifier_part(info.owner), _normalize_identifier_part(info.repo)]
        if info.path:
            last = info.path.rstrip("/").rsplit("/", 1)[-1]
            if last:
                parts.append(_normalize_identifier_part(last))
        return "-".join(p for p in parts if p)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def download_repo_zip(self, info: GitHubRepoInfo) -> bytes:
        """
        Download a repository snapshot archive.

        Raises:
            GitHubNotFoundError: On a 404 from GitHub.
            GitHubDownloadError: On any other failure.
        """
        url = f"{self.api_url}/repos/{info.owner}/{info.repo}/zipball"
        if info.branch:
            url = f"{url}/{info.branch}"
        logger.debug(f"Downloading GitHub archive {url}")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, headers=self._headers(), timeout=self.timeout, follow_redirects=True
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise GitHubDownloadError(str(e) or e.__class__.__name__) from e

        if response.status_code == 404:
            raise GitHubNotFoundError(f"Repository not found: {info.owner}/{info.repo}")
        if response.status_code >= 400:
            raise GitHubDownloadError(f"GitHub returned HTTP {response.status_code}")

        logger.debug(f"Downloaded GitHub archive {info.owner}/{info.repo}: {len(response.content)} bytes")
        return response.content


__all__ = [
    "GitHubClient",
    "GitHubDownloadError",
    "GitHubNotFoundError",
    "GitHubParseError",
    "GitHubRepoInfo",
]

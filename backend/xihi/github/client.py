import base64
import logging
from typing import Any

import httpx

from xihi.core.config import Settings

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    pass


class GitHubClient:
    """Thin async wrapper over the handful of REST calls the bot makes."""

    def __init__(self, settings: Settings, token: str):
        self._http = httpx.AsyncClient(
            base_url=settings.github_api_url,
            timeout=settings.github_timeout,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": settings.user_agent,
                "Authorization": f"token {token}",
            },
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_content(
        self, owner: str, repo: str, path: str, ref: str, required: bool = True
    ) -> str | None:
        """
        Fetch a file's text at ``ref``.

        Returns None for a missing file when ``required`` is False; any other
        failure is raised.
        """
        r = await self._http.get(
            f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}
        )
        if r.status_code == 404 and not required:
            return None
        if r.is_error:
            logger.error(f'Error getting "{path}" from {owner}/{repo}#{ref}')
            r.raise_for_status()

        data = r.json()
        encoding = data.get("encoding")
        if encoding != "base64":
            raise GitHubError(f'unknown encoding "{encoding}"')
        return base64.b64decode(data["content"]).decode("utf-8")

    async def list_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> list[dict[str, Any]]:
        files: list[dict[str, Any]] = []
        url: str | None = f"/repos/{owner}/{repo}/pulls/{number}/files"
        params: dict[str, Any] | None = {"per_page": 100}
        while url:
            r = await self._http.get(url, params=params)
            r.raise_for_status()
            files.extend(r.json())
            url = r.links.get("next", {}).get("url")
            # The next link already carries the query string
            params = None
        return files

    async def create_commit_comment(
        self, owner: str, repo: str, sha: str, body: str
    ) -> dict[str, Any]:
        r = await self._http.post(
            f"/repos/{owner}/{repo}/commits/{sha}/comments", json={"body": body}
        )
        r.raise_for_status()
        return r.json()

    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> dict[str, Any]:
        r = await self._http.post(
            f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body}
        )
        r.raise_for_status()
        return r.json()

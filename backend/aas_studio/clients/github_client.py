"""
GitHub API client for submodel template discovery.

Lists repository contents and downloads raw files from the IDTA
submodel template repository.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Async HTTP client for the GitHub contents API.

    Features:
    - Optional token authentication for higher rate limits
    - Rate limit reporting on 403/429 answers
    - Injectable transport for offline tests
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        api_version: str = "2022-11-28",
        timeout: float = 30.0,
        download_timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.api_version = api_version
        self.timeout = timeout
        self.download_timeout = download_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        """Get default headers for API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": "AAS-Package-Studio/1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _log_rate_limit(response: httpx.Response) -> None:
        if response.status_code in (403, 429) and response.headers.get("x-ratelimit-remaining") == "0":
            logger.warning(
                f"GitHub rate limit exhausted, resets at {response.headers.get('x-ratelimit-reset')}"
            )

    async def get(self, path: str, **kwargs) -> Any:
        """
        Make a GET request to the GitHub API.

        Args:
            path: API path (without base URL)
            **kwargs: Additional request arguments

        Returns:
            JSON response

        Raises:
            httpx.HTTPStatusError: On HTTP errors
        """
        client = await self._get_client()
        response = await client.get(path, **kwargs)
        self._log_rate_limit(response)
        response.raise_for_status()
        return response.json()

    async def get_contents(self, repo: str, path: str) -> list[dict[str, Any]]:
        """
        Get repository contents at a path.

        Args:
            repo: Repository in "owner/name" format
            path: Path within the repository

        Returns:
            List of content items; a single file answer is wrapped in a list
        """
        data = await self.get(f"/repos/{repo}/contents/{path}")
        if isinstance(data, dict):
            return [data]
        return data

    async def get_raw_file(self, download_url: str) -> bytes:
        """
        Download a raw file from GitHub.

        Args:
            download_url: Direct download URL

        Returns:
            File contents as bytes
        """
        client = await self._get_client()
        response = await client.get(
            download_url,
            follow_redirects=True,
            timeout=self.download_timeout,
        )
        self._log_rate_limit(response)
        response.raise_for_status()
        return response.content

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get current rate limit status."""
        return await self.get("/rate_limit")

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

"""
GitHub API Client Module

This module provides the lookups the event classifier needs from the
GitHub REST API: which files a pull request or a commit touched.

Design Decisions:
- Use httpx for async HTTP requests over a client shared by the app
- No retries: a failed lookup is reported to the webhook caller
- 404 gets its own exception so callers can route to the catch-all
- Errors carry the upstream status code and rate-limit headers
"""

from typing import Any, Dict, List, Optional

import httpx

from webhook_relay.config import Settings
from webhook_relay.logging_config import get_logger

logger = get_logger(__name__)

RATE_LIMIT_HEADERS = ("x-ratelimit-limit", "x-ratelimit-remaining", "x-ratelimit-reset")


class GitHubAPIError(Exception):
    """Custom exception for GitHub API errors."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        rate_limit: Optional[Dict[str, str]] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.rate_limit = rate_limit or {}


class GitHubNotFoundError(GitHubAPIError):
    """Exception raised when the requested resource does not exist."""
    pass


def extract_rate_limit(headers: httpx.Headers) -> Dict[str, str]:
    """Pick the rate-limit headers present on a response."""
    return {name: headers[name] for name in RATE_LIMIT_HEADERS if name in headers}


class GitHubClient:
    """
    Async GitHub API client used for classification lookups.

    Usage:
        client = GitHubClient(http_client, settings)
        files = await client.get_pull_request_files("owner", "repo", 42)
    """

    PER_PAGE = 100

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings):
        """
        Initialize the GitHub client.

        Args:
            http_client: Shared async HTTP client
            settings: Application settings (API URL, token, page cap)
        """
        self.http_client = http_client
        self.settings = settings

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.settings.github_token:
            headers["Authorization"] = f"Bearer {self.settings.github_token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Make a request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments to pass to httpx

        Returns:
            httpx.Response object

        Raises:
            GitHubNotFoundError: If the API answers 404
            GitHubAPIError: For any other failure
        """
        url = f"{self.settings.github_api_url}{endpoint}"

        try:
            response = await self.http_client.request(
                method,
                url,
                headers=self._get_headers(),
                **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(
                "GitHub API request failed",
                endpoint=endpoint,
                error=str(e),
                error_type=type(e).__name__
            )
            raise GitHubAPIError(f"GitHub API request failed: {e}") from e

        rate_limit = extract_rate_limit(response.headers)
        remaining = rate_limit.get("x-ratelimit-remaining")
        if remaining and remaining.isdigit() and int(remaining) < 100:
            logger.warning(
                "GitHub API rate limit running low",
                remaining=int(remaining),
                reset_at=rate_limit.get("x-ratelimit-reset")
            )

        if response.status_code == 404:
            logger.info("GitHub resource not found", endpoint=endpoint)
            raise GitHubNotFoundError(
                "GitHub resource not found",
                status_code=404,
                response_body=response.text,
                rate_limit=rate_limit
            )

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                status_code=response.status_code,
                endpoint=endpoint,
                error=error_body[:500]
            )
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                rate_limit=rate_limit
            )

        return response

    async def get_pull_request_files(
        self,
        owner: str,
        repo: str,
        pr_number: int
    ) -> List[str]:
        """
        Fetch the paths of all files changed in a pull request.

        Follows pagination up to the configured page cap.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            List of file paths, renamed files contributing both names
        """
        paths: List[str] = []
        endpoint = f"/repos/{owner}/{repo}/pulls/{pr_number}/files"

        for page in range(1, self.settings.github_max_pages + 1):
            response = await self._request(
                "GET",
                endpoint,
                params={"page": page, "per_page": self.PER_PAGE}
            )
            files_data = response.json()
            if not files_data:
                break

            for file_data in files_data:
                paths.append(file_data["filename"])
                if file_data.get("previous_filename"):
                    paths.append(file_data["previous_filename"])

            if len(files_data) < self.PER_PAGE:
                break

        logger.debug(
            "Fetched pull request files",
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            num_files=len(paths)
        )
        return paths

    async def get_commit_files(self, owner: str, repo: str, sha: str) -> List[str]:
        """Fetch the paths of the files a single commit touched."""
        response = await self._request("GET", f"/repos/{owner}/{repo}/commits/{sha}")
        paths: List[str] = []
        for file_data in response.json().get("files") or []:
            paths.append(file_data["filename"])
            if file_data.get("previous_filename"):
                paths.append(file_data["previous_filename"])

        logger.debug(
            "Fetched commit files",
            owner=owner,
            repo=repo,
            sha=sha,
            num_files=len(paths)
        )
        return paths

# =============================================================================
# DOCS UPDATER - GITHUB API CLIENT
# =============================================================================
"""
GitHub API Client

Low-level client for the GitHub REST API calls used by the documentation
pipeline. Handles authentication, rate limiting, retries and error mapping.

The pipeline talks to two repositories (the source repository of the pull
request and the documentation repository), so every call takes the
repository in ``owner/repo`` form instead of binding one at construction.

Usage:
    client = GitHubClient(token="ghp_xxx")
    files = client.list_pull_files("owner/repo", 42)
    text = client.get_file_text("owner/docs", "docs/index.mdx", ref="main")
"""

import base64
import os
import time
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from docs_updater.engine.retry import RetryPolicy


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}

    def __str__(self):
        if self.status_code:
            return f"[{self.status_code}] {super().__str__()}"
        return super().__str__()


class RateLimitError(GitHubAPIError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, reset_time: int = None):
        super().__init__(message, status_code=403)
        self.reset_time = reset_time


class NotFoundError(GitHubAPIError):
    """Raised when resource is not found."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthenticationError(GitHubAPIError):
    """Raised when authentication fails."""

    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class ValidationError(GitHubAPIError):
    """Raised when request validation fails."""

    def __init__(self, message: str, errors: list = None):
        super().__init__(message, status_code=422)
        self.errors = errors or []


# =============================================================================
# GITHUB CLIENT CLASS
# =============================================================================

class GitHubClient:
    """
    Low-level GitHub API client.

    Attributes:
        token: GitHub API token
        base_url: GitHub API base URL
        retry_policy: Retry schedule for idempotent requests

    Configuration:
        - Supports GitHub.com and GitHub Enterprise
        - Waits when the rate limit runs low
        - Retries GET/HEAD/PUT/DELETE on transient statuses only
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30
    RATE_LIMIT_THRESHOLD = 10  # Wait when remaining requests below this
    PER_PAGE = 100

    def __init__(
        self,
        token: str = None,
        base_url: str = None,
        timeout: int = None,
        retry_policy: RetryPolicy = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub API token (default: from GITHUB_TOKEN env)
            base_url: API base URL (default: github.com)
            timeout: Request timeout in seconds
            retry_policy: Retry schedule (default: RetryPolicy())

        Raises:
            ValueError: If no token is available
        """
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.base_url = (base_url or os.environ.get("GITHUB_API_URL") or
                         self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_policy = retry_policy or RetryPolicy()

        if not self.token:
            raise ValueError(
                "GitHub token required. Set GITHUB_TOKEN environment variable "
                "or pass token parameter."
            )

        self._session = self._create_session()
        self._rate_limit_remaining = None
        self._rate_limit_reset = None

        logger.info(f"GitHubClient initialized for {self.base_url}")

    def _create_session(self) -> requests.Session:
        """Create configured HTTP session with retry logic."""
        session = requests.Session()

        session.headers.update({
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "docs-updater/1.0",
        })

        adapter = HTTPAdapter(max_retries=self.retry_policy.to_urllib3())
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    # =========================================================================
    # PULL REQUEST OPERATIONS
    # =========================================================================

    def get_pull_request(self, repo: str, pull_number: int) -> dict:
        """Get pull request data (title, head/base refs, labels, user)."""
        endpoint = f"/repos/{repo}/pulls/{pull_number}"
        return self._request("GET", endpoint)

    def list_pull_files(self, repo: str, pull_number: int) -> List[dict]:
        """
        List every file changed by a pull request (handles pagination).

        Args:
            repo: Repository in owner/repo format
            pull_number: Pull request number

        Returns:
            List of file dictionaries with filename, status and patch
        """
        endpoint = f"/repos/{repo}/pulls/{pull_number}/files"
        all_files = []
        page = 1

        while True:
            files = self._request(
                "GET",
                endpoint,
                params={"per_page": self.PER_PAGE, "page": page},
            )

            if not files:
                break

            all_files.extend(files)

            if len(files) < self.PER_PAGE:
                break

            page += 1

        return all_files

    def create_pull_request(
        self,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str = None,
    ) -> dict:
        """
        Open a pull request.

        Args:
            repo: Repository in owner/repo format
            title: Pull request title
            head: Branch holding the changes
            base: Branch to merge into
            body: Pull request description (markdown)

        Returns:
            Created pull request data (number, html_url...)
        """
        endpoint = f"/repos/{repo}/pulls"
        data = {"title": title, "head": head, "base": base}
        if body is not None:
            data["body"] = body
        return self._request("POST", endpoint, data=data)

    # =========================================================================
    # ISSUE OPERATIONS
    # =========================================================================

    def add_labels(self, repo: str, issue_number: int, labels: List[str]) -> List[dict]:
        """
        Add labels to an issue or pull request.

        Returns:
            List of all labels on the issue
        """
        endpoint = f"/repos/{repo}/issues/{issue_number}/labels"
        return self._request("POST", endpoint, data={"labels": labels})

    def add_comment(self, repo: str, issue_number: int, body: str) -> dict:
        """Add a comment to an issue or pull request."""
        endpoint = f"/repos/{repo}/issues/{issue_number}/comments"
        return self._request("POST", endpoint, data={"body": body})

    # =========================================================================
    # GIT REFERENCES
    # =========================================================================

    def get_ref(self, repo: str, ref: str) -> dict:
        """
        Get a git reference.

        Args:
            repo: Repository in owner/repo format
            ref: Reference without the ``refs/`` prefix (e.g. ``heads/main``)
        """
        endpoint = f"/repos/{repo}/git/ref/{ref}"
        return self._request("GET", endpoint)

    def get_branch_sha(self, repo: str, branch: str) -> str:
        """Commit SHA at the head of ``branch``."""
        return self.get_ref(repo, f"heads/{branch}")["object"]["sha"]

    def create_ref(self, repo: str, ref: str, sha: str) -> dict:
        """
        Create a git reference.

        Args:
            repo: Repository in owner/repo format
            ref: Fully qualified reference (e.g. ``refs/heads/docs/update``)
            sha: Commit the reference points to
        """
        endpoint = f"/repos/{repo}/git/refs"
        return self._request("POST", endpoint, data={"ref": ref, "sha": sha})

    # =========================================================================
    # CONTENTS OPERATIONS
    # =========================================================================

    def get_contents(self, repo: str, path: str, ref: str = None) -> Any:
        """
        Get contents of a file or directory.

        Args:
            repo: Repository in owner/repo format
            path: Path to file/directory
            ref: Git reference (branch, tag, commit)

        Returns:
            File dictionary, or list of entries for a directory
        """
        endpoint = f"/repos/{repo}/contents/{path.strip('/')}"
        params = {}
        if ref:
            params["ref"] = ref

        return self._request("GET", endpoint, params=params if params else None)

    def get_file_text(self, repo: str, path: str, ref: str = None) -> str:
        """
        Get the decoded text of a file.

        Raises:
            NotFoundError: If the file doesn't exist
            GitHubAPIError: If the path is not a file
        """
        contents = self.get_contents(repo, path, ref=ref)
        if isinstance(contents, list) or contents.get("type") != "file":
            raise GitHubAPIError(f"Not a file: {path}")
        return decode_content(contents)

    def get_file_sha(self, repo: str, path: str, ref: str = None) -> Optional[str]:
        """Blob SHA of an existing file, or None when it doesn't exist."""
        try:
            contents = self.get_contents(repo, path, ref=ref)
        except NotFoundError:
            return None
        if isinstance(contents, list):
            return None
        return contents.get("sha")

    def create_or_update_file(
        self,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str = None,
    ) -> dict:
        """
        Create a file, or update it when ``sha`` of the current blob is given.

        Args:
            repo: Repository in owner/repo format
            path: File path
            content: New file text
            message: Commit message
            branch: Branch to commit to
            sha: Blob SHA of the file being replaced

        Returns:
            Commit and content data
        """
        endpoint = f"/repos/{repo}/contents/{path.strip('/')}"
        data = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            data["sha"] = sha
        return self._request("PUT", endpoint, data=data)

    def delete_file(
        self,
        repo: str,
        path: str,
        message: str,
        branch: str,
        sha: str,
    ) -> dict:
        """Delete a file from ``branch``."""
        endpoint = f"/repos/{repo}/contents/{path.strip('/')}"
        data = {"message": message, "sha": sha, "branch": branch}
        return self._request("DELETE", endpoint, data=data)

    # =========================================================================
    # RATE LIMIT HANDLING
    # =========================================================================

    def get_rate_limit(self) -> dict:
        """
        Get current rate limit status.

        Returns:
            {
                "limit": 5000,
                "remaining": 4999,
                "reset": 1234567890,
                "used": 1
            }
        """
        response = self._request("GET", "/rate_limit", check_rate_limit=False)
        return response.get("resources", {}).get("core", response.get("rate", {}))

    def _update_rate_limit(self, response: requests.Response):
        """Update rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is None:
            return
        try:
            self._rate_limit_remaining = int(remaining)
            self._rate_limit_reset = int(reset) if reset else None
        except (ValueError, TypeError):
            pass

    def _check_rate_limit(self):
        """Wait for the reset window when few requests remain."""
        if self._rate_limit_remaining is None:
            return

        if self._rate_limit_remaining <= self.RATE_LIMIT_THRESHOLD:
            if self._rate_limit_reset:
                wait_time = max(0, self._rate_limit_reset - time.time()) + 1
                if wait_time < 3600:  # Don't wait more than 1 hour
                    logger.warning(
                        f"Rate limit low ({self._rate_limit_remaining} remaining). "
                        f"Waiting {wait_time:.0f} seconds..."
                    )
                    time.sleep(wait_time)

    # =========================================================================
    # HTTP METHODS
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        params: dict = None,
        check_rate_limit: bool = True,
    ) -> Any:
        """
        Make authenticated API request.

        Transient statuses on idempotent methods are retried by the session
        adapter; everything else surfaces as a GitHubAPIError subclass.
        """
        if check_rate_limit:
            self._check_rate_limit()

        url = f"{self.base_url}{endpoint}"

        logger.debug(f"GitHub API: {method} {endpoint}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                json=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise GitHubAPIError(f"Request timed out: {method} {endpoint}")
        except requests.exceptions.ConnectionError as e:
            raise GitHubAPIError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}")

        self._update_rate_limit(response)

        if response.status_code >= 400:
            self._handle_error(response)

        # Return empty dict for 204 No Content
        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    def _handle_error(self, response: requests.Response) -> None:
        """Raise the exception matching an error response."""
        status_code = response.status_code

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
            errors = error_data.get("errors", [])
        except ValueError:
            error_data = {}
            message = response.text
            errors = []

        if status_code == 404:
            # Expected for existence checks; callers decide how loud to be
            logger.debug(f"GitHub API 404: {response.request.method} {response.url}")
            raise NotFoundError(f"Resource not found: {message}")

        logger.error(f"GitHub API error [{status_code}]: {message}")

        if status_code == 401:
            raise AuthenticationError(
                "Authentication failed. Check your GitHub token."
            )

        if status_code in (403, 429):
            if status_code == 429 or "rate limit" in message.lower():
                raise RateLimitError(message, reset_time=self._rate_limit_reset)
            raise GitHubAPIError(message, status_code, error_data)

        if status_code == 422:
            raise ValidationError(message, errors)

        raise GitHubAPIError(message, status_code, error_data)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP session."""
        if self._session:
            self._session.close()
            logger.debug("GitHubClient session closed")


def decode_content(contents: Dict[str, Any]) -> str:
    """Decode the base64 ``content`` field of a contents API response."""
    raw = contents.get("content") or ""
    if contents.get("encoding", "base64") != "base64":
        return raw
    return base64.b64decode(raw).decode("utf-8")


__all__ = [
    "GitHubClient",
    "GitHubAPIError",
    "RateLimitError",
    "NotFoundError",
    "AuthenticationError",
    "ValidationError",
    "decode_content",
]

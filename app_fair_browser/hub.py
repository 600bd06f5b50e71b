#!/usr/bin/env python3
"""
FairHub: a small client for the GitHub-compatible REST API of the hub repository.

Fetches releases, forks and workflow runs, with an ETag cache, rate-limit
detection and retry with exponential backoff.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import requests

from .models import ReleaseInfo, RepositoryInfo, WorkflowRunList


class HubError(Exception):
    """Raised when a hub request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(HubError):
    """Raised when the hub API rate limit is exhausted."""
    pass


class FairHub:
    """Client for the releases, forks and workflow runs of one organization/repository."""

    MAX_RETRIES = 3
    RETRY_DELAY_SECONDS = 1
    PER_PAGE = 100
    MAX_PAGES = 10

    def __init__(self, host: str, org: str, repo: str, token: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: int = 30):
        """
        Initialize the hub client.

        Args:
            host: API host, e.g. "api.github.com", or a full base URL.
            org: Organization owning the hub repository.
            repo: Name of the hub repository.
            token: Optional bearer token.
            session: Optional pre-configured requests session.
            timeout: Request timeout in seconds.
        """
        self.base_url = host.rstrip("/") if "://" in host else f"https://{host.rstrip('/')}"
        self.org = org
        self.repo = repo
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self._etag_cache: Dict[str, Tuple[str, object]] = {}
        self.logger = logging.getLogger(__name__)

    @property
    def repo_url(self) -> str:
        return f"{self.base_url}/repos/{self.org}/{self.repo}"

    def _get_json(self, url: str, params: Optional[Dict] = None, reload: bool = False):
        """
        GET a JSON document with retry logic and conditional caching.

        Args:
            url: Absolute URL to fetch
            params: Query parameters
            reload: Ignore cached data and ask the server for a fresh copy

        Returns:
            Decoded JSON response

        Raises:
            RateLimitExceeded: If the rate limit is exhausted
            HubError: If the request fails after retries
        """
        cache_key = requests.Request("GET", url, params=params).prepare().url
        headers = {}
        if reload:
            headers["Cache-Control"] = "no-cache"
        elif cache_key in self._etag_cache:
            headers["If-None-Match"] = self._etag_cache[cache_key][0]

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)
                    self.logger.warning(f"Request to {url} failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. Retrying in {delay}s...")
                    time.sleep(delay)
                    continue
                raise HubError(f"Request to {url} failed: {e}") from e

            if response.status_code == 304 and cache_key in self._etag_cache:
                self.logger.debug(f"Not modified: {cache_key}")
                return self._etag_cache[cache_key][1]

            if response.status_code == 200:
                data = response.json()
                etag = response.headers.get("ETag")
                if etag:
                    self._etag_cache[cache_key] = (etag, data)
                return data

            if response.status_code == 401:
                raise HubError("Authentication failed. Check your hub token.", 401)

            if response.status_code in (403, 429):
                remaining = response.headers.get("X-RateLimit-Remaining")
                if remaining == "0" or response.status_code == 429:
                    reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                    wait_time = max(reset_time - int(time.time()), 0)
                    raise RateLimitExceeded(f"Rate limit exceeded; resets in {wait_time} seconds", response.status_code)
                raise HubError(f"Forbidden: {response.text}", 403)

            if response.status_code >= 500 and attempt < self.MAX_RETRIES - 1:
                delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)
                self.logger.warning(f"Server error {response.status_code} from {url}. Retrying in {delay}s...")
                time.sleep(delay)
                continue

            raise HubError(f"Request to {url} failed with status {response.status_code}", response.status_code)

        raise HubError(f"Max retries exceeded for {url}")

    def _get_pages(self, url: str, reload: bool = False) -> List[Dict]:
        """Collect every page of a list endpoint."""
        entries: List[Dict] = []
        for page in range(1, self.MAX_PAGES + 1):
            batch = self._get_json(url, {"per_page": self.PER_PAGE, "page": page}, reload=reload)
            entries.extend(batch)
            if len(batch) < self.PER_PAGE:
                break
        return entries

    def fetch_releases(self, reload: bool = False) -> List[ReleaseInfo]:
        """Fetch all releases of the hub repository."""
        entries = self._get_pages(f"{self.repo_url}/releases", reload=reload)
        self.logger.info(f"Fetched {len(entries)} releases from {self.org}/{self.repo}")
        return [ReleaseInfo.from_github_entry(entry) for entry in entries]

    def fetch_forks(self, reload: bool = False) -> List[RepositoryInfo]:
        """Fetch all forks of the hub repository."""
        entries = self._get_pages(f"{self.repo_url}/forks", reload=reload)
        self.logger.info(f"Fetched {len(entries)} forks from {self.org}/{self.repo}")
        return [RepositoryInfo.from_github_entry(entry) for entry in entries]

    def fetch_runs(self, reload: bool = False) -> WorkflowRunList:
        """Fetch the most recent page of workflow runs."""
        data = self._get_json(f"{self.repo_url}/actions/runs", {"per_page": self.PER_PAGE}, reload=reload)
        runs = WorkflowRunList.from_github_entry(data)
        self.logger.info(f"Fetched {len(runs.workflow_runs)} of {runs.total_count} workflow runs")
        return runs

#!/usr/bin/env python3
"""
App Fair Browser

Lists the releases of a hub repository joined with the forks that publish
them, along with the hub's CI workflow runs.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from .hub import FairHub
from .models import AppRelease, ReleaseInfo, RepositoryInfo, Selection, WorkflowRun, WorkflowRunList
from .settings import HubSettings, get_settings_store
from .tables import ActionsTable, ReleasesTable, localized_byte_count, markdown_to_text

APPS, RUNS = "apps", "runs"


class AppEnv:
    """The shared app environment: hub client, loaded tables and reload errors."""

    def __init__(self, settings: HubSettings, hub: Optional[FairHub] = None):
        """
        Initialize the app environment.

        Args:
            settings: Resolved hub settings
            hub: Optional hub client; one is created from the settings if omitted
        """
        self.settings = settings
        self.hub = hub or FairHub(settings.host, settings.org, settings.repo, settings.token)
        self.releases = ReleasesTable()
        self.runs = ActionsTable()
        self.errors: List[Tuple[Optional[Selection], Exception]] = []
        self.lock = threading.RLock()
        self._generations = {APPS: 0, RUNS: 0}
        self.logger = logging.getLogger(__name__)

    def fetch_releases(self, reload: bool = False) -> List[ReleaseInfo]:
        return self.hub.fetch_releases(reload=reload)

    def fetch_forks(self, reload: bool = False) -> List[RepositoryInfo]:
        return self.hub.fetch_forks(reload=reload)

    def fetch_runs(self, reload: bool = False) -> WorkflowRunList:
        return self.hub.fetch_runs(reload=reload)

    @staticmethod
    def match(releases: List[ReleaseInfo], forks: List[RepositoryInfo]) -> List[AppRelease]:
        """
        Join each release with the fork whose owner login equals the release's tag name.

        Releases without a matching fork are dropped. When several forks share an
        owner login the first one wins.
        """
        forks_by_owner: Dict[str, RepositoryInfo] = {}
        for fork in forks:
            forks_by_owner.setdefault(fork.owner.login, fork)

        apps = []
        for release in releases:
            fork = forks_by_owner.get(release.tag_name)
            if fork is not None:
                apps.append(AppRelease(repository=fork, release=release))
        return apps

    def _begin_reload(self, *tables: str) -> Dict[str, int]:
        """Start a reload of the given tables and return their new generations."""
        with self.lock:
            for table in tables:
                self._generations[table] += 1
            return {table: self._generations[table] for table in tables}

    def _superseded(self, started: Dict[str, int]) -> List[str]:
        """Tables that a newer reload has started on since `started`."""
        return [table for table, generation in started.items() if self._generations[table] != generation]

    def _record_error(self, error: Exception, selection: Optional[Selection] = None):
        with self.lock:
            self.errors.append((selection, error))
        self.logger.error(f"Reload failed: {error}")

    def reload(self, reload: bool = False) -> bool:
        """
        Fetch releases, forks and workflow runs concurrently and replace the tables.

        The errors of the previous reload are cleared and each failure of this one
        is appended to the error list. Results for a table that a newer reload has
        since started on are discarded.

        Returns:
            True if all three fetches succeeded and no newer reload superseded this one
        """
        started = self._begin_reload(APPS, RUNS)
        with self.lock:
            self.errors = []
            self.releases.set_items([])
            self.runs.set_items([])

        self.logger.info(f"Reloading {self.settings.org}/{self.settings.repo} from {self.hub.base_url}")
        with ThreadPoolExecutor(max_workers=3) as executor:
            releases_future = executor.submit(self.fetch_releases, reload)
            forks_future = executor.submit(self.fetch_forks, reload)
            runs_future = executor.submit(self.fetch_runs, reload)

        results = {}
        for key, future in (("releases", releases_future), ("forks", forks_future), ("runs", runs_future)):
            try:
                results[key] = future.result()
            except Exception as e:
                self._record_error(e)

        with self.lock:
            superseded = self._superseded(started)
            if APPS not in superseded and "releases" in results and "forks" in results:
                self.releases.set_items(self.match(results["releases"], results["forks"]))
            if RUNS not in superseded and "runs" in results:
                self.runs.set_items(results["runs"].workflow_runs)

        if superseded:
            self.logger.info(f"Discarding superseded reload results for {', '.join(superseded)}")
            return False
        self.logger.info(f"Loaded {len(self.releases.items)} apps and {len(self.runs.items)} workflow runs")
        return len(results) == 3

    def reload_apps(self, reload: bool = False) -> bool:
        """Fetch releases and forks concurrently and replace the releases table."""
        started = self._begin_reload(APPS)
        with self.lock:
            self.releases.set_items([])
        with ThreadPoolExecutor(max_workers=2) as executor:
            releases_future = executor.submit(self.fetch_releases, reload)
            forks_future = executor.submit(self.fetch_forks, reload)
        try:
            apps = self.match(releases_future.result(), forks_future.result())
        except Exception as e:
            self._record_error(e)
            return False
        with self.lock:
            if self._superseded(started):
                return False
            self.releases.set_items(apps)
        return True

    def reload_runs(self, reload: bool = False) -> bool:
        """Fetch workflow runs and replace the runs table."""
        started = self._begin_reload(RUNS)
        with self.lock:
            self.runs.set_items([])
        try:
            runs = self.fetch_runs(reload)
        except Exception as e:
            self._record_error(e)
            return False
        with self.lock:
            if self._superseded(started):
                return False
            self.runs.set_items(runs.workflow_runs)
        return True

    def find_app(self, key: str) -> Optional[AppRelease]:
        """Find a loaded app by release id, tag name or owner login."""
        for app in self.releases.items:
            if key in (str(app.id), app.release.tag_name, app.repository.owner.login):
                return app
        return None

    def find_run(self, run_id: int) -> Optional[WorkflowRun]:
        for run in self.runs.items:
            if run.id == run_id:
                return run
        return None

    def clear_errors(self):
        with self.lock:
            self.errors = []


def render_app_info(app: AppRelease) -> str:
    """Detail view of one app release."""
    owner = app.repository.owner
    lines = [
        owner.app_name,
        "=" * len(owner.app_name),
        f"Icon:          {owner.avatar_url or 'N/A'}",
        "",
        "Release",
        f"  Name:        {app.release.name}",
        f"  Tag:         {app.release.tag_name}",
        f"  Draft:       {'yes' if app.release.draft else 'no'}",
        f"  Pre-Release: {'yes' if app.release.prerelease else 'no'}",
        "",
        "Repository",
        f"  Organization: {app.repository.name}",
        f"  Owner:        {owner.login}",
        f"  Type:         {owner.type}",
    ]
    if app.release.assets:
        lines += ["", "Assets"]
        lines += [f"  {asset.name} ({localized_byte_count(asset.size)}, {asset.download_count:,} downloads)"
                  for asset in app.release.assets]
    lines += ["", "Notes", markdown_to_text(app.release.body) or "No info"]
    return "\n".join(lines)


def create_app_env(db_path: Optional[str] = None) -> AppEnv:
    """Create an app environment from the stored settings."""
    with get_settings_store(db_path) as store:
        store.setup_database()
        settings = store.load_hub_settings()
    return AppEnv(settings)

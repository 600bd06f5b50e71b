"""Shared fixtures: GitHub API payloads and a stubbed hub."""

from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from app_fair_browser.app import AppEnv
from app_fair_browser.models import ReleaseInfo, RepositoryInfo, WorkflowRun, WorkflowRunList
from app_fair_browser.settings import HubSettings


def make_fork_entry(login: str, repo_id: int = 1, stars: int = 0, name: str = "App") -> Dict:
    return {
        "id": repo_id,
        "name": name,
        "full_name": f"{login}/{name}",
        "fork": True,
        "owner": {
            "login": login,
            "id": repo_id + 1000,
            "type": "Organization",
            "avatar_url": f"https://avatars.example.com/{login}.png",
        },
        "stargazers_count": stars,
        "open_issues_count": 2,
        "forks_count": 1,
        "created_at": "2021-08-01T10:00:00Z",
    }


def make_release_entry(release_id: int, tag: str, published_at: Optional[str] = "2021-09-01T12:00:00Z",
                       prerelease: bool = False, assets: Optional[List[Dict]] = None, body: str = "") -> Dict:
    if assets is None:
        assets = [{
            "id": release_id * 10,
            "name": f"{tag}-macOS.zip",
            "size": 2_500_000,
            "state": "uploaded",
            "download_count": release_id * 5,
            "browser_download_url": f"https://github.com/appfair/App/releases/download/{tag}/{tag}-macOS.zip",
        }]
    return {
        "id": release_id,
        "tag_name": tag,
        "name": f"{tag} release",
        "body": body,
        "draft": False,
        "prerelease": prerelease,
        "created_at": "2021-08-30T12:00:00Z",
        "published_at": published_at,
        "html_url": f"https://github.com/appfair/App/releases/tag/{tag}",
        "assets": assets,
    }


def make_run_entry(run_id: int, status: str = "completed", conclusion: Optional[str] = "success",
                   author: str = "Marc", sha: str = "abc123", created_at: str = "2021-09-01T12:00:00Z") -> Dict:
    return {
        "id": run_id,
        "name": "Fair Release",
        "run_number": run_id,
        "status": status,
        "conclusion": conclusion,
        "event": "push",
        "head_branch": "main",
        "head_sha": sha,
        "created_at": created_at,
        "updated_at": created_at,
        "head_commit": {
            "id": sha,
            "message": "Update",
            "timestamp": created_at,
            "author": {"name": author, "email": f"{author.lower()}@example.com"},
        },
        "head_repository": make_fork_entry("Some-App", repo_id=run_id),
    }


@pytest.fixture
def forks() -> List[RepositoryInfo]:
    return [
        RepositoryInfo.from_github_entry(make_fork_entry("Cloud-Cuckoo", repo_id=1, stars=5)),
        RepositoryInfo.from_github_entry(make_fork_entry("Tune-Out", repo_id=2, stars=50)),
        RepositoryInfo.from_github_entry(make_fork_entry("Stale-Fork", repo_id=3)),
    ]


@pytest.fixture
def releases() -> List[ReleaseInfo]:
    return [
        ReleaseInfo.from_github_entry(make_release_entry(101, "Cloud-Cuckoo", "2021-09-01T12:00:00Z")),
        ReleaseInfo.from_github_entry(make_release_entry(102, "Tune-Out", "2021-09-05T12:00:00Z", prerelease=True)),
        ReleaseInfo.from_github_entry(make_release_entry(103, "No-Such-Fork")),
    ]


@pytest.fixture
def runs() -> WorkflowRunList:
    return WorkflowRunList.from_github_entry({
        "total_count": 2,
        "workflow_runs": [
            make_run_entry(1, author="Marc", sha="aaa111", created_at="2021-09-01T12:00:00Z"),
            make_run_entry(2, status="in_progress", conclusion=None, author="Jo", sha="bbb222",
                           created_at="2021-09-02T12:00:00Z"),
        ],
    })


@pytest.fixture
def settings() -> HubSettings:
    return HubSettings(host="api.github.com", org="appfair", repo="App", token=None)


@pytest.fixture
def fake_hub(releases, forks, runs) -> MagicMock:
    hub = MagicMock()
    hub.base_url = "https://api.github.com"
    hub.fetch_releases.return_value = releases
    hub.fetch_forks.return_value = forks
    hub.fetch_runs.return_value = runs
    return hub


@pytest.fixture
def app_env(settings, fake_hub) -> AppEnv:
    return AppEnv(settings, hub=fake_hub)


@pytest.fixture
def loaded_env(app_env) -> AppEnv:
    assert app_env.reload()
    return app_env


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> str:
    for env_var in ("APP_FAIR_HUB_HOST", "APP_FAIR_HUB_ORG", "APP_FAIR_HUB_REPO", "GITHUB_TOKEN", "APP_FAIR_SECRET"):
        monkeypatch.delenv(env_var, raising=False)
    return str(tmp_path / "app_fair.db")

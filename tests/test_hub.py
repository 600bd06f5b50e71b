"""Unit tests for the FairHub HTTP client."""

from typing import Dict, Optional
from unittest.mock import MagicMock, patch

import pytest
import requests

from app_fair_browser.hub import FairHub, HubError, RateLimitExceeded

from conftest import make_fork_entry, make_release_entry, make_run_entry


def make_response(status_code: int = 200, payload=None, headers: Optional[Dict] = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.headers = headers or {}
    response.text = ""
    return response


@pytest.fixture
def session() -> requests.Session:
    session = requests.Session()
    session.get = MagicMock()
    return session


@pytest.fixture
def hub(session) -> FairHub:
    return FairHub("api.github.com", "appfair", "App", token="secret", session=session)


class TestFairHubSetup:

    def test_bearer_token_header(self, hub: FairHub) -> None:
        assert hub.session.headers["Authorization"] == "Bearer secret"

    def test_no_token_no_authorization(self, session) -> None:
        FairHub("api.github.com", "appfair", "App", session=session)

        assert "Authorization" not in session.headers

    def test_host_becomes_https_base_url(self, hub: FairHub) -> None:
        assert hub.repo_url == "https://api.github.com/repos/appfair/App"

    def test_full_base_url_is_kept(self, session) -> None:
        hub = FairHub("http://localhost:8000/api/v3/", "org", "repo", session=session)

        assert hub.repo_url == "http://localhost:8000/api/v3/repos/org/repo"


class TestFairHubFetch:

    def test_fetch_releases(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(payload=[make_release_entry(1, "Cloud-Cuckoo")])

        releases = hub.fetch_releases()

        assert [release.tag_name for release in releases] == ["Cloud-Cuckoo"]
        url = session.get.call_args.args[0]
        assert url == "https://api.github.com/repos/appfair/App/releases"
        assert session.get.call_args.kwargs["params"] == {"per_page": 100, "page": 1}

    def test_fetch_forks_follows_pages(self, hub: FairHub, session) -> None:
        first_page = [make_fork_entry(f"Owner-{i}", repo_id=i) for i in range(100)]
        second_page = [make_fork_entry("Last-Owner", repo_id=500)]
        session.get.side_effect = [make_response(payload=first_page), make_response(payload=second_page)]

        forks = hub.fetch_forks()

        assert len(forks) == 101
        assert forks[-1].owner.login == "Last-Owner"
        assert session.get.call_args.kwargs["params"]["page"] == 2

    def test_fetch_runs(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(payload={
            "total_count": 40,
            "workflow_runs": [make_run_entry(1), make_run_entry(2)],
        })

        runs = hub.fetch_runs()

        assert runs.total_count == 40
        assert [run.id for run in runs.workflow_runs] == [1, 2]
        assert session.get.call_args.args[0].endswith("/actions/runs")


class TestFairHubCache:

    def test_not_modified_returns_cached_payload(self, hub: FairHub, session) -> None:
        session.get.side_effect = [
            make_response(payload=[make_release_entry(1, "Cloud-Cuckoo")], headers={"ETag": '"v1"'}),
            make_response(status_code=304),
        ]

        hub.fetch_releases()
        releases = hub.fetch_releases()

        assert [release.id for release in releases] == [1]
        assert session.get.call_args.kwargs["headers"] == {"If-None-Match": '"v1"'}

    def test_reload_ignores_cache(self, hub: FairHub, session) -> None:
        session.get.side_effect = [
            make_response(payload=[make_release_entry(1, "Cloud-Cuckoo")], headers={"ETag": '"v1"'}),
            make_response(payload=[make_release_entry(2, "Tune-Out")], headers={"ETag": '"v2"'}),
        ]

        hub.fetch_releases()
        releases = hub.fetch_releases(reload=True)

        assert [release.id for release in releases] == [2]
        assert session.get.call_args.kwargs["headers"] == {"Cache-Control": "no-cache"}


class TestFairHubErrors:

    def test_authentication_failure(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(status_code=401)

        with pytest.raises(HubError, match="Authentication failed") as excinfo:
            hub.fetch_releases()

        assert excinfo.value.status_code == 401

    def test_rate_limit_exceeded(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(status_code=403, headers={
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "0",
        })

        with pytest.raises(RateLimitExceeded):
            hub.fetch_forks()

    def test_forbidden_without_rate_limit(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(status_code=403, headers={"X-RateLimit-Remaining": "42"})

        with pytest.raises(HubError, match="Forbidden") as excinfo:
            hub.fetch_forks()

        assert not isinstance(excinfo.value, RateLimitExceeded)

    def test_not_found(self, hub: FairHub, session) -> None:
        session.get.return_value = make_response(status_code=404)

        with pytest.raises(HubError) as excinfo:
            hub.fetch_runs()

        assert excinfo.value.status_code == 404

    @patch("app_fair_browser.hub.time.sleep")
    def test_retries_transport_errors(self, sleep: MagicMock, hub: FairHub, session) -> None:
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            make_response(payload=[make_release_entry(1, "Cloud-Cuckoo")]),
        ]

        releases = hub.fetch_releases()

        assert len(releases) == 1
        sleep.assert_called_once_with(1)

    @patch("app_fair_browser.hub.time.sleep")
    def test_gives_up_after_max_retries(self, sleep: MagicMock, hub: FairHub, session) -> None:
        session.get.side_effect = requests.ConnectionError("down")

        with pytest.raises(HubError, match="down"):
            hub.fetch_releases()

        assert session.get.call_count == FairHub.MAX_RETRIES
        assert sleep.call_count == FairHub.MAX_RETRIES - 1

    @patch("app_fair_browser.hub.time.sleep")
    def test_retries_server_errors(self, sleep: MagicMock, hub: FairHub, session) -> None:
        session.get.side_effect = [make_response(status_code=502), make_response(payload=[])]

        assert hub.fetch_releases() == []
        assert session.get.call_count == 2

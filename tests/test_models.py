"""Unit tests for hub record parsing."""

from datetime import datetime, timezone

from app_fair_browser.models import (
    AppRelease,
    ReleaseInfo,
    RepositoryInfo,
    Selection,
    WorkflowRun,
    parse_timestamp,
)

from conftest import make_fork_entry, make_release_entry, make_run_entry


class TestParseTimestamp:
    """Tests for GitHub timestamp parsing."""

    def test_zulu_suffix(self) -> None:
        assert parse_timestamp("2021-09-01T12:00:00Z") == datetime(2021, 9, 1, 12, tzinfo=timezone.utc)

    def test_missing(self) -> None:
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None


class TestRepositoryInfo:

    def test_from_github_entry(self) -> None:
        repo = RepositoryInfo.from_github_entry(make_fork_entry("Cloud-Cuckoo", repo_id=7, stars=12))

        assert repo.id == 7
        assert repo.full_name == "Cloud-Cuckoo/App"
        assert repo.owner.login == "Cloud-Cuckoo"
        assert repo.owner.type == "Organization"
        assert repo.stargazers_count == 12
        assert repo.forks == 1
        assert repo.fork is True
        assert repo.pushed_at is None

    def test_app_name_replaces_hyphens(self) -> None:
        repo = RepositoryInfo.from_github_entry(make_fork_entry("Cloud-Cuckoo"))

        assert repo.owner.app_name == "Cloud Cuckoo"


class TestReleaseInfo:

    def test_from_github_entry(self) -> None:
        release = ReleaseInfo.from_github_entry(make_release_entry(5, "Tune-Out", prerelease=True))

        assert release.tag_name == "Tune-Out"
        assert release.prerelease is True
        assert release.published_at == datetime(2021, 9, 1, 12, tzinfo=timezone.utc)
        assert len(release.assets) == 1
        assert release.first_asset.download_count == 25
        assert release.first_asset.size == 2_500_000

    def test_draft_without_publish_date_or_assets(self) -> None:
        entry = make_release_entry(6, "Draft-App", published_at=None, assets=[])
        entry["body"] = None

        release = ReleaseInfo.from_github_entry(entry)

        assert release.published_at is None
        assert release.first_asset is None
        assert release.body == ""


class TestWorkflowRun:

    def test_from_github_entry(self) -> None:
        run = WorkflowRun.from_github_entry(make_run_entry(3, conclusion=None, author="Jo", sha="deadbeef"))

        assert run.run_number == 3
        assert run.conclusion is None
        assert run.head_commit.author.name == "Jo"
        assert run.head_sha == "deadbeef"
        assert run.head_repository.owner.login == "Some-App"

    def test_without_head_repository(self) -> None:
        entry = make_run_entry(4)
        entry["head_repository"] = None

        assert WorkflowRun.from_github_entry(entry).head_repository is None


class TestAppRelease:

    def test_identity_and_summary(self) -> None:
        app = AppRelease(
            repository=RepositoryInfo.from_github_entry(make_fork_entry("Cloud-Cuckoo", stars=3)),
            release=ReleaseInfo.from_github_entry(make_release_entry(42, "Cloud-Cuckoo")),
        )

        assert app.id == 42
        assert app.name == "Cloud-Cuckoo release"
        summary = app.to_dict()
        assert summary["app_name"] == "Cloud Cuckoo"
        assert summary["stars"] == 3
        assert summary["download_url"].endswith("Cloud-Cuckoo-macOS.zip")
        assert summary["published_at"] == "2021-09-01T12:00:00+00:00"

    def test_selection_str(self) -> None:
        app = AppRelease(
            repository=RepositoryInfo.from_github_entry(make_fork_entry("Cloud-Cuckoo")),
            release=ReleaseInfo.from_github_entry(make_release_entry(42, "Cloud-Cuckoo")),
        )

        assert str(Selection.app(app)) == "app 42"

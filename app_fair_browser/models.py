#!/usr/bin/env python3
"""
Data models for GitHub hub records.

Immutable records parsed from the GitHub REST API, plus the client-side
AppRelease join of a release with the fork that publishes it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class RepositoryOwner:
    """The account owning a repository."""
    login: str
    id: int
    type: str = "User"
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None

    @property
    def app_name(self) -> str:
        """The app name an owner publishes under, e.g. 'Cloud-Cuckoo' -> 'Cloud Cuckoo'."""
        return self.login.replace("-", " ")

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'RepositoryOwner':
        """Create a RepositoryOwner from GitHub API response entry."""
        return cls(
            login=entry["login"],
            id=entry["id"],
            type=entry.get("type", "User"),
            avatar_url=entry.get("avatar_url"),
            html_url=entry.get("html_url"),
        )


@dataclass(frozen=True)
class RepositoryInfo:
    """A repository, usually a fork of the hub repository."""
    id: int
    name: str
    full_name: str
    owner: RepositoryOwner
    description: Optional[str] = None
    html_url: Optional[str] = None
    fork: bool = False
    stargazers_count: int = 0
    watchers_count: int = 0
    open_issues_count: int = 0
    forks: int = 0
    size: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'RepositoryInfo':
        """Create a RepositoryInfo from GitHub API response entry."""
        return cls(
            id=entry["id"],
            name=entry["name"],
            full_name=entry.get("full_name", entry["name"]),
            owner=RepositoryOwner.from_github_entry(entry["owner"]),
            description=entry.get("description"),
            html_url=entry.get("html_url"),
            fork=bool(entry.get("fork", False)),
            stargazers_count=entry.get("stargazers_count", 0),
            watchers_count=entry.get("watchers_count", 0),
            open_issues_count=entry.get("open_issues_count", 0),
            forks=entry.get("forks_count", entry.get("forks", 0)),
            size=entry.get("size", 0),
            created_at=parse_timestamp(entry.get("created_at")),
            updated_at=parse_timestamp(entry.get("updated_at")),
            pushed_at=parse_timestamp(entry.get("pushed_at")),
        )


@dataclass(frozen=True)
class ReleaseAsset:
    """A downloadable file attached to a release."""
    id: int
    name: str
    size: int
    browser_download_url: str
    state: str = "uploaded"
    download_count: int = 0
    label: Optional[str] = None
    content_type: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'ReleaseAsset':
        """Create a ReleaseAsset from GitHub API response entry."""
        return cls(
            id=entry["id"],
            name=entry["name"],
            size=entry.get("size", 0),
            browser_download_url=entry["browser_download_url"],
            state=entry.get("state", "uploaded"),
            download_count=entry.get("download_count", 0),
            label=entry.get("label"),
            content_type=entry.get("content_type"),
            created_at=parse_timestamp(entry.get("created_at")),
            updated_at=parse_timestamp(entry.get("updated_at")),
        )


@dataclass(frozen=True)
class ReleaseInfo:
    """A tagged release of the hub repository."""
    id: int
    tag_name: str
    name: str = ""
    body: str = ""
    draft: bool = False
    prerelease: bool = False
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    html_url: Optional[str] = None
    assets: Tuple[ReleaseAsset, ...] = field(default_factory=tuple)

    @property
    def first_asset(self) -> Optional[ReleaseAsset]:
        return self.assets[0] if self.assets else None

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'ReleaseInfo':
        """Create a ReleaseInfo from GitHub API response entry."""
        return cls(
            id=entry["id"],
            tag_name=entry["tag_name"],
            name=entry.get("name") or "",
            body=entry.get("body") or "",
            draft=bool(entry.get("draft", False)),
            prerelease=bool(entry.get("prerelease", False)),
            created_at=parse_timestamp(entry.get("created_at")),
            published_at=parse_timestamp(entry.get("published_at")),
            html_url=entry.get("html_url"),
            assets=tuple(ReleaseAsset.from_github_entry(asset) for asset in entry.get("assets", [])),
        )


@dataclass(frozen=True)
class CommitAuthor:
    name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class HeadCommit:
    """The commit a workflow run was triggered for."""
    id: str
    message: str
    author: CommitAuthor
    timestamp: Optional[datetime] = None

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'HeadCommit':
        author = entry.get("author") or {}
        return cls(
            id=entry["id"],
            message=entry.get("message", ""),
            author=CommitAuthor(author.get("name", ""), author.get("email")),
            timestamp=parse_timestamp(entry.get("timestamp")),
        )


@dataclass(frozen=True)
class WorkflowRun:
    """A single CI workflow execution."""
    id: int
    name: str
    run_number: int
    head_sha: str
    head_commit: HeadCommit
    status: Optional[str] = None
    conclusion: Optional[str] = None
    event: Optional[str] = None
    head_branch: Optional[str] = None
    html_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    head_repository: Optional[RepositoryInfo] = None

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'WorkflowRun':
        """Create a WorkflowRun from GitHub API response entry."""
        head_repository = entry.get("head_repository")
        return cls(
            id=entry["id"],
            name=entry.get("name") or "",
            run_number=entry.get("run_number", 0),
            head_sha=entry["head_sha"],
            head_commit=HeadCommit.from_github_entry(entry["head_commit"]),
            status=entry.get("status"),
            conclusion=entry.get("conclusion"),
            event=entry.get("event"),
            head_branch=entry.get("head_branch"),
            html_url=entry.get("html_url"),
            created_at=parse_timestamp(entry.get("created_at")),
            updated_at=parse_timestamp(entry.get("updated_at")),
            head_repository=RepositoryInfo.from_github_entry(head_repository) if head_repository else None,
        )


@dataclass(frozen=True)
class WorkflowRunList:
    total_count: int
    workflow_runs: List[WorkflowRun]

    @classmethod
    def from_github_entry(cls, entry: Dict) -> 'WorkflowRunList':
        runs = [WorkflowRun.from_github_entry(run) for run in entry.get("workflow_runs", [])]
        return cls(entry.get("total_count", len(runs)), runs)


@dataclass(frozen=True)
class AppRelease:
    """A release joined with the fork whose owner login equals its tag name."""
    repository: RepositoryInfo
    release: ReleaseInfo

    @property
    def id(self) -> int:
        return self.release.id

    @property
    def name(self) -> Optional[str]:
        return self.release.name or None

    def to_dict(self) -> Dict:
        """Summarize the app for JSON output."""
        asset = self.release.first_asset
        return {
            "id": self.id,
            "name": self.name,
            "app_name": self.repository.owner.app_name,
            "owner": self.repository.owner.login,
            "repository": self.repository.full_name,
            "tag": self.release.tag_name,
            "stars": self.repository.stargazers_count,
            "issues": self.repository.open_issues_count,
            "forks": self.repository.forks,
            "draft": self.release.draft,
            "prerelease": self.release.prerelease,
            "published_at": self.release.published_at.isoformat() if self.release.published_at else None,
            "download_url": asset.browser_download_url if asset else None,
            "download_count": asset.download_count if asset else None,
            "size": asset.size if asset else None,
        }


@dataclass(frozen=True)
class Selection:
    """The item currently selected in a table: an app or a workflow run."""
    kind: str
    item: object

    @classmethod
    def app(cls, item: AppRelease) -> 'Selection':
        return cls("app", item)

    @classmethod
    def run(cls, item: WorkflowRun) -> 'Selection':
        return cls("run", item)

    def __str__(self) -> str:
        return f"{self.kind} {self.item.id}"

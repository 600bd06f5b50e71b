"""
App Fair Browser

Browse the releases of an App Fair hub repository, joined with the forks that
publish them, along with the hub's CI workflow runs.
"""

__version__ = "1.0.0"

from .app import AppEnv, create_app_env
from .hub import FairHub, HubError, RateLimitExceeded
from .models import AppRelease, ReleaseInfo, RepositoryInfo, WorkflowRun

__all__ = [
    "AppEnv",
    "create_app_env",
    "FairHub",
    "HubError",
    "RateLimitExceeded",
    "AppRelease",
    "ReleaseInfo",
    "RepositoryInfo",
    "WorkflowRun",
]

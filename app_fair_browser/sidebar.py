#!/usr/bin/env python3
"""
Sidebar categories and the actions available on a listed item.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Collection, List, Optional

from .app import AppEnv
from .models import AppRelease
from .settings import SettingsStore
from .tables import ReleasesTable, SortDescriptor, SortOrder, sort_items

RECENT_DAYS = 30

logger = logging.getLogger(__name__)


class SidebarCategory(Enum):
    ALL = "all"
    RECENT = "recent"
    POPULAR = "popular"
    FAVORITES = "favorites"
    PRERELEASES = "prereleases"
    BUILDS = "builds"

    @property
    def title(self) -> str:
        return {
            SidebarCategory.ALL: "All Apps",
            SidebarCategory.RECENT: "Recent",
            SidebarCategory.POPULAR: "Popular",
            SidebarCategory.FAVORITES: "Favorites",
            SidebarCategory.PRERELEASES: "Pre-Releases",
            SidebarCategory.BUILDS: "Builds",
        }[self]


def apps_in_category(env: AppEnv, category: SidebarCategory,
                     favorites: Collection[int] = (), now: Optional[datetime] = None,
                     table: Optional[ReleasesTable] = None) -> List[AppRelease]:
    """
    List the visible apps of a sidebar category.

    Args:
        env: App environment with loaded releases
        category: Any category except BUILDS
        favorites: Release ids marked as favorite
        now: Reference time for the RECENT category
        table: Releases table to list instead of the environment's own

    Returns:
        Apps matching the current search text, ordered for the category
    """
    rows = (table or env.releases).rows()
    if category is SidebarCategory.ALL:
        return rows
    if category is SidebarCategory.RECENT:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=RECENT_DAYS)
        recent = [app for app in rows if app.release.published_at and app.release.published_at >= cutoff]
        return sort_items(recent, [SortDescriptor(env.releases.column("Published"), SortOrder.REVERSE)])
    if category is SidebarCategory.POPULAR:
        return sort_items(rows, [SortDescriptor(env.releases.column("Stars"), SortOrder.REVERSE)])
    if category is SidebarCategory.FAVORITES:
        return [app for app in rows if app.id in favorites]
    if category is SidebarCategory.PRERELEASES:
        return [app for app in rows if app.release.prerelease]
    raise ValueError(f"{category.title} lists workflow runs, not apps")


def share(app: AppRelease) -> str:
    """Text for sharing an app: its release page and download links."""
    lines = [f"{app.repository.owner.app_name} {app.release.name or app.release.tag_name}".strip()]
    if app.release.html_url:
        lines.append(app.release.html_url)
    lines.extend(asset.browser_download_url for asset in app.release.assets)
    return "\n".join(lines)


def mark_favorite(store: SettingsStore, app: AppRelease, favorite: bool = True) -> bool:
    if favorite:
        return store.add_favorite(app.id)
    return store.remove_favorite(app.id)


def delete_item(env: AppEnv, item_id: int) -> bool:
    """Remove an app or run from the loaded tables until the next reload."""
    removed = env.releases.remove(item_id) or env.runs.remove(item_id)
    if removed:
        logger.info(f"Removed item {item_id} from the list")
    else:
        logger.warning(f"No listed item with id {item_id}")
    return removed


def submit_search_query(env: AppEnv, query: str, category: SidebarCategory = SidebarCategory.ALL):
    """Apply search text to the table shown for the category."""
    table = env.runs if category is SidebarCategory.BUILDS else env.releases
    table.search_text = query
    logger.debug(f"Searching {category.title} for '{query}'")

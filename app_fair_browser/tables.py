#!/usr/bin/env python3
"""
Sortable, searchable tables of app releases and workflow runs.

Each table is a list of columns. A column knows how to read a value from a
row, how to compare two values and how to render one as text. Sorting uses a
list of SortDescriptors, the first being the primary key.
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .models import AppRelease, Selection, WorkflowRun


class SortOrder(Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


ASCENDING, SAME, DESCENDING = -1, 0, 1


@dataclass(frozen=True)
class Comparator:
    """Base comparator; subclasses implement _compare for the forward order."""
    order: SortOrder = SortOrder.FORWARD

    def reorder(self, result: int) -> int:
        if self.order is SortOrder.REVERSE:
            return -result
        return result

    def compare(self, lhs, rhs) -> int:
        return self.reorder(self._compare(lhs, rhs))

    def _compare(self, lhs, rhs) -> int:
        raise NotImplementedError

    def with_order(self, order: SortOrder) -> 'Comparator':
        return replace(self, order=order)


def _cmp(lhs, rhs) -> int:
    return ASCENDING if lhs < rhs else DESCENDING if lhs > rhs else SAME


class BoolComparator(Comparator):
    """True sorts before False."""

    def _compare(self, lhs: bool, rhs: bool) -> int:
        return _cmp(not lhs, not rhs)


class DateComparator(Comparator):
    """Chronological; a missing date sorts first."""

    def _compare(self, lhs: Optional[datetime], rhs: Optional[datetime]) -> int:
        if lhs is None or rhs is None:
            return _cmp(lhs is not None, rhs is not None)
        return _cmp(lhs, rhs)


def natural_key(value: str):
    """Case-insensitive key that orders embedded numbers numerically ("v2" < "v10")."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in re.split(r"(\d+)", value) if part
    )


class StringComparator(Comparator):
    """Natural, case-insensitive order over optional strings; None is the empty string."""

    def _compare(self, lhs: Optional[str], rhs: Optional[str]) -> int:
        lhs, rhs = lhs or "", rhs or ""
        return _cmp(natural_key(lhs), natural_key(rhs)) or _cmp(lhs, rhs)


class NumericComparator(Comparator):

    def _compare(self, lhs, rhs) -> int:
        return _cmp(lhs, rhs)


class OptionalNumericComparator(Comparator):
    """Numbers where a missing value counts as zero."""

    def _compare(self, lhs, rhs) -> int:
        return _cmp(lhs or 0, rhs or 0)


def localized_date(value: Optional[datetime]) -> str:
    """Short date and time, e.g. '3/7/24, 4:05 PM'."""
    if value is None:
        return ""
    hour = value.hour % 12 or 12
    return f"{value.month}/{value.day}/{value:%y}, {hour}:{value:%M} {'AM' if value.hour < 12 else 'PM'}"


def localized_number(value: Optional[int]) -> str:
    return "" if value is None else f"{value:,}"


def localized_byte_count(size: int) -> str:
    """File-style byte count using decimal units."""
    if size < 1000:
        return f"{size} bytes"
    kilobytes = round(size / 1000)
    if kilobytes < 1000:
        return f"{kilobytes} KB"
    megabytes = round(size / 1000 ** 2, 1)
    if megabytes < 1000:
        return f"{megabytes:.1f} MB"
    return f"{size / 1000 ** 3:.1f} GB"


def markdown_to_text(body: str) -> str:
    """Strip the common markdown syntax from release notes."""
    text = re.sub(r"^\s{0,3}#{1,6}\s*", "", body, flags=re.MULTILINE)
    text = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"(\*\*|__|\*|_|`)(?=\S)(.+?)(?<=\S)\1", r"\2", text)
    return text.strip()


@dataclass(frozen=True)
class Column:
    """A table column."""
    title: str
    value: Callable[[Any], Any]
    comparator: Comparator
    render: Callable[[Any], str]
    width: Optional[int] = None


@dataclass(frozen=True)
class SortDescriptor:
    """Sort by one column in one direction."""
    column: Column
    order: SortOrder = SortOrder.FORWARD

    def compare(self, lhs, rhs) -> int:
        comparator = self.column.comparator.with_order(self.order)
        return comparator.compare(self.column.value(lhs), self.column.value(rhs))


def date_column(title: str, path: Callable[[Any], Optional[datetime]]) -> Column:
    return Column(title, path, DateComparator(), lambda item: localized_date(path(item)))


def num_column(title: str, path: Callable[[Any], int]) -> Column:
    return Column(title, path, NumericComparator(), lambda item: localized_number(path(item)))


def bool_column(title: str, path: Callable[[Any], bool]) -> Column:
    return Column(title, path, BoolComparator(), lambda item: "[x]" if path(item) else "[ ]")


def str_column(title: str, path: Callable[[Any], str]) -> Column:
    """Non-optional string column."""
    return Column(title, path, StringComparator(), path)


def ostr_column(title: str, path: Callable[[Any], Optional[str]]) -> Column:
    return Column(title, path, StringComparator(), lambda item: path(item) or "")


def onum_column(title: str, path: Callable[[Any], Optional[int]]) -> Column:
    return Column(title, path, OptionalNumericComparator(), lambda item: localized_number(path(item)))


def _asset_attr(name: str) -> Callable[[AppRelease], Any]:
    def path(item: AppRelease):
        asset = item.release.first_asset
        return getattr(asset, name) if asset else None
    return path


def _download_label(item: AppRelease) -> str:
    asset = item.release.first_asset
    if asset is None:
        return ""
    return f"Download {localized_byte_count(asset.size)}"


def _info_text(item: AppRelease) -> str:
    return markdown_to_text(item.release.body) or "No info"


_asset_size = _asset_attr("size")

RELEASE_COLUMNS = [
    Column("Icon", lambda item: item.repository.owner.avatar_url, StringComparator(),
           lambda item: item.repository.owner.avatar_url or "", width=50),
    ostr_column("Name", lambda item: item.name),
    Column("Size", _asset_size, OptionalNumericComparator(),
           lambda item: "N/A" if _asset_size(item) is None else localized_byte_count(_asset_size(item))),
    Column("Download",
           lambda item: item.release.first_asset.browser_download_url.rsplit("/", 1)[-1] if item.release.first_asset else None,
           StringComparator(), _download_label),
    onum_column("Downloads", _asset_attr("download_count")),
    date_column("Created", lambda item: item.release.created_at),
    date_column("Published", lambda item: item.release.published_at),
    num_column("Stars", lambda item: item.repository.stargazers_count),
    num_column("Issues", lambda item: item.repository.open_issues_count),
    num_column("Forks", lambda item: item.repository.forks),
    ostr_column("State", _asset_attr("state")),
    bool_column("Draft", lambda item: item.release.draft),
    bool_column("Pre-Release", lambda item: item.release.prerelease),
    str_column("Tag", lambda item: item.release.tag_name),
    Column("Info", lambda item: item.release.body, StringComparator(), _info_text, width=40),
]


def _run_avatar(item: WorkflowRun) -> Optional[str]:
    return item.head_repository.owner.avatar_url if item.head_repository else None


RUN_COLUMNS = [
    Column("Icon", _run_avatar, StringComparator(), lambda item: _run_avatar(item) or "", width=50),
    ostr_column("Owner", lambda item: item.head_repository.owner.login if item.head_repository else None),
    ostr_column("Status", lambda item: item.status),
    ostr_column("Conclusion", lambda item: item.conclusion),
    num_column("Run #", lambda item: item.run_number),
    str_column("Author", lambda item: item.head_commit.author.name),
    date_column("Created", lambda item: item.created_at),
    date_column("Updated", lambda item: item.updated_at),
    str_column("Hash", lambda item: item.head_sha),
]


def sort_items(items: Iterable, sort_order: Sequence[SortDescriptor]) -> List:
    """Stable sort of items by the given descriptors."""
    def compare(lhs, rhs) -> int:
        for descriptor in sort_order:
            result = descriptor.compare(lhs, rhs)
            if result != SAME:
                return result
        return SAME
    return sorted(items, key=cmp_to_key(compare))


class ItemTable:
    """Rows, sort order, search text and selection of one table."""

    columns: List[Column] = []
    default_sort: str = ""
    selection_kind: str = ""

    def __init__(self, items: Optional[List] = None):
        self.items: List = list(items or [])
        self.selection: Optional[int] = None
        self.search_text = ""
        self.sort_order: List[SortDescriptor] = [SortDescriptor(self.column(self.default_sort))]

    def column(self, title: str) -> Column:
        """Find a column by case-insensitive title."""
        for column in self.columns:
            if column.title.lower() == title.lower():
                return column
        raise KeyError(f"No column named '{title}'. Columns: {', '.join(c.title for c in self.columns)}")

    def copy(self) -> 'ItemTable':
        """A table over the same items whose search and sort can change independently."""
        table = type(self)(self.items)
        table.sort_order = list(self.sort_order)
        table.search_text = self.search_text
        table.selection = self.selection
        return table

    def set_items(self, items: Iterable):
        self.items = sort_items(items, self.sort_order)

    def set_sort_order(self, sort_order: List[SortDescriptor]):
        self.sort_order = sort_order
        self.items = sort_items(self.items, sort_order)

    def sort_by(self, title: str, reverse: bool = False):
        order = SortOrder.REVERSE if reverse else SortOrder.FORWARD
        self.set_sort_order([SortDescriptor(self.column(title), order)])

    def filter_rows(self, items: List) -> List:
        """By default no searching is performed."""
        return items

    def rows(self) -> List:
        return self.filter_rows(self.items)

    def select(self, item_id: Optional[int]) -> Optional[Selection]:
        self.selection = item_id
        return self.item_selection

    @property
    def item_selection(self) -> Optional[Selection]:
        """The currently selected item, if it is still in the table."""
        for item in self.items:
            if item.id == self.selection:
                return Selection(self.selection_kind, item)
        return None

    def remove(self, item_id: int) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != item_id]
        if self.selection == item_id:
            self.selection = None
        return len(self.items) != before

    def render(self, titles: Optional[List[str]] = None, rows: Optional[List] = None) -> str:
        """Render the visible rows, or the given rows, as a plain-text table."""
        columns = [self.column(title) for title in titles] if titles else self.columns
        header = [column.title for column in columns]
        body = [[_clip(column.render(item), column.width) for column in columns]
                for item in (self.rows() if rows is None else rows)]
        widths = [max([len(cell) for cell in cells] or [0]) for cells in zip(header, *body)]
        lines = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
                 for row in [header, ["-" * width for width in widths]] + body]
        return "\n".join(lines)


def _clip(text: str, width: Optional[int]) -> str:
    text = text.splitlines()[0] if text else ""
    if width and len(text) > width:
        return text[:width - 3] + "..."
    return text


def _contains(text: Optional[str], search: str) -> bool:
    return text is not None and search.casefold() in text.casefold()


class ReleasesTable(ItemTable):
    columns = RELEASE_COLUMNS
    default_sort = "Published"
    selection_kind = "app"

    def filter_rows(self, items: List[AppRelease]) -> List[AppRelease]:
        search = self.search_text
        if not search.strip():
            return items
        return [item for item in items
                if _contains(item.repository.name, search)
                or _contains(item.repository.owner.login, search)]


class ActionsTable(ItemTable):
    columns = RUN_COLUMNS
    default_sort = "Created"
    selection_kind = "run"

    def filter_rows(self, items: List[WorkflowRun]) -> List[WorkflowRun]:
        search = self.search_text
        if not search.strip():
            return items
        return [item for item in items
                if _contains(item.name, search)
                or _contains(item.status, search)
                or _contains(item.conclusion, search)
                or _contains(item.head_commit.author.name, search)
                or search in item.head_sha]

"""
In-memory filtering and pagination for the event browser.

The browser fetches the full event list once and narrows it locally. Every
filter is independent; "all" (or an empty search) leaves it inactive, and
the result is the intersection of the active ones.
"""

import math
import calendar
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

ALL = "all"
ITEMS_PER_PAGE = 9
DATE_OPTIONS = ("today", "tomorrow", "thisWeek", "thisMonth", ALL)

Event = Dict[str, Any]


@dataclass(frozen=True)
class EventFilters:
    search: str = ""
    mode: str = ALL
    event_type: str = ALL
    location: str = ALL
    date: str = ALL


def _parse_event_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value[:-1] + "+00:00" if value.endswith("Z") else value)
        except ValueError:
            return None
    else:
        return None
    # Naive values are read as local time
    return parsed.astimezone()


def _add_month(day: datetime) -> datetime:
    year = day.year + day.month // 12
    month = day.month % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def matches_date_option(date_time: Any, option: str, now: Optional[datetime] = None) -> bool:
    """
    Check an event timestamp against a date bucket.

    Buckets start at local midnight of `now`: today is [0h, +1d),
    tomorrow is [+1d, +2d), thisWeek is [0h, +7d], thisMonth is
    [0h, +1 month]. Unknown options match everything.
    """
    if option not in DATE_OPTIONS or option == ALL:
        return True

    event_dt = _parse_event_dt(date_time)
    if event_dt is None:
        return False

    now = (now or datetime.now()).astimezone()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)

    if option == "today":
        return today <= event_dt < tomorrow
    if option == "tomorrow":
        return tomorrow <= event_dt < tomorrow + timedelta(days=1)
    if option == "thisWeek":
        return today <= event_dt <= today + timedelta(days=7)
    return today <= event_dt <= _add_month(today)


def _contains(haystack: Any, needle: str) -> bool:
    return needle in str(haystack or "").lower()


def filter_events(events: List[Event], filters: EventFilters, now: Optional[datetime] = None) -> List[Event]:
    """Return the events matching every active filter, preserving order."""
    term = filters.search.strip().lower()

    predicates: List[Callable[[Event], bool]] = []
    if term:
        predicates.append(lambda e: _contains(e.get("eventName"), term)
                          or _contains(e.get("description"), term)
                          or _contains(e.get("location"), term))
    if filters.mode != ALL:
        predicates.append(lambda e: e.get("mode") == filters.mode)
    if filters.event_type != ALL:
        predicates.append(lambda e: e.get("eventType") == filters.event_type)
    if filters.location != ALL:
        predicates.append(lambda e: e.get("location") == filters.location)
    if filters.date != ALL:
        predicates.append(lambda e: matches_date_option(e.get("dateTime"), filters.date, now))

    return [event for event in events if all(p(event) for p in predicates)]


def total_pages(count: int, per_page: int = ITEMS_PER_PAGE) -> int:
    return math.ceil(count / per_page)


def paginate(events: List[Event], page: int, per_page: int = ITEMS_PER_PAGE) -> List[Event]:
    start = (page - 1) * per_page
    return events[start:start + per_page]


class EventBrowser:
    """
    Filter and page state for the event list view.

    Args:
        events (list): The full fetched event set.
        clock (callable, optional): Returns "now"; defaults to local time.
    """

    def __init__(self, events: Optional[List[Event]] = None, clock: Optional[Callable[[], datetime]] = None):
        self.events: List[Event] = list(events or [])
        self.filters = EventFilters()
        self.page = 1
        self.clock = clock or datetime.now

    def load(self, events: List[Event]) -> None:
        self.events = list(events)
        self._clamp_page()

    @property
    def locations(self) -> List[str]:
        """Unique locations for the location dropdown, in first-seen order."""
        seen: List[str] = []
        for event in self.events:
            location = event.get("location")
            if location and location not in seen:
                seen.append(location)
        return seen

    def set_filters(self, **changes) -> None:
        """Update any of search, mode, event_type, location, date."""
        self.filters = replace(self.filters, **changes)
        self._clamp_page()

    def reset_filters(self) -> None:
        self.filters = EventFilters()
        self._clamp_page()

    def set_page(self, page: int) -> None:
        self.page = max(1, page)
        self._clamp_page()

    @property
    def filtered(self) -> List[Event]:
        return filter_events(self.events, self.filters, self.clock())

    @property
    def total_pages(self) -> int:
        return total_pages(len(self.filtered))

    @property
    def visible(self) -> List[Event]:
        return paginate(self.filtered, self.page)

    def _clamp_page(self) -> None:
        if self.page > self.total_pages:
            self.page = 1

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, NamedTuple, Optional, Union

from bulk_schedule.grid import DAYS
from bulk_schedule.selection import SlotSelection

MAX_WEEKS = 52


@dataclass(frozen=True)
class OneTime:
    @property
    def week_count(self) -> int:
        return 1


@dataclass(frozen=True)
class Weekly:
    week_count: int

    def __post_init__(self):
        if not 1 <= self.week_count <= MAX_WEEKS:
            raise ValueError(f"week_count must be between 1 and {MAX_WEEKS}, got {self.week_count}")


RepeatPattern = Union[OneTime, Weekly]


def repeat_pattern(kind: str, weeks: Optional[int] = None) -> RepeatPattern:
    """Build a pattern from its wire form ('one-time' | 'weekly')."""
    if kind == "one-time":
        return OneTime()
    if kind == "weekly":
        return Weekly(weeks if weeks is not None else 1)
    raise ValueError(f"Unknown repeat pattern: {kind}")


class ExpandedSlot(NamedTuple):
    configuration_id: str
    date: date
    local_time: str  # HH:00

    @property
    def date_str(self) -> str:
        return self.date.isoformat()


def week_start(day: date) -> date:
    """Sunday of the week containing day."""
    # date.weekday(): Mon=0 .. Sun=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def next_sundays(today: date, count: int = 4) -> List[date]:
    first = today if today.weekday() == 6 else today + timedelta(days=6 - today.weekday())
    return [first + timedelta(weeks=i) for i in range(count)]


def end_date(anchor: date, pattern: RepeatPattern) -> date:
    """Last day (Saturday) of the last week covered by the pattern."""
    return week_start(anchor) + timedelta(days=pattern.week_count * 7 - 1)


def local_time_for(hour: int) -> str:
    return f"{hour:02d}:00"


def expand(
    selection: SlotSelection,
    registry_ids: Iterable[str],
    anchor: date,
    pattern: RepeatPattern,
) -> List[ExpandedSlot]:
    """Materialize the selection into concrete (configuration, date, time) slots.

    Order is weeks, then days 0..6, then hours ascending, then registry order.
    Occupants that are not in registry_ids are ignored.
    """
    ordered_ids = list(registry_ids)
    start = week_start(anchor)
    slots: List[ExpandedSlot] = []
    for week_index in range(pattern.week_count):
        for cell, occupants in selection.items():
            slot_date = start + timedelta(days=7 * week_index + cell.day_index)
            for config_id in ordered_ids:
                if config_id in occupants:
                    slots.append(ExpandedSlot(config_id, slot_date, local_time_for(cell.hour)))
    return slots


def total_count(selection: SlotSelection, pattern: RepeatPattern, registry_ids: Optional[Iterable[str]] = None) -> int:
    return selection.count_all(registry_ids) * pattern.week_count


def unique_days(selection: SlotSelection) -> List[str]:
    return [DAYS[day] for day in selection.occupied_days()]

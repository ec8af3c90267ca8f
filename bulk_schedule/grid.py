from dataclasses import dataclass
from typing import Iterator, List, NamedTuple

DAYS = ["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]


class GridCell(NamedTuple):
    day_index: int  # 0=Sun, 6=Sat
    hour: int       # 24h clock, full hour


@dataclass(frozen=True)
class TimeGrid:
    """Day x hour coordinate space used for slot selection.

    The grid always spans first_hour..last_hour; the visible window is only a
    display filter and never narrows what can be selected.
    """
    first_hour: int = 6
    last_hour: int = 21
    visible_first_hour: int = 14
    visible_last_hour: int = 20

    @property
    def day_labels(self) -> List[str]:
        return list(DAYS)

    def hours(self) -> List[int]:
        return list(range(self.first_hour, self.last_hour + 1))

    def visible_hours(self, show_all: bool = False) -> List[int]:
        if show_all:
            return self.hours()
        return list(range(self.visible_first_hour, self.visible_last_hour + 1))

    def is_valid_cell(self, cell: GridCell) -> bool:
        day_index, hour = cell
        return 0 <= day_index < len(DAYS) and self.first_hour <= hour <= self.last_hour

    def cells(self) -> Iterator[GridCell]:
        for day_index in range(len(DAYS)):
            for hour in self.hours():
                yield GridCell(day_index, hour)


DEFAULT_GRID = TimeGrid()

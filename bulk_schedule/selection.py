from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from bulk_schedule.grid import DAYS, DEFAULT_GRID, GridCell, TimeGrid

# Quick patterns offered by the single-configuration sheet: (days, hours or None = every grid hour)
QUICK_PATTERNS: Dict[str, Tuple[List[int], Optional[List[int]]]] = {
    "weekday-mornings": ([1, 2, 3, 4, 5], [6, 7, 8, 9]),
    "mwf": ([1, 3, 5], None),
    "weekend-afternoons": ([6, 0], [12, 13, 14, 15, 16, 17, 18]),
}

_EMPTY: FrozenSet[str] = frozenset()


class SlotSelection:
    """Sparse GridCell -> frozenset of configuration ids.

    Instances are never mutated: every operation returns a new selection and
    the occupant sets are frozensets, so two versions never share a mutable
    inner set. A cell that is absent and a cell holding an empty set read the
    same everywhere.
    """

    def __init__(self, cells: Optional[Mapping[GridCell, Iterable[str]]] = None, grid: TimeGrid = DEFAULT_GRID):
        self.grid = grid
        self._cells: Dict[GridCell, FrozenSet[str]] = {}
        for cell, occupants in (cells or {}).items():
            occupants = frozenset(occupants)
            if occupants:
                self._cells[GridCell(*cell)] = occupants

    # ---------- reads ----------
    def occupants(self, cell: GridCell) -> FrozenSet[str]:
        return self._cells.get(GridCell(*cell), _EMPTY)

    def contains(self, cell: GridCell, config_id: str) -> bool:
        return config_id in self.occupants(cell)

    def items(self) -> List[Tuple[GridCell, FrozenSet[str]]]:
        """Non-empty cells ordered by day, then hour."""
        return sorted(self._cells.items())

    def count_for(self, config_id: str) -> int:
        return sum(1 for occupants in self._cells.values() if config_id in occupants)

    def count_all(self, config_ids: Optional[Iterable[str]] = None) -> int:
        if config_ids is None:
            return sum(len(occupants) for occupants in self._cells.values())
        wanted = set(config_ids)
        return sum(len(occupants & wanted) for occupants in self._cells.values())

    def occupied_days(self) -> List[int]:
        return sorted({cell.day_index for cell in self._cells})

    def is_empty(self) -> bool:
        return not self._cells

    def to_dict(self) -> Dict[GridCell, FrozenSet[str]]:
        return dict(self._cells)

    def __iter__(self) -> Iterator[GridCell]:
        return iter(sorted(self._cells))

    def __len__(self) -> int:
        return len(self._cells)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SlotSelection):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"SlotSelection({dict(self.items())!r})"

    # ---------- transformations ----------
    def _with(self, changes: Mapping[GridCell, FrozenSet[str]]) -> "SlotSelection":
        cells = dict(self._cells)
        cells.update(changes)
        return SlotSelection(cells, grid=self.grid)

    def _set_all(self, cells: List[GridCell], config_id: str) -> "SlotSelection":
        """Uniform toggle: remove from every cell if all hold config_id, else add to every cell."""
        all_selected = all(self.contains(cell, config_id) for cell in cells)
        changes = {}
        for cell in cells:
            occupants = self.occupants(cell)
            changes[cell] = occupants - {config_id} if all_selected else occupants | {config_id}
        return self._with(changes)

    def toggle_cell(self, cell: GridCell, active_config_id: Optional[str]) -> "SlotSelection":
        if not active_config_id:
            return self
        cell = GridCell(*cell)
        occupants = self.occupants(cell)
        if active_config_id in occupants:
            return self._with({cell: occupants - {active_config_id}})
        return self._with({cell: occupants | {active_config_id}})

    def toggle_row(self, hour: int, active_config_id: Optional[str]) -> "SlotSelection":
        if not active_config_id:
            return self
        return self._set_all([GridCell(day, hour) for day in range(len(DAYS))], active_config_id)

    def toggle_column(self, day_index: int, active_config_id: Optional[str]) -> "SlotSelection":
        if not active_config_id:
            return self
        return self._set_all([GridCell(day_index, hour) for hour in self.grid.hours()], active_config_id)

    def apply_pattern(self, pattern: str, active_config_id: Optional[str]) -> "SlotSelection":
        """Add the active configuration to every cell of a quick pattern."""
        if pattern not in QUICK_PATTERNS:
            raise ValueError(f"Unknown pattern: {pattern}")
        if not active_config_id:
            return self
        days, hours = QUICK_PATTERNS[pattern]
        hours = hours if hours is not None else self.grid.hours()
        changes = {}
        for day_index in days:
            for hour in hours:
                cell = GridCell(day_index, hour)
                changes[cell] = self.occupants(cell) | {active_config_id}
        return self._with(changes)

    def clear_all(self) -> "SlotSelection":
        return SlotSelection(grid=self.grid)

    def remove_configuration(self, config_id: str) -> "SlotSelection":
        return SlotSelection(
            {cell: occupants - {config_id} for cell, occupants in self._cells.items()},
            grid=self.grid,
        )

    @classmethod
    def import_template(
        cls,
        slots_by_old_id: Mapping[GridCell, Iterable[str]],
        id_map: Mapping[str, str],
        grid: TimeGrid = DEFAULT_GRID,
    ) -> "SlotSelection":
        """Rebuild a selection from template slots, rewriting ids through id_map.

        Ids missing from id_map are dropped.
        """
        cells = {}
        for cell, old_ids in slots_by_old_id.items():
            cells[GridCell(*cell)] = frozenset(id_map[old] for old in old_ids if old in id_map)
        return cls(cells, grid=grid)

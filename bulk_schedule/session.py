import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from bulk_schedule.conflicts import RoomConflict, find_room_conflicts
from bulk_schedule.errors import EmptySelectionError
from bulk_schedule.export import csv_filename, export_csv
from bulk_schedule.grid import DEFAULT_GRID, GridCell, TimeGrid
from bulk_schedule.models import ClassConfiguration, ConfigurationDraft, Directory
from bulk_schedule.recurrence import (
    ExpandedSlot,
    OneTime,
    RepeatPattern,
    end_date,
    expand,
    total_count,
    week_start,
)
from bulk_schedule.registry import ConfigurationRegistry
from bulk_schedule.selection import SlotSelection
from bulk_schedule.submission import (
    CreateClasses,
    SubmissionReport,
    ToUTC,
    build_submission_groups,
    submit_groups,
)
from bulk_schedule.templates import ScheduleTemplate
from bulk_schedule.timeutils import to_utc

logger = logging.getLogger(__name__)


@dataclass
class InstructorLoad:
    instructor_id: int
    name: str
    count: int


@dataclass
class ScheduleSummary:
    slot_counts: Dict[str, int]
    instructors: List[InstructorLoad]
    unique_days: int
    total_classes: int
    end_date: date
    room_conflicts: List[RoomConflict] = field(default_factory=list)


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


class BulkScheduleSession:
    """One bulk-authoring session: configurations, painted slots, recurrence.

    Serves both the multi-configuration page and the single-configuration
    sheet; the latter is just a session holding one configuration.
    """

    def __init__(
        self,
        directory: Optional[Directory] = None,
        grid: TimeGrid = DEFAULT_GRID,
        week_anchor: Optional[date] = None,
        pattern: RepeatPattern = OneTime(),
    ):
        self.grid = grid
        self.registry = ConfigurationRegistry(directory)
        self.selection = SlotSelection(grid=grid)
        self.active_config_id: Optional[str] = None
        self.week_anchor = week_start(week_anchor or date.today())
        self.pattern = pattern

    # ---------- configurations ----------
    def add_configuration(self, draft: ConfigurationDraft) -> str:
        config_id = self.registry.add(draft)
        self.active_config_id = config_id
        return config_id

    def update_configuration(self, config_id: str, draft: ConfigurationDraft) -> ClassConfiguration:
        return self.registry.update(config_id, draft)

    def remove_configuration(self, config_id: str) -> None:
        self.selection = self.registry.remove(config_id, self.selection)
        if self.active_config_id == config_id:
            ids = self.registry.ids()
            self.active_config_id = ids[0] if ids else None

    def set_active(self, config_id: Optional[str]) -> None:
        if config_id is not None:
            self.registry.get(config_id)
        self.active_config_id = config_id

    def load_template(self, template: ScheduleTemplate) -> Dict[str, str]:
        id_map = self.registry.load_from_template(template.configurations)
        self.selection = SlotSelection.import_template(template.slots, id_map, grid=self.grid)
        ids = self.registry.ids()
        self.active_config_id = ids[0] if ids else None
        return id_map

    # ---------- grid ----------
    def toggle_cell(self, day_index: int, hour: int) -> None:
        self.selection = self.selection.toggle_cell(GridCell(day_index, hour), self.active_config_id)

    def toggle_row(self, hour: int) -> None:
        self.selection = self.selection.toggle_row(hour, self.active_config_id)

    def toggle_column(self, day_index: int) -> None:
        self.selection = self.selection.toggle_column(day_index, self.active_config_id)

    def apply_pattern(self, pattern: str) -> None:
        self.selection = self.selection.apply_pattern(pattern, self.active_config_id)

    def clear_all(self) -> None:
        self.selection = self.selection.clear_all()

    # ---------- derived ----------
    def slot_counts(self) -> Dict[str, int]:
        return {config_id: self.selection.count_for(config_id) for config_id in self.registry.ids()}

    def total_classes(self) -> int:
        return total_count(self.selection, self.pattern, self.registry.ids())

    def end_date(self) -> date:
        return end_date(self.week_anchor, self.pattern)

    def expand(self) -> List[ExpandedSlot]:
        return expand(self.selection, self.registry.ids(), self.week_anchor, self.pattern)

    def room_conflicts(self) -> List[RoomConflict]:
        return find_room_conflicts(self.selection, self.registry)

    def summary(self) -> ScheduleSummary:
        counts = self.slot_counts()
        loads: Dict[int, InstructorLoad] = {}
        for config in self.registry:
            count = counts.get(config.id, 0)
            if not count:
                continue
            load = loads.setdefault(
                config.instructor_id,
                InstructorLoad(config.instructor_id, config.instructor_name or "-", 0),
            )
            load.count += count
        return ScheduleSummary(
            slot_counts=counts,
            instructors=sorted(loads.values(), key=lambda l: l.count, reverse=True),
            unique_days=len(self.selection.occupied_days()),
            total_classes=self.total_classes(),
            end_date=self.end_date(),
            room_conflicts=self.room_conflicts(),
        )

    def confirmation_message(self) -> Optional[str]:
        """Sentence shown by the single-configuration sheet before creating."""
        total = self.total_classes()
        config = self.registry.find(self.active_config_id) if self.active_config_id else None
        if not total or config is None or not config.class_type_name or not config.instructor_name:
            return None
        start, end = self.week_anchor, self.end_date()
        start_str = f"{start.strftime('%a %b')} {_ordinal(start.day)}"
        end_str = f"{end.strftime('%a %b')} {_ordinal(end.day)}"
        return (
            f"This will create {total} {config.class_type_name} with {config.instructor_name} "
            f"starting {start_str} until {end_str}"
        )

    def export_csv(self) -> str:
        return export_csv(self.require_slots(), self.registry)

    def csv_filename(self) -> str:
        return csv_filename(self.week_anchor, self.end_date())

    # ---------- submission ----------
    def require_slots(self) -> List[ExpandedSlot]:
        if not len(self.registry):
            raise EmptySelectionError("Please add at least one configuration")
        slots = self.expand()
        if not slots:
            raise EmptySelectionError("Please select at least one time slot")
        return slots

    async def submit(self, create_classes: CreateClasses, convert: ToUTC = to_utc) -> SubmissionReport:
        slots = self.require_slots()
        groups = build_submission_groups(slots)
        logger.info("Bulk schedule: %d class(es) in %d group(s) from %s", len(slots), len(groups), self.week_anchor)
        return await submit_groups(groups, self.registry, create_classes, convert)

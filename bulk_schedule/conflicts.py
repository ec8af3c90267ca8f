"""
Conflict detection for bulk authoring.

Two advisory checks live here:

- room conflicts between configurations painted onto the same grid cell
  (cell-level, no backend involved);
- overlaps between a candidate class and classes already persisted by the
  backend, per instructor and per room (minute-level).

Neither blocks submission; callers decide whether to ask for confirmation.
"""
from dataclasses import dataclass
from datetime import tzinfo
from typing import Dict, Iterable, List, Optional

from bulk_schedule.grid import DAYS, GridCell
from bulk_schedule.models import ExistingClass
from bulk_schedule.recurrence import ExpandedSlot
from bulk_schedule.registry import ConfigurationRegistry
from bulk_schedule.selection import SlotSelection
from bulk_schedule.timeutils import format_clock, format_hour, parse_utc, studio_tz, time_to_minutes

INSTRUCTOR = "instructor"
ROOM = "room"


@dataclass(frozen=True)
class RoomConflict:
    cell: GridCell
    room_id: int
    class_type_names: List[str]

    @property
    def message(self) -> str:
        return (
            f"{DAYS[self.cell.day_index]} {format_hour(self.cell.hour)}: "
            f"{', '.join(self.class_type_names)} share the same room"
        )


@dataclass(frozen=True)
class CandidateClass:
    instructor_id: int
    class_room_id: int
    date: str  # YYYY-MM-DD, local
    time: str  # HH:mm, local
    duration_minutes: int
    exclude_class_id: Optional[int] = None


@dataclass(frozen=True)
class ScheduleConflict:
    type: str  # "instructor" | "room"
    conflicting_class: ExistingClass
    message: str


def find_room_conflicts(selection: SlotSelection, registry: ConfigurationRegistry) -> List[RoomConflict]:
    conflicts: List[RoomConflict] = []
    for cell, occupants in selection.items():
        if len(occupants) < 2:
            continue
        by_room: Dict[int, List[str]] = {}
        # registry order keeps the reported names stable
        for config in registry:
            if config.id in occupants:
                by_room.setdefault(config.class_room_id, []).append(config.class_type_name or "Unknown")
        for room_id, names in by_room.items():
            if len(names) > 1:
                conflicts.append(RoomConflict(cell=cell, room_id=room_id, class_type_names=names))
    return conflicts


def ranges_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    return start1 < end2 and start2 < end1


def _same_date(existing: ExistingClass, target: str, zone: tzinfo) -> bool:
    moment = parse_utc(existing.schedule_time)
    return moment.date().isoformat() == target or moment.astimezone(zone).date().isoformat() == target


def check_schedule_conflicts(
    candidate: CandidateClass,
    existing_classes: Iterable[ExistingClass],
    zone: Optional[tzinfo] = None,
) -> List[ScheduleConflict]:
    zone = zone or studio_tz()
    conflicts: List[ScheduleConflict] = []
    new_start = time_to_minutes(candidate.time)
    new_end = new_start + candidate.duration_minutes

    for existing in existing_classes:
        if candidate.exclude_class_id is not None and existing.id == candidate.exclude_class_id:
            continue
        if not _same_date(existing, candidate.date, zone):
            continue

        local = parse_utc(existing.schedule_time).astimezone(zone)
        start = local.hour * 60 + local.minute
        end = start + existing.duration_minutes
        if not ranges_overlap(new_start, new_end, start, end):
            continue

        at = format_clock(start)
        if existing.instructor_id == candidate.instructor_id:
            conflicts.append(ScheduleConflict(
                type=INSTRUCTOR,
                conflicting_class=existing,
                message=f'{existing.instructor} is teaching "{existing.display_name}" at {at}',
            ))
        if existing.class_room_id is not None and existing.class_room_id == candidate.class_room_id:
            conflicts.append(ScheduleConflict(
                type=ROOM,
                conflicting_class=existing,
                message=f'{existing.class_room_name} is booked for "{existing.display_name}" at {at}',
            ))
    return conflicts


def check_expanded_conflicts(
    slots: Iterable[ExpandedSlot],
    registry: ConfigurationRegistry,
    existing_classes: Iterable[ExistingClass],
    zone: Optional[tzinfo] = None,
) -> Dict[ExpandedSlot, List[ScheduleConflict]]:
    """Run the persisted-schedule check for every expanded slot; only slots with conflicts are returned."""
    existing_classes = list(existing_classes)
    found: Dict[ExpandedSlot, List[ScheduleConflict]] = {}
    for slot in slots:
        config = registry.get(slot.configuration_id)
        candidate = CandidateClass(
            instructor_id=config.instructor_id,
            class_room_id=config.class_room_id,
            date=slot.date_str,
            time=slot.local_time,
            duration_minutes=config.duration_minutes,
        )
        conflicts = check_schedule_conflicts(candidate, existing_classes, zone)
        if conflicts:
            found[slot] = conflicts
    return found

from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from bulk_schedule.grid import GridCell
from bulk_schedule.models import CONFIG_COLORS, ClassConfiguration, ExistingClass
from bulk_schedule.recurrence import week_start
from bulk_schedule.timeutils import parse_utc, studio_tz


@dataclass
class ScheduleTemplate:
    configurations: List[ClassConfiguration] = field(default_factory=list)
    slots: Dict[GridCell, FrozenSet[str]] = field(default_factory=dict)

    def slot_count(self, config_id: str) -> int:
        return sum(1 for ids in self.slots.values() if config_id in ids)

    @property
    def total_slots(self) -> int:
        return sum(len(ids) for ids in self.slots.values())

    def hours_with_classes(self) -> List[int]:
        return sorted({cell.hour for cell in self.slots})


def previous_weeks(today: date, count: int = 8) -> List[date]:
    """Week starts a template can be taken from: this week and the ones before it."""
    current = week_start(today)
    return [current - timedelta(weeks=i) for i in range(count)]


def template_from_classes(classes: Iterable[ExistingClass], zone: Optional[tzinfo] = None) -> ScheduleTemplate:
    """Turn a week of persisted classes back into configurations and grid slots.

    Classes sharing class type, instructor and room become one configuration;
    each class marks its local weekday/hour for that configuration. Classes
    without a room land in a configuration with class_room_id 0 and no
    room_name; a room has to be picked before it validates.
    """
    zone = zone or studio_tz()
    grouped: Dict[Tuple[int, int, int], List[ExistingClass]] = {}
    for cls in classes:
        key = (cls.class_type_id, cls.instructor_id, cls.class_room_id or 0)
        grouped.setdefault(key, []).append(cls)

    template = ScheduleTemplate()
    slots: Dict[GridCell, set] = {}
    for index, ((class_type_id, instructor_id, room_id), members) in enumerate(grouped.items()):
        first = members[0]
        config_id = f"config-{index}"
        template.configurations.append(ClassConfiguration(
            id=config_id,
            class_type_id=class_type_id,
            instructor_id=instructor_id,
            class_room_id=room_id,
            capacity=first.capacity,
            duration_minutes=first.duration_minutes,
            color=CONFIG_COLORS[index % len(CONFIG_COLORS)],
            class_type_name=first.display_name,
            instructor_name=first.instructor,
            room_name=first.class_room_name if room_id else None,
        ))
        for cls in members:
            local = parse_utc(cls.schedule_time).astimezone(zone)
            # isoweekday: Mon=1 .. Sun=7 -> Sun=0
            cell = GridCell(local.isoweekday() % 7, local.hour)
            slots.setdefault(cell, set()).add(config_id)

    template.slots = {cell: frozenset(ids) for cell, ids in slots.items()}
    return template

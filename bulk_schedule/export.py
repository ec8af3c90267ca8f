import csv
import io
from datetime import date
from typing import Iterable

from bulk_schedule.recurrence import ExpandedSlot
from bulk_schedule.registry import ConfigurationRegistry

CSV_HEADER = ["date", "time", "class_type_id", "instructor_id", "class_room_id", "capacity", "duration_minutes"]


def export_csv(slots: Iterable[ExpandedSlot], registry: ConfigurationRegistry) -> str:
    """Render expanded slots as CSV, one row per slot, grouped by configuration in registry order."""
    slots = list(slots)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for config in registry:
        for slot in slots:
            if slot.configuration_id != config.id:
                continue
            writer.writerow([
                slot.date_str,
                slot.local_time,
                config.class_type_id,
                config.instructor_id,
                config.class_room_id,
                config.capacity,
                config.duration_minutes,
            ])
    return buf.getvalue().rstrip("\n")


def csv_filename(start: date, end: date) -> str:
    return f"schedule-{start.strftime('%b')}-{start.day}-to-{end.strftime('%b')}-{end.day}.csv"

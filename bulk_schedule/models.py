from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONFIG_COLORS = [
    "hsl(221 83% 53%)",  # blue
    "hsl(142 76% 36%)",  # green
    "hsl(48 96% 53%)",   # yellow
    "hsl(262 83% 58%)",  # purple
    "hsl(25 95% 53%)",   # orange
]

DURATION_OPTIONS = [30, 45, 50, 60, 75, 90]
DEFAULT_CAPACITY = 6
DEFAULT_DURATION_MINUTES = 50


@dataclass(frozen=True)
class DirectoryEntry:
    id: int
    name: str


@dataclass
class Directory:
    """Instructors, class types and rooms, fetched once per editing session."""
    instructors: List[DirectoryEntry] = field(default_factory=list)
    class_types: List[DirectoryEntry] = field(default_factory=list)
    rooms: List[DirectoryEntry] = field(default_factory=list)

    @staticmethod
    def _lookup(entries: List[DirectoryEntry], entry_id: int) -> Optional[str]:
        for entry in entries:
            if entry.id == entry_id:
                return entry.name
        return None

    def instructor_name(self, instructor_id: int) -> Optional[str]:
        return self._lookup(self.instructors, instructor_id)

    def class_type_name(self, class_type_id: int) -> Optional[str]:
        return self._lookup(self.class_types, class_type_id)

    def room_name(self, room_id: int) -> Optional[str]:
        return self._lookup(self.rooms, room_id)


@dataclass(frozen=True)
class ConfigurationDraft:
    class_type_id: int
    instructor_id: int
    class_room_id: int
    capacity: int = DEFAULT_CAPACITY
    duration_minutes: int = DEFAULT_DURATION_MINUTES


@dataclass(frozen=True)
class ClassConfiguration:
    id: str
    class_type_id: int
    instructor_id: int
    class_room_id: int
    capacity: int
    duration_minutes: int
    color: str
    class_type_name: Optional[str] = None
    instructor_name: Optional[str] = None
    room_name: Optional[str] = None

    def draft(self) -> ConfigurationDraft:
        return ConfigurationDraft(
            class_type_id=self.class_type_id,
            instructor_id=self.instructor_id,
            class_room_id=self.class_room_id,
            capacity=self.capacity,
            duration_minutes=self.duration_minutes,
        )

    def classes_config(self) -> Dict[str, int]:
        """Payload shape expected by the backend bulk-create endpoint."""
        return {
            "classTypeId": self.class_type_id,
            "instructorId": self.instructor_id,
            "classRoomId": self.class_room_id,
            "capacity": self.capacity,
            "durationMinutes": self.duration_minutes,
        }


@dataclass(frozen=True)
class ExistingClass:
    """A class already persisted by the backend. schedule_time is ISO UTC."""
    id: int
    class_type_id: int
    instructor_id: int
    schedule_time: str
    duration_minutes: int
    capacity: int = 0
    class_room_id: Optional[int] = None
    instructor: Optional[str] = None
    name: Optional[str] = None
    class_type: Optional[str] = None
    class_room_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.class_type or "Unknown"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ExistingClass":
        return cls(
            id=data["id"],
            class_type_id=data.get("class_type_id", 0),
            instructor_id=data["instructor_id"],
            schedule_time=data["schedule_time"],
            duration_minutes=data["duration_minutes"],
            capacity=data.get("capacity", 0),
            class_room_id=data.get("class_room_id"),
            instructor=data.get("instructor"),
            name=data.get("name"),
            class_type=data.get("class_type"),
            class_room_name=data.get("class_room_name"),
        )

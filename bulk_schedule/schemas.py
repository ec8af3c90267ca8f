import datetime as _dt
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# ---------- SHARED ----------
class ConfigurationItem(BaseModel):
    id: str
    class_type_id: int
    instructor_id: int
    class_room_id: int
    capacity: int = 6
    duration_minutes: int = 50
    color: Optional[str] = None
    class_type_name: Optional[str] = None
    instructor_name: Optional[str] = None
    room_name: Optional[str] = None

class SlotItem(BaseModel):
    day_index: int
    hour: int
    configuration_ids: List[str]

class BulkScheduleRequest(BaseModel):
    configurations: List[ConfigurationItem]
    slots: List[SlotItem] = []
    repeat_pattern: str = "one-time"  # "one-time" | "weekly"
    weeks: Optional[int] = None
    start_date: date


# ---------- DIRECTORY ----------
class DirectoryItem(BaseModel):
    id: int
    name: str

class DirectoryResponse(BaseModel):
    instructors: List[DirectoryItem]
    class_types: List[DirectoryItem]
    rooms: List[DirectoryItem]


# ---------- ANCHORS ----------
class AnchorsResponse(BaseModel):
    anchors: List[date]


# ---------- PREVIEW ----------
class ExpandedSlotItem(BaseModel):
    configuration_id: str
    date: date
    time: str

class RoomConflictItem(BaseModel):
    day_index: int
    hour: int
    room_id: int
    class_type_names: List[str]
    message: str

class InstructorLoadItem(BaseModel):
    instructor_id: int
    name: str
    count: int

class PreviewResponse(BaseModel):
    total_classes: int
    end_date: date
    unique_days: int
    slot_counts: Dict[str, int]
    instructors: List[InstructorLoadItem]
    room_conflicts: List[RoomConflictItem]
    expanded: List[ExpandedSlotItem]


# ---------- CONFLICT CHECK ----------
class CheckConflictsRequest(BaseModel):
    instructor_id: int
    class_room_id: int
    date: date
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")  # HH:mm, local
    duration_minutes: int = Field(ge=15)
    exclude_class_id: Optional[int] = None

class ScheduleConflictItem(BaseModel):
    type: str
    class_id: int
    message: str
    date: Optional[_dt.date] = None
    time: Optional[str] = None
    configuration_id: Optional[str] = None

class CheckConflictsResponse(BaseModel):
    valid: bool
    conflicts: List[ScheduleConflictItem] = []


# ---------- SUBMIT ----------
class SubmitRequest(BulkScheduleRequest):
    confirm: bool = False

class GroupResultItem(BaseModel):
    configuration_id: str
    local_time: str
    utc_time: Optional[str] = None
    dates: List[str]
    ok: bool
    error: Optional[str] = None

class SubmitResponse(BaseModel):
    id: str
    ok: bool
    classes_created: int
    results: List[GroupResultItem]


# ---------- TEMPLATES ----------
class CreateTemplateRequest(BaseModel):
    name: str
    configurations: List[ConfigurationItem]
    slots: List[SlotItem] = []

class TemplateResponse(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    configurations: List[ConfigurationItem]
    slots: List[SlotItem]
    total_slots: int

class TemplateListItem(BaseModel):
    id: str
    name: str
    configuration_count: int
    total_slots: int

import uuid
from collections import OrderedDict
from typing import Dict, Iterable, Iterator, List, Optional, Set

from bulk_schedule.errors import FieldError, UnknownConfigurationError, ValidationError
from bulk_schedule.models import CONFIG_COLORS, ClassConfiguration, ConfigurationDraft, Directory
from bulk_schedule.selection import SlotSelection


def validate_draft(draft: ConfigurationDraft) -> None:
    errors: List[FieldError] = []
    if draft.class_type_id is None or draft.class_type_id < 1:
        errors.append(FieldError("class_type_id", "Class type is required"))
    if draft.instructor_id is None or draft.instructor_id < 1:
        errors.append(FieldError("instructor_id", "Instructor is required"))
    if draft.class_room_id is None or draft.class_room_id < 1:
        errors.append(FieldError("class_room_id", "Room is required"))
    if draft.capacity is None or draft.capacity < 1:
        errors.append(FieldError("capacity", "Capacity must be at least 1"))
    if draft.duration_minutes is None or draft.duration_minutes < 15:
        errors.append(FieldError("duration_minutes", "Duration must be at least 15 minutes"))
    if errors:
        raise ValidationError(errors)


class ConfigurationRegistry:
    """Ordered set of class configurations being scheduled in one session."""

    def __init__(self, directory: Optional[Directory] = None, palette: Optional[List[str]] = None):
        self.directory = directory or Directory()
        self.palette = list(palette or CONFIG_COLORS)
        self._configs: "OrderedDict[str, ClassConfiguration]" = OrderedDict()
        # every id ever handed out, so removed ids are never reissued
        self._issued: Set[str] = set()

    def _new_id(self) -> str:
        while True:
            config_id = str(uuid.uuid4())
            if config_id not in self._issued:
                self._issued.add(config_id)
                return config_id

    def _color(self, index: int) -> str:
        return self.palette[index % len(self.palette)]

    def _build(self, config_id: str, draft: ConfigurationDraft, color: str) -> ClassConfiguration:
        return ClassConfiguration(
            id=config_id,
            class_type_id=draft.class_type_id,
            instructor_id=draft.instructor_id,
            class_room_id=draft.class_room_id,
            capacity=draft.capacity,
            duration_minutes=draft.duration_minutes,
            color=color,
            class_type_name=self.directory.class_type_name(draft.class_type_id),
            instructor_name=self.directory.instructor_name(draft.instructor_id),
            room_name=self.directory.room_name(draft.class_room_id),
        )

    # ---------- operations ----------
    def add(self, draft: ConfigurationDraft) -> str:
        validate_draft(draft)
        config_id = self._new_id()
        self._configs[config_id] = self._build(config_id, draft, self._color(len(self._configs)))
        return config_id

    def update(self, config_id: str, draft: ConfigurationDraft) -> ClassConfiguration:
        current = self.get(config_id)
        validate_draft(draft)
        updated = self._build(config_id, draft, current.color)
        self._configs[config_id] = updated
        return updated

    def remove(self, config_id: str, selection: SlotSelection) -> SlotSelection:
        """Drop a configuration and return the selection with it purged from every cell."""
        self.get(config_id)
        del self._configs[config_id]
        return selection.remove_configuration(config_id)

    def load_from_template(self, configs: Iterable[ClassConfiguration]) -> Dict[str, str]:
        """Replace the registry with template configurations under fresh ids.

        Returns the old-id -> new-id map for SlotSelection.import_template.
        Colors follow template order; names are refreshed from the directory
        where it knows the id, otherwise the template's cached name is kept.
        """
        id_map: Dict[str, str] = {}
        loaded: "OrderedDict[str, ClassConfiguration]" = OrderedDict()
        for index, template in enumerate(configs):
            new_id = self._new_id()
            id_map[template.id] = new_id
            loaded[new_id] = ClassConfiguration(
                id=new_id,
                class_type_id=template.class_type_id,
                instructor_id=template.instructor_id,
                class_room_id=template.class_room_id,
                capacity=template.capacity,
                duration_minutes=template.duration_minutes,
                color=self._color(index),
                class_type_name=self.directory.class_type_name(template.class_type_id) or template.class_type_name,
                instructor_name=self.directory.instructor_name(template.instructor_id) or template.instructor_name,
                room_name=self.directory.room_name(template.class_room_id) or template.room_name,
            )
        self._configs = loaded
        return id_map

    # ---------- reads ----------
    def get(self, config_id: str) -> ClassConfiguration:
        try:
            return self._configs[config_id]
        except KeyError:
            raise UnknownConfigurationError(config_id)

    def find(self, config_id: str) -> Optional[ClassConfiguration]:
        return self._configs.get(config_id)

    def ids(self) -> List[str]:
        return list(self._configs)

    def __contains__(self, config_id: object) -> bool:
        return config_id in self._configs

    def __iter__(self) -> Iterator[ClassConfiguration]:
        return iter(list(self._configs.values()))

    def __len__(self) -> int:
        return len(self._configs)

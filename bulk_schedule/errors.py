from dataclasses import dataclass
from typing import List, Optional


class BulkScheduleError(Exception):
    pass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ValidationError(BulkScheduleError):
    """Raised when a configuration draft has out-of-range fields.

    Carries one FieldError per violated field so callers can show them inline.
    """

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))


class EmptySelectionError(BulkScheduleError):
    pass


class UnknownConfigurationError(BulkScheduleError, KeyError):
    def __init__(self, config_id: str):
        self.config_id = config_id
        super().__init__(f"Unknown configuration: {config_id}")

    def __str__(self) -> str:
        return self.args[0]


class BackendError(BulkScheduleError):
    def __init__(self, detail: str, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail if status_code is None else f"{status_code}: {detail}")


class SubmissionError(BulkScheduleError):
    """One or more submission groups failed; `failed` holds their GroupResults."""

    def __init__(self, failed):
        self.failed = list(failed)
        parts = [f"{r.configuration_id} @ {r.local_time} ({r.error})" for r in self.failed]
        super().__init__(f"{len(self.failed)} group(s) failed: " + ", ".join(parts))

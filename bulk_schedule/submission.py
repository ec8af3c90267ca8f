import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from bulk_schedule.errors import BackendError, SubmissionError
from bulk_schedule.models import ClassConfiguration
from bulk_schedule.recurrence import ExpandedSlot
from bulk_schedule.registry import ConfigurationRegistry
from bulk_schedule.timeutils import UTCTime, to_utc

logger = logging.getLogger(__name__)

CreateClasses = Callable[[ClassConfiguration, List[str], str], Awaitable[object]]
ToUTC = Callable[[str, str], UTCTime]


@dataclass(frozen=True)
class SubmissionGroup:
    configuration_id: str
    local_time: str
    dates: List[str]


@dataclass
class GroupResult:
    configuration_id: str
    local_time: str
    dates: List[str]
    utc_time: Optional[str] = None
    ok: bool = False
    error: Optional[str] = None


@dataclass
class SubmissionReport:
    results: List[GroupResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[GroupResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[GroupResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def classes_created(self) -> int:
        return sum(len(r.dates) for r in self.succeeded)

    def raise_for_failures(self) -> None:
        if self.failed:
            raise SubmissionError(self.failed)


def build_submission_groups(slots: Iterable[ExpandedSlot]) -> List[SubmissionGroup]:
    """Group expanded slots by configuration, then local time; one group per backend call."""
    grouped: Dict[Tuple[str, str], List[str]] = {}
    for slot in slots:
        grouped.setdefault((slot.configuration_id, slot.local_time), []).append(slot.date_str)
    # insertion order: configurations first seen first, times as first seen within each
    order: Dict[str, List[str]] = {}
    for config_id, local_time in grouped:
        order.setdefault(config_id, []).append(local_time)
    return [
        SubmissionGroup(config_id, local_time, grouped[(config_id, local_time)])
        for config_id, times in order.items()
        for local_time in times
    ]


async def submit_groups(
    groups: Iterable[SubmissionGroup],
    registry: ConfigurationRegistry,
    create_classes: CreateClasses,
    convert: ToUTC = to_utc,
) -> SubmissionReport:
    """Issue one create call per group, sequentially, carrying on past failures.

    The first date of each group decides the UTC offset for the whole group.
    Calls are not idempotent; re-submitting a report's failed groups is safe,
    re-submitting the succeeded ones duplicates classes.
    """
    report = SubmissionReport()
    groups = list(groups)
    logger.info("Submitting %d class group(s)", len(groups))

    for group in groups:
        result = GroupResult(group.configuration_id, group.local_time, list(group.dates))
        report.results.append(result)
        config = registry.get(group.configuration_id)
        label = config.class_type_name or config.id
        try:
            result.utc_time = convert(group.local_time, group.dates[0]).time
            await create_classes(config, list(group.dates), result.utc_time)
        except BackendError as e:
            result.error = str(e)
            logger.warning(
                "Failed to create %s at %s (%d date(s)): %s",
                label, group.local_time, len(group.dates), e,
            )
            continue
        except Exception as e:
            # recorded per group; later groups still run
            result.error = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected error creating %s at %s", label, group.local_time)
            continue
        result.ok = True

    logger.info("Submission finished: %d ok, %d failed", len(report.succeeded), len(report.failed))
    return report

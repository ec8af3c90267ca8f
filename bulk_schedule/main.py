from fastapi import FastAPI, Depends, HTTPException, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import date, timedelta
from typing import Dict, List, Tuple
import logging

from bulk_schedule.db import SessionLocal, SavedTemplate, SubmissionRecord, init_db
from bulk_schedule.client import StudioClient
from bulk_schedule.conflicts import CandidateClass, check_expanded_conflicts, check_schedule_conflicts
from bulk_schedule.errors import BackendError, EmptySelectionError, ValidationError
from bulk_schedule.grid import DAYS, GridCell
from bulk_schedule.models import ClassConfiguration
from bulk_schedule.recurrence import next_sundays, repeat_pattern
from bulk_schedule.registry import validate_draft
from bulk_schedule.session import BulkScheduleSession
from bulk_schedule.templates import ScheduleTemplate, template_from_classes
from bulk_schedule.schemas import (
    AnchorsResponse,
    BulkScheduleRequest,
    CheckConflictsRequest,
    CheckConflictsResponse,
    ConfigurationItem,
    CreateTemplateRequest,
    DirectoryItem,
    DirectoryResponse,
    ExpandedSlotItem,
    GroupResultItem,
    InstructorLoadItem,
    PreviewResponse,
    RoomConflictItem,
    ScheduleConflictItem,
    SlotItem,
    SubmitRequest,
    SubmitResponse,
    TemplateListItem,
    TemplateResponse,
)

logger = logging.getLogger(__name__)

security = HTTPBearer()
app = FastAPI()

# ---------- DB ----------
async def get_db():
    async with SessionLocal() as session:
        yield session

@app.on_event("startup")
async def startup():
    await init_db()

# ---------- TOKEN ----------
def get_raw_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    return credentials.credentials

def get_studio_client(token: str = Depends(get_raw_token)) -> StudioClient:
    return StudioClient(token=token)

# ---------- HELPERS ----------
def backend_failure(e: BackendError) -> HTTPException:
    if e.status_code is None:
        return HTTPException(status_code=503, detail="Studio API unavailable")
    return HTTPException(status_code=502, detail=f"Studio API error: {e.detail}")

def to_configuration(item: ConfigurationItem) -> ClassConfiguration:
    return ClassConfiguration(
        id=item.id,
        class_type_id=item.class_type_id,
        instructor_id=item.instructor_id,
        class_room_id=item.class_room_id,
        capacity=item.capacity,
        duration_minutes=item.duration_minutes,
        color=item.color or "",
        class_type_name=item.class_type_name,
        instructor_name=item.instructor_name,
        room_name=item.room_name,
    )

def to_configuration_item(config: ClassConfiguration) -> ConfigurationItem:
    return ConfigurationItem(
        id=config.id,
        class_type_id=config.class_type_id,
        instructor_id=config.instructor_id,
        class_room_id=config.class_room_id,
        capacity=config.capacity,
        duration_minutes=config.duration_minutes,
        color=config.color,
        class_type_name=config.class_type_name,
        instructor_name=config.instructor_name,
        room_name=config.room_name,
    )

def to_slot_items(slots: Dict[GridCell, frozenset]) -> List[SlotItem]:
    return [
        SlotItem(day_index=cell.day_index, hour=cell.hour, configuration_ids=sorted(ids))
        for cell, ids in sorted(slots.items())
        if ids
    ]

def to_cells(items: List[SlotItem]) -> Dict[GridCell, frozenset]:
    cells: Dict[GridCell, frozenset] = {}
    for item in items:
        cell = GridCell(item.day_index, item.hour)
        # any clock hour; the 6..21 grid window only bounds painting
        if not (0 <= cell.day_index < len(DAYS) and 0 <= cell.hour <= 23):
            raise HTTPException(status_code=422, detail=f"Invalid slot: day {item.day_index}, hour {item.hour}")
        cells[cell] = cells.get(cell, frozenset()) | frozenset(item.configuration_ids)
    return cells

def build_session(data: BulkScheduleRequest) -> Tuple[BulkScheduleSession, Dict[str, str]]:
    """Rebuild an editing session from a request; returns it with a new-id -> caller-id map."""
    errors = []
    for item in data.configurations:
        try:
            validate_draft(to_configuration(item).draft())
        except ValidationError as e:
            errors.extend(
                {"configuration_id": item.id, "field": err.field, "message": err.message}
                for err in e.errors
            )
    if errors:
        raise HTTPException(status_code=422, detail=errors)

    try:
        pattern = repeat_pattern(data.repeat_pattern, data.weeks)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    session = BulkScheduleSession(week_anchor=data.start_date, pattern=pattern)
    template = ScheduleTemplate(
        configurations=[to_configuration(item) for item in data.configurations],
        slots=to_cells(data.slots),
    )
    id_map = session.load_template(template)
    return session, {new: old for old, new in id_map.items()}

# ---------- API ----------

# 1. SELECTABLE WEEK ANCHORS
@app.get("/bulk-schedules/anchors", response_model=AnchorsResponse)
async def get_anchors():
    return AnchorsResponse(anchors=next_sundays(date.today()))

# 2. DIRECTORY
@app.get("/bulk-schedules/directory", response_model=DirectoryResponse)
async def get_directory(client: StudioClient = Depends(get_studio_client)):
    try:
        directory = await client.load_directory()
    except BackendError as e:
        raise backend_failure(e)

    return DirectoryResponse(
        instructors=[DirectoryItem(id=i.id, name=i.name) for i in directory.instructors],
        class_types=[DirectoryItem(id=t.id, name=t.name) for t in directory.class_types],
        rooms=[DirectoryItem(id=r.id, name=r.name) for r in directory.rooms],
    )

# 3. PREVIEW
@app.post("/bulk-schedules/preview", response_model=PreviewResponse)
async def preview(data: BulkScheduleRequest):
    session, caller_ids = build_session(data)
    summary = session.summary()

    return PreviewResponse(
        total_classes=summary.total_classes,
        end_date=summary.end_date,
        unique_days=summary.unique_days,
        slot_counts={caller_ids[k]: v for k, v in summary.slot_counts.items()},
        instructors=[
            InstructorLoadItem(instructor_id=l.instructor_id, name=l.name, count=l.count)
            for l in summary.instructors
        ],
        room_conflicts=[
            RoomConflictItem(
                day_index=c.cell.day_index,
                hour=c.cell.hour,
                room_id=c.room_id,
                class_type_names=c.class_type_names,
                message=c.message,
            )
            for c in summary.room_conflicts
        ],
        expanded=[
            ExpandedSlotItem(configuration_id=caller_ids[s.configuration_id], date=s.date, time=s.local_time)
            for s in session.expand()
        ],
    )

# 4. CSV EXPORT
@app.post("/bulk-schedules/export")
async def export(data: BulkScheduleRequest):
    session, _ = build_session(data)
    try:
        csv_text = session.export_csv()
    except EmptySelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{session.csv_filename()}"'},
    )

# 5. CHECK CONFLICTS AGAINST EXISTING CLASSES
@app.post("/bulk-schedules/check-conflicts", response_model=CheckConflictsResponse)
async def check_conflicts(
    data: CheckConflictsRequest,
    client: StudioClient = Depends(get_studio_client)
):
    # a day either side: stored times are UTC, the candidate is local
    try:
        existing = await client.list_classes(
            (data.date - timedelta(days=1)).isoformat(),
            (data.date + timedelta(days=1)).isoformat(),
        )
    except BackendError as e:
        raise backend_failure(e)

    candidate = CandidateClass(
        instructor_id=data.instructor_id,
        class_room_id=data.class_room_id,
        date=data.date.isoformat(),
        time=data.time,
        duration_minutes=data.duration_minutes,
        exclude_class_id=data.exclude_class_id,
    )
    conflicts = check_schedule_conflicts(candidate, existing)

    return CheckConflictsResponse(
        valid=not conflicts,
        conflicts=[
            ScheduleConflictItem(type=c.type, class_id=c.conflicting_class.id, message=c.message)
            for c in conflicts
        ],
    )

# 6. SUBMIT
@app.post("/bulk-schedules/submit", response_model=SubmitResponse)
async def submit(
    data: SubmitRequest,
    response: Response,
    client: StudioClient = Depends(get_studio_client),
    db: AsyncSession = Depends(get_db)
):
    session, caller_ids = build_session(data)
    try:
        slots = session.require_slots()
    except EmptySelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # A. Existing-schedule conflicts need explicit confirmation
    if not data.confirm:
        try:
            existing = await client.list_classes(
                (session.week_anchor - timedelta(days=1)).isoformat(),
                (session.end_date() + timedelta(days=1)).isoformat(),
            )
        except BackendError as e:
            raise backend_failure(e)

        found = check_expanded_conflicts(slots, session.registry, existing)
        if found:
            raise HTTPException(
                status_code=409,
                detail={
                    "message": f"There are {sum(len(c) for c in found.values())} conflicts. Resubmit with confirm=true to proceed anyway.",
                    "conflicts": [
                        ScheduleConflictItem(
                            type=c.type,
                            class_id=c.conflicting_class.id,
                            message=c.message,
                            date=slot.date,
                            time=slot.local_time,
                            configuration_id=caller_ids[slot.configuration_id],
                        ).model_dump(mode="json")
                        for slot, conflicts in found.items()
                        for c in conflicts
                    ],
                },
            )

    # B. Create, one call per (configuration, time) group
    report = await session.submit(client.create_classes)
    results = [
        GroupResultItem(
            configuration_id=caller_ids[r.configuration_id],
            local_time=r.local_time,
            utc_time=r.utc_time,
            dates=r.dates,
            ok=r.ok,
            error=r.error,
        )
        for r in report.results
    ]

    # C. Record the outcome
    record = SubmissionRecord(
        start_date=session.week_anchor.isoformat(),
        total_groups=len(report.results),
        failed_groups=len(report.failed),
        results=[r.model_dump(mode="json") for r in results],
    )
    db.add(record)
    await db.commit()

    if not report.ok:
        logger.warning("Submission %s: %d of %d group(s) failed", record.id, len(report.failed), len(report.results))
        response.status_code = 207

    return SubmitResponse(
        id=record.id,
        ok=report.ok,
        classes_created=report.classes_created,
        results=results,
    )

# 7. GET SUBMISSION
@app.get("/bulk-schedules/submissions/{submission_id}", response_model=SubmitResponse)
async def get_submission(submission_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(SubmissionRecord).where(SubmissionRecord.id == submission_id)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=404, detail="Submission not found")

    results = [GroupResultItem(**r) for r in record.results]
    return SubmitResponse(
        id=record.id,
        ok=record.failed_groups == 0,
        classes_created=sum(len(r.dates) for r in results if r.ok),
        results=results,
    )

# 8. SAVE TEMPLATE
@app.post("/templates", response_model=TemplateResponse)
async def create_template(data: CreateTemplateRequest, db: AsyncSession = Depends(get_db)):
    cells = to_cells(data.slots)
    template = SavedTemplate(
        name=data.name,
        configurations=[c.model_dump(mode="json") for c in data.configurations],
        slots=[s.model_dump(mode="json") for s in to_slot_items(cells)],
    )
    db.add(template)
    await db.commit()

    return TemplateResponse(
        id=template.id,
        name=template.name,
        configurations=data.configurations,
        slots=to_slot_items(cells),
        total_slots=sum(len(ids) for ids in cells.values()),
    )

# 9. LIST TEMPLATES
@app.get("/templates", response_model=list[TemplateListItem])
async def list_templates(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(SavedTemplate).order_by(SavedTemplate.created_at))
    templates = result.scalars().all()

    return [
        TemplateListItem(
            id=t.id,
            name=t.name,
            configuration_count=len(t.configurations),
            total_slots=sum(len(s["configuration_ids"]) for s in t.slots),
        )
        for t in templates
    ]

# 10. TEMPLATE FROM A PREVIOUS WEEK
@app.get("/templates/previous-week", response_model=TemplateResponse)
async def previous_week_template(
    week_start: date,
    client: StudioClient = Depends(get_studio_client)
):
    """Build a template from a past week's classes.

    Classes stored without a room come back as a configuration with
    class_room_id 0 and room_name null. Pick a room for it before posting
    the template to preview or submit, which reject room 0 with a 422.
    """
    try:
        existing = await client.list_classes(
            week_start.isoformat(),
            (week_start + timedelta(days=6)).isoformat(),
        )
    except BackendError as e:
        raise backend_failure(e)

    if not existing:
        raise HTTPException(status_code=404, detail="No classes found for that week")

    template = template_from_classes(existing)
    return TemplateResponse(
        configurations=[to_configuration_item(c) for c in template.configurations],
        slots=to_slot_items(template.slots),
        total_slots=template.total_slots,
    )

# 11. GET TEMPLATE
@app.get("/templates/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(SavedTemplate).where(SavedTemplate.id == template_id)
    )
    template = result.scalar_one_or_none()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")

    slots = [SlotItem(**s) for s in template.slots]
    return TemplateResponse(
        id=template.id,
        name=template.name,
        configurations=[ConfigurationItem(**c) for c in template.configurations],
        slots=slots,
        total_slots=sum(len(s.configuration_ids) for s in slots),
    )

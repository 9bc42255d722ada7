# routers/tasks.py - Kanban tasks inside a project
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, get_current_freelancer
from database import get_db_session
from errors import ValidationFailure
from models import Task, TaskStage
from ownership import EntityKind, authorize

router = APIRouter(prefix="/api", tags=["Tasks"])

NON_NULLABLE_FIELDS = ("title", "stage", "position")


def _normalise_stage(v):
    # "In-Progress", "in progress" and "in_progress" all mean the same column
    if isinstance(v, str):
        return v.strip().lower().replace("-", "_").replace(" ", "_")
    return v


# --- Schemas ---

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    stage: TaskStage = TaskStage.BACKLOG
    position: Optional[int] = Field(default=None, ge=0)  # None appends to the end of the stage
    due_date: Optional[date] = None

    @field_validator("stage", mode="before")
    @classmethod
    def normalise_stage(cls, v):
        return _normalise_stage(v)


class TaskUpdate(BaseModel):
    """Partial update: only fields present in the body are applied"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    stage: Optional[TaskStage] = None
    position: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[date] = None

    @field_validator("stage", mode="before")
    @classmethod
    def normalise_stage(cls, v):
        return _normalise_stage(v)

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class TaskOut(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    stage: str
    position: int
    due_date: Optional[str] = None
    created_at: Optional[str] = None


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, (date, datetime)) else str(dt)


def task_to_out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        project_id=t.project_id,
        title=t.title,
        description=t.description,
        stage=t.stage.value if isinstance(t.stage, TaskStage) else t.stage,
        position=t.position or 0,
        due_date=_ts(t.due_date),
        created_at=_ts(t.created_at),
    )


def stage_filter(stage: Optional[str] = Query(default=None)) -> Optional[TaskStage]:
    """Stage query parameter, accepting the same spellings as request bodies"""
    if stage is None:
        return None
    try:
        return TaskStage(_normalise_stage(stage))
    except ValueError:
        raise ValidationFailure(f"Unknown stage: {stage}")


async def _next_position(db: AsyncSession, project_id: str, stage: TaskStage) -> int:
    stmt = select(func.max(Task.position)).where(Task.project_id == project_id, Task.stage == stage)
    current = (await db.execute(stmt)).scalar()
    return 0 if current is None else current + 1


# --- Endpoints ---

@router.post("/projects/{project_id}/tasks", response_model=TaskOut)
async def create_task(
    project_id: str,
    data: TaskCreate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    position = data.position
    if position is None:
        position = await _next_position(db, project.id, data.stage)

    task = Task(
        project_id=project.id,
        title=data.title,
        description=data.description,
        stage=data.stage,
        position=position,
        due_date=data.due_date,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task_to_out(task)


@router.get("/projects/{project_id}/tasks", response_model=List[TaskOut])
async def list_tasks(
    project_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
    stage: Optional[TaskStage] = Depends(stage_filter),
):
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    stmt = select(Task).where(Task.project_id == project.id).order_by(Task.position, Task.created_at)
    if stage is not None:
        stmt = stmt.where(Task.stage == stage)
    result = await db.execute(stmt)
    return [task_to_out(t) for t in result.scalars().all()]


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Apply the fields present in the body; an empty body changes nothing"""
    task = await authorize(db, user, EntityKind.TASK, task_id)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return task_to_out(task)

    for field, value in changes.items():
        setattr(task, field, value)

    await db.commit()
    await db.refresh(task)
    return task_to_out(task)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    task = await authorize(db, user, EntityKind.TASK, task_id)
    await db.delete(task)
    await db.commit()
    return {"task_id": task_id, "status": "deleted"}

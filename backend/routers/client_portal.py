# routers/client_portal.py - Client-facing surface, authenticated by magic-link token
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import ClientPrincipal, get_current_client
from database import get_db_session
from models import Project, Task, TaskStage, File, Update, AuthorType, ViewPage
from ownership import EntityKind, authorize
from routers.projects import ProjectOut, project_to_out
from routers.updates import UpdateCreate, UpdateOut, updates_with_authors, update_to_out
from tracking import TrackingRecorder, get_tracker

router = APIRouter(prefix="/api/portal", tags=["Client Portal"])

RECENT_UPDATES = 10


# --- Schemas ---

class ClientTaskOut(BaseModel):
    id: str
    title: str
    stage: str
    due_date: Optional[str] = None


class ClientFileOut(BaseModel):
    id: str
    name: str
    file_size: int
    created_at: Optional[str] = None


class ClientProjectDetailOut(ProjectOut):
    tasks: List[ClientTaskOut] = []
    updates: List[UpdateOut] = []
    files: List[ClientFileOut] = []


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, (date, datetime)) else str(dt)


# --- Endpoints ---

@router.get("/projects", response_model=List[ProjectOut])
async def my_projects(
    client: ClientPrincipal = Depends(get_current_client),
    db: AsyncSession = Depends(get_db_session),
    tracker: TrackingRecorder = Depends(get_tracker),
):
    """The calling client's projects, newest first"""
    await tracker.view(client.id, ViewPage.PROJECTS.value)

    stmt = (
        select(Project)
        .where(Project.client_id == client.id)
        .order_by(Project.created_at.desc())
    )
    result = await db.execute(stmt)
    return [project_to_out(p) for p in result.scalars().all()]


@router.get("/projects/{project_id}", response_model=ClientProjectDetailOut)
async def my_project_detail(
    project_id: str,
    client: ClientPrincipal = Depends(get_current_client),
    db: AsyncSession = Depends(get_db_session),
    tracker: TrackingRecorder = Depends(get_tracker),
):
    """Project detail with tasks, recent updates and files"""
    project = await authorize(db, client, EntityKind.PROJECT, project_id)
    await tracker.view(client.id, ViewPage.PROJECT.value, project_id=project.id)

    tasks_stmt = select(Task).where(Task.project_id == project.id).order_by(Task.position, Task.created_at)
    tasks = (await db.execute(tasks_stmt)).scalars().all()

    updates = (await db.execute(updates_with_authors(project.id, RECENT_UPDATES))).all()

    files_stmt = select(File).where(File.project_id == project.id).order_by(File.created_at.desc())
    files = (await db.execute(files_stmt)).scalars().all()

    return ClientProjectDetailOut(
        **project_to_out(project).model_dump(),
        tasks=[
            ClientTaskOut(
                id=t.id,
                title=t.title,
                stage=t.stage.value if isinstance(t.stage, TaskStage) else t.stage,
                due_date=_ts(t.due_date),
            )
            for t in tasks
        ],
        updates=[update_to_out(u, name) for u, name in updates],
        files=[
            ClientFileOut(id=f.id, name=f.name, file_size=f.file_size or 0, created_at=_ts(f.created_at))
            for f in files
        ],
    )


@router.post("/projects/{project_id}/updates", response_model=UpdateOut)
async def reply(
    project_id: str,
    data: UpdateCreate,
    client: ClientPrincipal = Depends(get_current_client),
    db: AsyncSession = Depends(get_db_session),
):
    """Client reply on its own project's feed"""
    project = await authorize(db, client, EntityKind.PROJECT, project_id)

    entry = Update(
        project_id=project.id,
        author_type=AuthorType.CLIENT,
        author_id=client.id,
        content=data.content,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return update_to_out(entry, client.name)

# routers/projects.py - Projects under a client (freelancer side)
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, get_current_freelancer
from database import get_db_session
from models import Project, Task
from ownership import EntityKind, authorize, owned_by_freelancer
from routers.tasks import TaskOut, task_to_out

router = APIRouter(prefix="/api", tags=["Projects"])


# --- Schemas ---

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field(default="active", min_length=1, max_length=20)


class ProjectOut(BaseModel):
    id: str
    client_id: str
    name: str
    description: Optional[str] = None
    status: str
    created_at: Optional[str] = None


class ProjectDetailOut(ProjectOut):
    tasks: List[TaskOut] = []


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def project_to_out(p: Project) -> ProjectOut:
    return ProjectOut(
        id=p.id,
        client_id=p.client_id,
        name=p.name,
        description=p.description,
        status=p.status or "active",
        created_at=_ts(p.created_at),
    )


# --- Endpoints ---

@router.post("/clients/{client_id}/projects", response_model=ProjectOut)
async def create_project(
    client_id: str,
    data: ProjectCreate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    client = await authorize(db, user, EntityKind.CLIENT, client_id)

    project = Project(
        client_id=client.id,
        name=data.name,
        description=data.description,
        status=data.status,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project_to_out(project)


@router.get("/clients/{client_id}/projects", response_model=List[ProjectOut])
async def list_projects(
    client_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    stmt = (
        select(Project)
        .where(Project.client_id == client_id)
        .order_by(Project.created_at.desc())
    )
    stmt = owned_by_freelancer(stmt, EntityKind.PROJECT, user.id)
    result = await db.execute(stmt)
    return [project_to_out(p) for p in result.scalars().all()]


@router.get("/projects/{project_id}", response_model=ProjectDetailOut)
async def get_project(
    project_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Project with its tasks"""
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    tasks_stmt = select(Task).where(Task.project_id == project.id).order_by(Task.position, Task.created_at)
    tasks = (await db.execute(tasks_stmt)).scalars().all()

    return ProjectDetailOut(
        **project_to_out(project).model_dump(),
        tasks=[task_to_out(t) for t in tasks],
    )

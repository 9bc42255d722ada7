# routers/updates.py - Project update feed (freelancer side)
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Select, select, case, and_
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, get_current_freelancer
from database import get_db_session
from models import Update, AuthorType, Freelancer, Client
from ownership import EntityKind, authorize

router = APIRouter(prefix="/api", tags=["Updates"])


# --- Schemas ---

class UpdateCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class UpdateOut(BaseModel):
    id: str
    project_id: str
    author_type: str
    author_id: str
    author_name: Optional[str] = None
    content: str
    created_at: Optional[str] = None


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def updates_with_authors(project_id: str, limit: Optional[int] = None) -> Select:
    """Feed query; author_id is resolved against freelancers or clients by author_type"""
    author_name = case(
        (Update.author_type == AuthorType.FREELANCER, Freelancer.name),
        else_=Client.name,
    ).label("author_name")
    stmt = (
        select(Update, author_name)
        .outerjoin(Freelancer, and_(
            Update.author_type == AuthorType.FREELANCER, Update.author_id == Freelancer.id,
        ))
        .outerjoin(Client, and_(
            Update.author_type == AuthorType.CLIENT, Update.author_id == Client.id,
        ))
        .where(Update.project_id == project_id)
        .order_by(Update.created_at.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def update_to_out(u: Update, author_name: Optional[str] = None) -> UpdateOut:
    return UpdateOut(
        id=u.id,
        project_id=u.project_id,
        author_type=u.author_type.value if isinstance(u.author_type, AuthorType) else u.author_type,
        author_id=u.author_id,
        author_name=author_name,
        content=u.content,
        created_at=_ts(u.created_at),
    )


# --- Endpoints ---

@router.post("/projects/{project_id}/updates", response_model=UpdateOut)
async def post_update(
    project_id: str,
    data: UpdateCreate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    entry = Update(
        project_id=project.id,
        author_type=AuthorType.FREELANCER,
        author_id=user.id,
        content=data.content,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return update_to_out(entry, user.name)


@router.get("/projects/{project_id}/updates", response_model=List[UpdateOut])
async def list_updates(
    project_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Feed for a project, newest first"""
    project = await authorize(db, user, EntityKind.PROJECT, project_id)
    result = await db.execute(updates_with_authors(project.id, limit))
    return [update_to_out(u, name) for u, name in result.all()]

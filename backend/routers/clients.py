# routers/clients.py - Clients of a portal and their activity
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, get_current_freelancer
from database import get_db_session
from errors import Conflict
from models import Portal, Client, Project, ClientView, FileDownload, File
from ownership import EntityKind, authorize, owned_by_freelancer

router = APIRouter(prefix="/api", tags=["Clients"])

ACTIVITY_LIMIT = 50


# --- Schemas ---

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class ClientCreated(BaseModel):
    id: str
    access_token: str
    portal_url: str


class ClientOut(BaseModel):
    id: str
    portal_id: str
    name: str
    email: str
    access_token: str
    portal_url: str
    last_seen_at: Optional[str] = None
    project_count: int = 0
    created_at: Optional[str] = None


class ViewOut(BaseModel):
    id: str
    project_id: Optional[str] = None
    page: str
    viewed_at: Optional[str] = None


class DownloadOut(BaseModel):
    id: str
    file_id: str
    file_name: str
    ip_address: Optional[str] = None
    downloaded_at: Optional[str] = None


class ActivityOut(BaseModel):
    client_id: str
    last_seen_at: Optional[str] = None
    views: List[ViewOut] = []
    downloads: List[DownloadOut] = []


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def portal_url(subdomain: str, access_token: str) -> str:
    """Magic link handed to the client"""
    return f"/p/{subdomain}?token={access_token}"


# --- Endpoints ---

@router.post("/portals/{portal_id}/clients", response_model=ClientCreated)
async def create_client(
    portal_id: str,
    data: ClientCreate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Invite a client to a portal and issue its access token"""
    portal = await authorize(db, user, EntityKind.PORTAL, portal_id)

    dupe_stmt = select(Client.id).where(Client.portal_id == portal.id, Client.email == data.email)
    if (await db.execute(dupe_stmt)).scalar_one_or_none():
        raise Conflict("A client with this email already exists in this portal")

    client = Client(portal_id=portal.id, name=data.name, email=data.email)
    db.add(client)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A client with this email already exists in this portal")
    await db.refresh(client)

    return ClientCreated(
        id=client.id,
        access_token=client.access_token,
        portal_url=portal_url(portal.subdomain, client.access_token),
    )


@router.get("/portals/{portal_id}/clients", response_model=List[ClientOut])
async def list_clients(
    portal_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """List a portal's clients with project counts"""
    stmt = (
        select(Client, Portal.subdomain, func.count(Project.id))
        .select_from(Client)
        .outerjoin(Project, Project.client_id == Client.id)
        .where(Client.portal_id == portal_id)
        .group_by(Client.id, Portal.subdomain)
        .order_by(Client.created_at.desc())
    )
    stmt = owned_by_freelancer(stmt, EntityKind.CLIENT, user.id)
    result = await db.execute(stmt)

    return [
        ClientOut(
            id=c.id,
            portal_id=c.portal_id,
            name=c.name,
            email=c.email,
            access_token=c.access_token,
            portal_url=portal_url(subdomain, c.access_token),
            last_seen_at=_ts(c.last_seen_at),
            project_count=count or 0,
            created_at=_ts(c.created_at),
        )
        for c, subdomain, count in result.all()
    ]


@router.get("/clients/{client_id}/activity", response_model=ActivityOut)
async def client_activity(
    client_id: str,
    limit: int = Query(default=ACTIVITY_LIMIT, ge=1, le=ACTIVITY_LIMIT),
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Recent portal views and file downloads by a client"""
    client = await authorize(db, user, EntityKind.CLIENT, client_id)

    views_stmt = (
        select(ClientView)
        .where(ClientView.client_id == client.id)
        .order_by(ClientView.viewed_at.desc())
        .limit(limit)
    )
    views = (await db.execute(views_stmt)).scalars().all()

    downloads_stmt = (
        select(FileDownload, File.name)
        .join(File, FileDownload.file_id == File.id)
        .where(FileDownload.client_id == client.id)
        .order_by(FileDownload.downloaded_at.desc())
        .limit(limit)
    )
    downloads = (await db.execute(downloads_stmt)).all()

    return ActivityOut(
        client_id=client.id,
        last_seen_at=_ts(client.last_seen_at),
        views=[
            ViewOut(id=v.id, project_id=v.project_id, page=v.page, viewed_at=_ts(v.viewed_at))
            for v in views
        ],
        downloads=[
            DownloadOut(
                id=d.id,
                file_id=d.file_id,
                file_name=name,
                ip_address=d.ip_address,
                downloaded_at=_ts(d.downloaded_at),
            )
            for d, name in downloads
        ],
    )

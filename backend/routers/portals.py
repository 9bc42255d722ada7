# routers/portals.py - Branded portals owned by a freelancer
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, get_current_freelancer
from database import get_db_session
from errors import Conflict, NotFound
from models import Portal, Client
from ownership import EntityKind, authorize

router = APIRouter(prefix="/api/portals", tags=["Portals"])

DEFAULT_ACCENT_COLOR = "#6366f1"


# --- Schemas ---

class PortalCreate(BaseModel):
    subdomain: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
    name: str = Field(..., min_length=1, max_length=255)
    logo_url: Optional[str] = None
    accent_color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")

    @field_validator("subdomain", mode="before")
    @classmethod
    def normalise_subdomain(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class PortalOut(BaseModel):
    id: str
    subdomain: str
    name: str
    logo_url: Optional[str] = None
    accent_color: str
    owner_id: str
    client_count: int = 0
    created_at: Optional[str] = None


class PublicPortalOut(BaseModel):
    id: str
    subdomain: str
    name: str
    logo_url: Optional[str] = None
    accent_color: str


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _portal_to_out(p: Portal, client_count: int = 0) -> PortalOut:
    return PortalOut(
        id=p.id,
        subdomain=p.subdomain,
        name=p.name,
        logo_url=p.logo_url,
        accent_color=p.accent_color or DEFAULT_ACCENT_COLOR,
        owner_id=p.owner_id,
        client_count=client_count,
        created_at=_ts(p.created_at),
    )


# --- Endpoints ---

@router.post("", response_model=PortalOut)
async def create_portal(
    data: PortalCreate,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a portal under a unique subdomain"""
    existing = await db.execute(select(Portal.id).where(Portal.subdomain == data.subdomain))
    if existing.scalar_one_or_none():
        raise Conflict("Subdomain taken")

    portal = Portal(
        owner_id=user.id,
        subdomain=data.subdomain,
        name=data.name,
        logo_url=data.logo_url,
        accent_color=data.accent_color or DEFAULT_ACCENT_COLOR,
    )
    db.add(portal)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Subdomain taken")
    await db.refresh(portal)
    return _portal_to_out(portal)


@router.get("", response_model=List[PortalOut])
async def list_portals(
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """List the caller's portals with their client counts"""
    stmt = (
        select(Portal, func.count(Client.id))
        .outerjoin(Client, Client.portal_id == Portal.id)
        .where(Portal.owner_id == user.id)
        .group_by(Portal.id)
        .order_by(Portal.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_portal_to_out(p, count or 0) for p, count in result.all()]


@router.get("/by-subdomain/{subdomain}", response_model=PublicPortalOut)
async def get_portal_by_subdomain(
    subdomain: str,
    db: AsyncSession = Depends(get_db_session),
):
    """Public branding lookup used by the client-facing frontend"""
    stmt = select(Portal).where(Portal.subdomain == subdomain.lower())
    result = await db.execute(stmt)
    portal = result.scalar_one_or_none()
    if not portal:
        raise NotFound("Portal not found")
    return PublicPortalOut(
        id=portal.id,
        subdomain=portal.subdomain,
        name=portal.name,
        logo_url=portal.logo_url,
        accent_color=portal.accent_color or DEFAULT_ACCENT_COLOR,
    )


@router.get("/{portal_id}", response_model=PortalOut)
async def get_portal(
    portal_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    portal = await authorize(db, user, EntityKind.PORTAL, portal_id)
    count_stmt = select(func.count(Client.id)).where(Client.portal_id == portal.id)
    count = (await db.execute(count_stmt)).scalar() or 0
    return _portal_to_out(portal, count)

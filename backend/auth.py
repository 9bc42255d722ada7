# auth.py - Identity resolution for Handoff
# Two independent credential schemes:
# - Freelancers: signed JWT bearer token (python-jose, HS256)
# - Clients: opaque magic-link access token (query param `token` or `x-client-token` header)
# Both paths fail closed: anything short of a verified identity is Unauthenticated.

import os
import uuid
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Union

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import BackgroundTasks, Depends, Header, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session, get_db_context
from errors import Conflict, Unauthenticated
from models import Freelancer, Client, utcnow

logger = logging.getLogger("handoff.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY:
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "⚠️  JWT_SECRET_KEY not set. Generated ephemeral key; "
        "issued tokens will not survive a restart."
    )

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))
MIN_PASSWORD_LENGTH = 12

security = HTTPBearer(auto_error=False)


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class FreelancerRegister(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(default="", max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not any(c.isupper() for c in v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one digit")
        return v


class FreelancerLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


class FreelancerPrincipal(BaseModel):
    id: str
    email: str
    name: str = ""


class ClientPrincipal(BaseModel):
    id: str
    portal_id: str
    name: str
    email: str


Principal = Union[FreelancerPrincipal, ClientPrincipal]


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Password hashing, token signing and freelancer account operations"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=12)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
            "iat": now,
            "type": "access",
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except JWTError:
            raise Unauthenticated("Invalid token")
        except Exception as e:
            # Verifier failure of any kind must not let the request through
            logger.warning(f"Token verification failed unexpectedly: {e}")
            raise Unauthenticated("Invalid token")

    @staticmethod
    def token_for(freelancer: Freelancer) -> str:
        return AuthService.create_access_token({"sub": freelancer.id, "email": freelancer.email})

    @staticmethod
    async def register_freelancer(data: FreelancerRegister, db: AsyncSession) -> Freelancer:
        stmt = select(Freelancer.id).where(Freelancer.email == data.email)
        result = await db.execute(stmt)
        if result.scalar_one_or_none():
            raise Conflict("Email already exists")

        freelancer = Freelancer(
            email=data.email,
            name=data.name or data.email.split("@")[0],
            password_hash=AuthService.hash_password(data.password),
        )
        db.add(freelancer)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict("Email already exists")
        await db.refresh(freelancer)
        return freelancer

    @staticmethod
    async def authenticate(email: str, password: str, db: AsyncSession) -> Optional[Freelancer]:
        stmt = select(Freelancer).where(Freelancer.email == email)
        result = await db.execute(stmt)
        freelancer = result.scalar_one_or_none()
        if not freelancer or not AuthService.verify_password(password, freelancer.password_hash):
            return None
        return freelancer


# ============================================================
# FASTAPI DEPENDENCIES - identity resolution
# ============================================================

async def get_current_freelancer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> FreelancerPrincipal:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token")

    payload = AuthService.verify_token(credentials.credentials)
    if payload.get("type") != "access":
        raise Unauthenticated("Invalid token type")

    freelancer_id = payload.get("sub")
    if not freelancer_id:
        raise Unauthenticated("Invalid token")

    stmt = select(Freelancer).where(Freelancer.id == freelancer_id)
    result = await db.execute(stmt)
    freelancer = result.scalar_one_or_none()
    if not freelancer:
        raise Unauthenticated("Unknown account")

    return FreelancerPrincipal(id=freelancer.id, email=freelancer.email, name=freelancer.name or "")


async def touch_last_seen(client_id: str) -> None:
    """Background task: best-effort last-seen bump, never surfaces errors"""
    try:
        async with get_db_context() as db:
            await db.execute(
                update(Client).where(Client.id == client_id).values(last_seen_at=utcnow())
            )
    except SQLAlchemyError as e:
        logger.warning(f"Could not update last_seen_at for client {client_id}: {e}")


async def get_current_client(
    background_tasks: BackgroundTasks,
    token: Optional[str] = Query(default=None, description="Client access token"),
    x_client_token: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> ClientPrincipal:
    access_token = token or x_client_token
    if not access_token:
        raise Unauthenticated("No access token")

    stmt = select(Client).where(Client.access_token == access_token)
    result = await db.execute(stmt)
    client = result.scalar_one_or_none()
    if not client:
        raise Unauthenticated("Invalid token")

    background_tasks.add_task(touch_last_seen, client.id)

    return ClientPrincipal(
        id=client.id,
        portal_id=client.portal_id,
        name=client.name,
        email=client.email,
    )

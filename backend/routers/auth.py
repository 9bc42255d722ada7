# routers/auth.py - Freelancer registration, login and identity
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, FreelancerRegister, FreelancerLogin, TokenResponse,
    FreelancerPrincipal, get_current_freelancer, ACCESS_TOKEN_EXPIRE_MINUTES,
)
from database import get_db_session
from errors import Unauthenticated
from models import Freelancer

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _build_token_response(freelancer: Freelancer) -> TokenResponse:
    return TokenResponse(
        token=AuthService.token_for(freelancer),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user={
            "id": freelancer.id,
            "email": freelancer.email,
            "name": freelancer.name or "",
        },
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    data: FreelancerRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new freelancer account"""
    freelancer = await AuthService.register_freelancer(data, db)
    return _build_token_response(freelancer)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: FreelancerLogin,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive a token"""
    freelancer = await AuthService.authenticate(credentials.email, credentials.password, db)
    if not freelancer:
        raise Unauthenticated("Invalid credentials")
    return _build_token_response(freelancer)


@router.get("/me")
async def me(user: FreelancerPrincipal = Depends(get_current_freelancer)):
    return {"id": user.id, "email": user.email, "name": user.name}

from datetime import timedelta
from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.config import settings
from app.core.security import verify_password, get_password_hash, create_access_token
from app.core.rate_limit import check_rate_limit
from app.models.profile import Profile
from app.schemas.profile import (
    ProfileCreate,
    ProfileUpdate,
    ProfileResponse,
    Token,
    RegisterResponse,
    MessageResponse,
)
from app.api.v1.deps import CurrentUser

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    profile_in: ProfileCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Sign up: create a bookkeeper profile."""
    check_rate_limit("register", request)

    result = await db.execute(select(Profile).where(Profile.email == profile_in.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "EMAIL_EXISTS", "message": "Dit e-mailadres is al geregistreerd."},
        )

    profile = Profile(
        email=profile_in.email,
        hashed_password=get_password_hash(profile_in.password),
        full_name=profile_in.full_name,
        company_name=profile_in.company_name,
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)

    logger.info(
        "User registered successfully",
        extra={
            "event": "user_registered",
            "user_id": str(profile.id),
        }
    )

    return RegisterResponse(user_id=profile.id)


@router.post("/token", response_model=Token)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Sign in with e-mail (as ``username``) and password."""
    check_rate_limit("login", request)

    email = form_data.username.strip().lower()
    result = await db.execute(select(Profile).where(Profile.email == email))
    profile = result.scalar_one_or_none()

    if not profile or not verify_password(form_data.password, profile.hashed_password):
        logger.warning(
            "Failed login attempt",
            extra={"event": "user_login_failed"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_CREDENTIALS", "message": "Onjuist e-mailadres of wachtwoord"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not profile.is_active:
        raise HTTPException(
            status_code=400,
            detail={"code": "INACTIVE_USER", "message": "Account is gedeactiveerd"},
        )

    access_token = create_access_token(
        data={"sub": str(profile.id), "email": profile.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    logger.info(
        "User logged in",
        extra={
            "event": "user_login",
            "user_id": str(profile.id),
        }
    )

    return Token(access_token=access_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser):
    """
    Sign out.

    Tokens are stateless; the client discards its token. The call is
    logged so sign-outs show up next to sign-ins.
    """
    logger.info(
        "User logged out",
        extra={
            "event": "user_logout",
            "user_id": str(current_user.id),
        }
    )
    return MessageResponse(message="U bent uitgelogd.")


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: CurrentUser):
    """Get current user info"""
    return current_user


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    profile_in: ProfileUpdate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    for field, value in profile_in.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return current_user

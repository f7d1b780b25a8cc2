from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Response, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.security import oauth2_scheme, decode_token
from app.models.client import Client
from app.models.profile import Profile


# =============================================================================
# Authentication: Get current user from token
# =============================================================================

async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """
    Extract and validate the current profile from the JWT token.

    Raises:
        HTTP 401: If token is invalid or profile not found
        HTTP 400: If profile is inactive
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "NOT_AUTHENTICATED", "message": "Niet ingelogd"},
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        profile_id = UUID(user_id)
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()

    if profile is None:
        raise credentials_exception

    if not profile.is_active:
        raise HTTPException(
            status_code=400,
            detail={"code": "INACTIVE_USER", "message": "Account is gedeactiveerd"},
        )

    return profile


CurrentUser = Annotated[Profile, Depends(get_current_user)]


# =============================================================================
# Client ownership
# =============================================================================

async def get_owned_client(
    client_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Client:
    """
    Load a client of the current profile.

    Clients of other profiles are reported as not found so their
    existence is not revealed.
    """
    result = await db.execute(
        select(Client).where(
            Client.id == client_id,
            Client.user_id == current_user.id,
        )
    )
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(
            status_code=404,
            detail={"code": "CLIENT_NOT_FOUND", "message": "Klant niet gevonden."},
        )
    return client


OwnedClient = Annotated[Client, Depends(get_owned_client)]


# =============================================================================
# File uploads
# =============================================================================

async def read_upload(file: UploadFile) -> bytes:
    """Read an uploaded file, rejecting empty and oversized uploads."""
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail={
                "code": "FILE_TOO_LARGE",
                "message": f"Bestand is te groot (maximaal {settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB).",
            },
        )
    if not content:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_FILE", "message": "Het bestand is leeg."},
        )
    return content


def file_response(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.upload import UploadLog, UploadStatus
from app.schemas.upload import UploadLogResponse
from app.services.logging import bookkeeping_logger
from app.api.v1.deps import OwnedClient

router = APIRouter()


async def reject_upload(
    db: AsyncSession,
    user_id: UUID,
    client_id: Optional[UUID],
    file_type: str,
    file_name: str,
    message: str,
) -> HTTPException:
    """
    Record a failed import and return the 400 to raise.

    The upload log is committed first so the failure stays visible in the
    upload history.
    """
    db.add(UploadLog(
        client_id=client_id,
        user_id=user_id,
        file_name=file_name,
        file_type=file_type,
        status=UploadStatus.FAILED.value,
        error_message=message,
    ))
    await db.commit()
    bookkeeping_logger.import_failed(
        file_type=file_type,
        file_name=file_name,
        error=message,
        client_id=client_id,
        user_id=user_id,
    )
    return HTTPException(
        status_code=400,
        detail={"code": "INVALID_FILE", "message": message},
    )


@router.get("/clients/{client_id}/uploads", response_model=List[UploadLogResponse])
async def list_uploads(
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Import history of a client, newest first."""
    result = await db.execute(
        select(UploadLog)
        .where(UploadLog.client_id == client.id)
        .order_by(UploadLog.created_at.desc())
    )
    return result.scalars().all()

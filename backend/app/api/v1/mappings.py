"""
Saved column mappings

A bookkeeper who imports the same Excel layout every month saves the
column mapping once and picks it on the next import. Only the
MAX_SAVED_MAPPINGS most recently used mappings per upload type are kept.
"""
import json
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.models.upload import ColumnMapping
from app.schemas.upload import ColumnMappingCreate, ColumnMappingResponse
from app.api.v1.deps import CurrentUser

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "MAPPING_NOT_FOUND", "message": "Kolomtoewijzing niet gevonden."},
    )


async def _get_mapping(db: AsyncSession, user_id: UUID, mapping_id: UUID) -> ColumnMapping:
    result = await db.execute(
        select(ColumnMapping).where(
            ColumnMapping.id == mapping_id,
            ColumnMapping.user_id == user_id,
        )
    )
    mapping = result.scalar_one_or_none()
    if not mapping:
        raise _not_found()
    return mapping


async def resolve_mapping(
    db: AsyncSession,
    user_id: UUID,
    upload_type: str,
    mapping_id: Optional[UUID] = None,
    mapping_json: Optional[str] = None,
) -> Optional[Dict[str, str]]:
    """
    Column mapping for an import: a saved mapping (marked as used) or an
    inline JSON object of Excel header -> field.
    """
    if mapping_id:
        saved = await _get_mapping(db, user_id, mapping_id)
        if saved.upload_type != upload_type:
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_MAPPING", "message": "Kolomtoewijzing hoort bij een ander importtype."},
            )
        saved.last_used_at = datetime.now(timezone.utc)
        await db.commit()
        return dict(saved.mapping)

    if mapping_json:
        try:
            mapping = json.loads(mapping_json)
        except ValueError:
            mapping = None
        if not isinstance(mapping, dict) or not all(isinstance(v, str) for v in mapping.values()):
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_MAPPING", "message": "Ongeldige kolomtoewijzing."},
            )
        return mapping

    return None


@router.get("", response_model=List[ColumnMappingResponse])
async def list_mappings(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    upload_type: Optional[str] = Query(None, pattern=r'^(grootboek|boekingsregels)$'),
):
    """Saved mappings, most recently used first."""
    query = select(ColumnMapping).where(ColumnMapping.user_id == current_user.id)
    if upload_type:
        query = query.where(ColumnMapping.upload_type == upload_type)
    result = await db.execute(query.order_by(ColumnMapping.last_used_at.desc()))
    return result.scalars().all()


@router.post("", response_model=ColumnMappingResponse, status_code=201)
async def save_mapping(
    mapping_in: ColumnMappingCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Save a mapping. Saving under an existing name replaces that mapping;
    beyond MAX_SAVED_MAPPINGS the least recently used ones are dropped.
    """
    user_id = current_user.id
    now = datetime.now(timezone.utc)

    result = await db.execute(
        select(ColumnMapping)
        .where(
            ColumnMapping.user_id == user_id,
            ColumnMapping.upload_type == mapping_in.upload_type,
        )
        .order_by(ColumnMapping.last_used_at.desc())
    )
    existing = list(result.scalars().all())

    mapping = next((m for m in existing if m.name == mapping_in.name), None)
    if mapping:
        existing.remove(mapping)
        mapping.mapping = mapping_in.mapping
        mapping.last_used_at = now
    else:
        mapping = ColumnMapping(
            user_id=user_id,
            name=mapping_in.name,
            upload_type=mapping_in.upload_type,
            mapping=mapping_in.mapping,
            last_used_at=now,
        )
        db.add(mapping)

    for stale in existing[settings.MAX_SAVED_MAPPINGS - 1:]:
        await db.delete(stale)

    await db.commit()
    await db.refresh(mapping)
    return mapping


@router.post("/{mapping_id}/use", response_model=ColumnMappingResponse)
async def mark_mapping_used(
    mapping_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    mapping = await _get_mapping(db, current_user.id, mapping_id)
    mapping.last_used_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(mapping)
    return mapping


@router.delete("/{mapping_id}", status_code=204)
async def delete_mapping(
    mapping_id: UUID,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    mapping = await _get_mapping(db, current_user.id, mapping_id)
    await db.delete(mapping)
    await db.commit()
    return None

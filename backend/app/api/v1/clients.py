"""
Clients API Endpoints

CRUD operations for the client administrations of the current bookkeeper,
plus bulk and Excel imports.
"""
from typing import Annotated, List, Optional, Tuple
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.models.client import Client
from app.models.upload import UploadLog, UploadFileType, UploadStatus
from app.schemas.client import (
    ClientCreate,
    ClientUpdate,
    ClientResponse,
    ClientListResponse,
    ClientBulkCreate,
    BulkImportResponse,
    ClientImportResponse,
)
from app.services.excel.clients import parse_client_import
from app.services.logging import bookkeeping_logger
from app.api.v1.deps import CurrentUser, OwnedClient, read_upload
from app.api.v1.uploads import reject_upload

router = APIRouter()
logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Een klant met deze gegevens bestaat al."


def _duplicate_error() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": "CLIENT_EXISTS", "message": DUPLICATE_MESSAGE},
    )


def _import_message(imported: int, errors: int) -> str:
    if errors:
        return f"{imported} klanten geïmporteerd, {errors} fouten opgetreden"
    return f"{imported} klanten geïmporteerd"


async def insert_clients(db: AsyncSession, user_id: UUID, rows: List[dict]) -> Tuple[int, List[str]]:
    """
    Insert clients in batches of IMPORT_BATCH_SIZE.

    A batch that fails (usually on a duplicate name) is retried row by row,
    so one bad row only costs itself. Returns (imported, errors_list).
    """
    imported = 0
    errors_list: List[str] = []
    batch_size = settings.IMPORT_BATCH_SIZE

    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        db.add_all([Client(user_id=user_id, **row) for row in batch])
        try:
            await db.commit()
            imported += len(batch)
            continue
        except IntegrityError:
            await db.rollback()

        for row in batch:
            db.add(Client(user_id=user_id, **row))
            try:
                await db.commit()
                imported += 1
            except IntegrityError:
                await db.rollback()
                errors_list.append(f"{row['name']}: {DUPLICATE_MESSAGE}")

    return imported, errors_list


@router.get("", response_model=ClientListResponse)
async def list_clients(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Optional[str] = Query(None, max_length=100, description="Search by name, company or email"),
):
    query = select(Client).where(Client.user_id == current_user.id)

    if search:
        search_term = f"%{search.lower()}%"
        query = query.where(
            (func.lower(Client.name).like(search_term)) |
            (func.lower(Client.company_name).like(search_term)) |
            (func.lower(Client.email).like(search_term))
        )

    result = await db.execute(query.order_by(Client.name))
    clients = result.scalars().all()

    return ClientListResponse(
        clients=[ClientResponse.model_validate(c) for c in clients],
        total=len(clients)
    )


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    client_in: ClientCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user_id = current_user.id
    existing = await db.execute(
        select(Client.id).where(Client.user_id == user_id, Client.name == client_in.name)
    )
    if existing.scalar_one_or_none():
        raise _duplicate_error()

    client = Client(user_id=user_id, **client_in.model_dump())
    db.add(client)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise _duplicate_error()
    await db.refresh(client)

    bookkeeping_logger.client_created(client_id=client.id, name=client.name, user_id=user_id)
    return ClientResponse.model_validate(client)


@router.post("/bulk", response_model=BulkImportResponse)
async def bulk_create_clients(
    bulk_in: ClientBulkCreate,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create many clients at once; duplicates are reported per row."""
    user_id = current_user.id
    rows = [c.model_dump() for c in bulk_in.clients]
    imported, errors_list = await insert_clients(db, user_id, rows)

    logger.info(
        "Bulk client import finished",
        extra={
            "event": "clients_bulk_imported",
            "user_id": str(user_id),
            "imported": imported,
            "errors": len(errors_list),
        }
    )

    return BulkImportResponse(
        imported=imported,
        errors=len(errors_list),
        errors_list=errors_list,
        message=_import_message(imported, len(errors_list)),
    )


@router.post("/import", response_model=ClientImportResponse)
async def import_clients(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...),
):
    """
    Import clients from an Excel relation list (first sheet, header in row 1).
    """
    user_id = current_user.id
    content = await read_upload(file)
    file_name = file.filename or "klanten.xlsx"

    parsed = parse_client_import(content)
    if not parsed.success:
        raise await reject_upload(
            db, user_id, None, UploadFileType.CLIENTS.value, file_name, "; ".join(parsed.errors)
        )

    if not parsed.data:
        db.add(UploadLog(
            user_id=user_id,
            file_name=file_name,
            file_type=UploadFileType.CLIENTS.value,
            status=UploadStatus.FAILED.value,
            error_message="Geen geldige klanten gevonden in het bestand",
        ))
        await db.commit()
        return ClientImportResponse(
            imported=0,
            errors=0,
            message="Geen geldige klanten gevonden in het bestand",
            total_rows=parsed.total_rows,
            valid_rows=0,
            warnings=parsed.warnings,
        )

    imported, errors_list = await insert_clients(db, user_id, [row.to_dict() for row in parsed.data])

    upload = UploadLog(
        user_id=user_id,
        file_name=file_name,
        file_type=UploadFileType.CLIENTS.value,
        records_processed=imported,
        records_failed=len(errors_list),
        status=UploadStatus.COMPLETED.value,
        error_message="; ".join(errors_list) or None,
    )
    db.add(upload)
    await db.commit()

    bookkeeping_logger.import_completed(
        upload_id=upload.id,
        file_type=UploadFileType.CLIENTS.value,
        file_name=file_name,
        records_processed=imported,
        records_failed=len(errors_list),
        user_id=user_id,
    )

    return ClientImportResponse(
        imported=imported,
        errors=len(errors_list),
        errors_list=errors_list,
        message=_import_message(imported, len(errors_list)),
        total_rows=parsed.total_rows,
        valid_rows=parsed.valid_rows,
        warnings=parsed.warnings,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client: OwnedClient):
    return ClientResponse.model_validate(client)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_in: ClientUpdate,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Update a client.

    Only provided fields will be updated (partial update).
    """
    update_data = client_in.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"] != client.name:
        existing = await db.execute(
            select(Client.id).where(
                Client.user_id == client.user_id,
                Client.name == update_data["name"],
                Client.id != client.id,
            )
        )
        if existing.scalar_one_or_none():
            raise _duplicate_error()

    for field, value in update_data.items():
        setattr(client, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise _duplicate_error()
    await db.refresh(client)

    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=204)
async def delete_client(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a client together with its grootboek, boekingsregels and aangiftes."""
    client_id, name, user_id = client.id, client.name, current_user.id
    await db.delete(client)
    await db.commit()

    bookkeeping_logger.client_deleted(client_id=client_id, name=name, user_id=user_id)
    return None

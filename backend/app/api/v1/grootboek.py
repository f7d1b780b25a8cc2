"""
Grootboek API Endpoints

Chart of accounts of a client: CRUD by account number, Excel import
(upsert on account number) and export, plus the BTW code table.
"""
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.grootboek import GrootboekAccount, BtwCode
from app.models.upload import UploadLog, UploadFileType, UploadStatus
from app.schemas.grootboek import (
    GrootboekAccountCreate,
    GrootboekAccountUpdate,
    GrootboekAccountResponse,
    BtwCodeResponse,
    ImportResponse,
)
from app.services.btw.codes import format_btw_code, get_btw_code_info
from app.services.excel.exporter import XLSX_MEDIA_TYPE, export_grootboek
from app.services.excel.importer import ExcelImportError, parse_grootboek
from app.services.logging import bookkeeping_logger
from app.api.v1.deps import CurrentUser, OwnedClient, read_upload, file_response
from app.api.v1.mappings import resolve_mapping
from app.api.v1.uploads import reject_upload

router = APIRouter()


def apply_btw_code(account: GrootboekAccount, rubriek: Optional[str] = None) -> None:
    """Mirror percentage and rubriek of the account's default BTW code."""
    if not account.btw_code:
        account.btw_percentage = None
        account.rubriek = rubriek
        return
    info = get_btw_code_info(account.btw_code)
    if info is None:
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_BTW_CODE", "message": f"Onbekende BTW code: {account.btw_code}"},
        )
    account.btw_percentage = info.percentage
    account.rubriek = rubriek or info.rubriek


async def _get_account(db: AsyncSession, client_id: UUID, account_number: str) -> GrootboekAccount:
    result = await db.execute(
        select(GrootboekAccount).where(
            GrootboekAccount.client_id == client_id,
            GrootboekAccount.account_number == account_number,
        )
    )
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(
            status_code=404,
            detail={
                "code": "ACCOUNT_NOT_FOUND",
                "message": f"Grootboekrekening {account_number} niet gevonden."
            }
        )
    return account


@router.get("/btw-codes", response_model=List[BtwCodeResponse])
async def list_btw_codes(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Active BTW codes ordered by code."""
    result = await db.execute(
        select(BtwCode).where(BtwCode.is_active == True).order_by(BtwCode.code)
    )
    codes = result.scalars().all()
    return [
        BtwCodeResponse(
            code=c.code,
            description=c.description,
            percentage=c.percentage,
            rubriek=c.rubriek,
            type=c.type,
            label=format_btw_code(c.code),
        )
        for c in codes
    ]


@router.get("/clients/{client_id}/grootboek", response_model=List[GrootboekAccountResponse])
async def list_accounts(
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
    active_only: bool = Query(False),
):
    query = select(GrootboekAccount).where(GrootboekAccount.client_id == client.id)
    if active_only:
        query = query.where(GrootboekAccount.is_active == True)
    result = await db.execute(query.order_by(GrootboekAccount.account_number))
    return result.scalars().all()


@router.post("/clients/{client_id}/grootboek", response_model=GrootboekAccountResponse, status_code=201)
async def create_account(
    account_in: GrootboekAccountCreate,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    existing = await db.execute(
        select(GrootboekAccount.id).where(
            GrootboekAccount.client_id == client.id,
            GrootboekAccount.account_number == account_in.account_number,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=409,
            detail={
                "code": "ACCOUNT_EXISTS",
                "message": f"Grootboekrekening {account_in.account_number} bestaat al."
            }
        )

    account = GrootboekAccount(client_id=client.id, **account_in.model_dump(exclude={"rubriek"}))
    apply_btw_code(account, account_in.rubriek)
    db.add(account)
    await db.commit()
    await db.refresh(account)
    return account


@router.get("/clients/{client_id}/grootboek/export")
async def export_accounts(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(GrootboekAccount)
        .where(GrootboekAccount.client_id == client.id)
        .order_by(GrootboekAccount.account_number)
    )
    accounts = result.scalars().all()
    filename, content = export_grootboek(accounts)

    bookkeeping_logger.export_generated(
        export_type="grootboek",
        file_name=filename,
        row_count=len(accounts),
        client_id=client.id,
        user_id=current_user.id,
    )
    return file_response(content, filename, XLSX_MEDIA_TYPE)


@router.post("/clients/{client_id}/grootboek/import", response_model=ImportResponse)
async def import_accounts(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...),
    sheet_name: Optional[str] = Form(None),
    mapping_id: Optional[UUID] = Form(None),
    mapping: Optional[str] = Form(None),
):
    """
    Import a grootboek schema from Excel.

    Rows are upserted on account number: existing accounts are updated,
    new ones created. Rows with errors are skipped and reported.
    """
    client_id, user_id = client.id, current_user.id
    content = await read_upload(file)
    file_name = file.filename or "grootboek.xlsx"
    file_type = UploadFileType.GROOTBOEK.value
    column_mapping = await resolve_mapping(db, user_id, file_type, mapping_id, mapping)

    try:
        parsed = parse_grootboek(content, sheet_name=sheet_name, mapping=column_mapping)
    except ExcelImportError as e:
        raise await reject_upload(db, user_id, client_id, file_type, file_name, str(e))

    if not parsed.data:
        message = "; ".join(parsed.errors) or "Geen grootboekrekeningen gevonden in het bestand"
        raise await reject_upload(db, user_id, client_id, file_type, file_name, message)

    result = await db.execute(
        select(GrootboekAccount).where(GrootboekAccount.client_id == client_id)
    )
    existing = {a.account_number: a for a in result.scalars().all()}

    imported = updated = 0
    errors = list(parsed.errors)
    for row in parsed.data:
        if row["btw_code"] and get_btw_code_info(row["btw_code"]) is None:
            errors.append(f"Rekening {row['account_number']}: Onbekende BTW code {row['btw_code']}")
            continue

        account = existing.get(row["account_number"])
        if account is None:
            account = GrootboekAccount(client_id=client_id, account_number=row["account_number"])
            db.add(account)
            existing[row["account_number"]] = account
            imported += 1
        else:
            updated += 1
        account.account_name = row["account_name"]
        account.account_type = row["account_type"]
        account.btw_code = row["btw_code"]
        account.description = row["description"]
        account.is_active = row["is_active"]
        apply_btw_code(account, row["rubriek"])

    upload = UploadLog(
        client_id=client_id,
        user_id=user_id,
        file_name=file_name,
        file_type=file_type,
        records_processed=imported + updated,
        records_failed=len(errors),
        status=UploadStatus.COMPLETED.value,
        error_message="; ".join(errors) or None,
    )
    db.add(upload)
    await db.commit()

    bookkeeping_logger.import_completed(
        upload_id=upload.id,
        file_type=file_type,
        file_name=file_name,
        records_processed=imported + updated,
        records_failed=len(errors),
        client_id=client_id,
        user_id=user_id,
    )

    return ImportResponse(
        upload_id=upload.id,
        imported=imported,
        updated=updated,
        failed=len(errors),
        errors=errors,
        warnings=parsed.warnings,
        sheet_names=parsed.sheet_names,
    )


@router.get("/clients/{client_id}/grootboek/{account_number}", response_model=GrootboekAccountResponse)
async def get_account(
    account_number: str,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _get_account(db, client.id, account_number)


@router.put("/clients/{client_id}/grootboek/{account_number}", response_model=GrootboekAccountResponse)
async def update_account(
    account_number: str,
    account_in: GrootboekAccountUpdate,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Partial update; the account number itself cannot change."""
    account = await _get_account(db, client.id, account_number)

    update_data = account_in.model_dump(exclude_unset=True, exclude={"account_number"})
    rubriek = update_data.pop("rubriek", account.rubriek)
    for field, value in update_data.items():
        setattr(account, field, value)
    if "btw_code" in update_data and "rubriek" not in account_in.model_fields_set:
        rubriek = None
    apply_btw_code(account, rubriek)

    await db.commit()
    await db.refresh(account)
    return account


@router.delete("/clients/{client_id}/grootboek/{account_number}", status_code=204)
async def delete_account(
    account_number: str,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete an account; its booking rules keep their account number."""
    account = await _get_account(db, client.id, account_number)
    await db.delete(account)
    await db.commit()
    return None

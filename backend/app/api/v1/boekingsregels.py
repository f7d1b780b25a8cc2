"""
Boekingsregels API Endpoints

Booking rules of a client. Every write goes through the same preparation:
account lookup, automatic BTW amount, periode/jaar from the boekdatum and
the bookkeeping validation (errors block, warnings are returned).
"""
from datetime import date
from decimal import Decimal
from typing import Annotated, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.boeking import Boekingsregel
from app.models.grootboek import GrootboekAccount
from app.models.upload import UploadLog, UploadFileType, UploadStatus
from app.schemas.boeking import (
    BoekingsregelCreate,
    BoekingsregelUpdate,
    BoekingsregelResponse,
    BoekingsregelSaved,
    BoekingsregelStats,
    BoekingsregelListResponse,
    ValidateRequest,
    ValidationResponse,
    SuggestResponse,
    ProposedRegelResponse,
    InvoiceDataResponse,
    InvoiceOcrResponse,
)
from app.schemas.grootboek import ImportResponse
from app.services.btw.codes import (
    ZERO,
    ValidationResult,
    calculate_btw_amount,
    format_btw_code,
    round_cents,
    suggest_btw_code,
    to_decimal,
    validate_boekingsregel,
)
from app.services.btw.helpers import format_period, get_account_type_guidance
from app.services.excel.exporter import XLSX_MEDIA_TYPE, export_boekingsregels
from app.services.excel.importer import ExcelImportError, parse_boekingsregels
from app.services.invoice_ocr import (
    DEFAULT_EXPENSE_ACCOUNT,
    InvoiceOcrError,
    extract_text,
    invoice_to_regels,
    parse_invoice_text,
)
from app.services.logging import bookkeeping_logger
from app.api.v1.deps import CurrentUser, OwnedClient, read_upload, file_response
from app.api.v1.mappings import resolve_mapping
from app.api.v1.uploads import reject_upload

router = APIRouter()

REGEL_FIELDS = (
    "boekdatum", "account_number", "omschrijving", "debet", "credit", "btw_code",
    "btw_bedrag", "boekstuk_nummer", "factuurnummer", "relatie", "tegenrekening",
)
REQUIRED_FIELDS = ("boekdatum", "account_number", "omschrijving", "debet", "credit", "btw_bedrag")


async def accounts_by_number(db: AsyncSession, client_id: UUID) -> Dict[str, GrootboekAccount]:
    result = await db.execute(
        select(GrootboekAccount).where(GrootboekAccount.client_id == client_id)
    )
    return {a.account_number: a for a in result.scalars().all()}


def prepare_regel(
    data: dict,
    account: Optional[GrootboekAccount],
    fill_btw: bool = True,
) -> Tuple[dict, ValidationResult]:
    """
    Complete a booking rule before it is stored.

    Links the grootboek account, fills in the BTW amount when a code is
    given without one (unless fill_btw is off, as for invoice lines that
    were already split into cost and BTW) and derives periode/jaar from
    the boekdatum.
    """
    data = {name: data.get(name) for name in REGEL_FIELDS}
    debet = round_cents(data["debet"])
    credit = round_cents(data["credit"])
    btw_bedrag = round_cents(data["btw_bedrag"])

    if fill_btw and data["btw_code"] and btw_bedrag == ZERO:
        base = debet if debet > 0 else credit
        btw_bedrag = calculate_btw_amount(base, data["btw_code"])

    boekdatum: date = data["boekdatum"]
    data.update(
        debet=debet,
        credit=credit,
        btw_bedrag=btw_bedrag,
        grootboek_account_id=account.id if account else None,
        periode=boekdatum.month,
        jaar=boekdatum.year,
    )

    validation = validate_boekingsregel(
        debet,
        credit,
        btw_code=data["btw_code"],
        btw_bedrag=btw_bedrag,
        account_type=account.account_type if account else None,
        check_btw_amount=fill_btw,
    )
    data["is_validated"] = validation.is_valid
    return data, validation


def _raise_invalid(validation: ValidationResult) -> None:
    if not validation.is_valid:
        raise HTTPException(
            status_code=422,
            detail={"code": "VALIDATION_FAILED", "message": "; ".join(validation.errors)},
        )


async def _get_regel(db: AsyncSession, client_id: UUID, regel_id: UUID) -> Boekingsregel:
    result = await db.execute(
        select(Boekingsregel).where(
            Boekingsregel.id == regel_id,
            Boekingsregel.client_id == client_id,
        )
    )
    regel = result.scalar_one_or_none()
    if not regel:
        raise HTTPException(
            status_code=404,
            detail={"code": "BOEKINGSREGEL_NOT_FOUND", "message": "Boekingsregel niet gevonden."},
        )
    return regel


def calculate_stats(regels: List[Boekingsregel]) -> BoekingsregelStats:
    total_debet = sum((to_decimal(r.debet) for r in regels), ZERO)
    total_credit = sum((to_decimal(r.credit) for r in regels), ZERO)
    with_btw = sum(1 for r in regels if r.btw_code)
    return BoekingsregelStats(
        count=len(regels),
        total_debet=total_debet,
        total_credit=total_credit,
        total_btw=sum((to_decimal(r.btw_bedrag) for r in regels), ZERO),
        verschil=total_debet - total_credit,
        with_btw=with_btw,
        without_btw=len(regels) - with_btw,
    )


def _filtered_query(client_id: UUID, jaar: Optional[int], periode: Optional[int]):
    query = select(Boekingsregel).where(Boekingsregel.client_id == client_id)
    if jaar is not None:
        query = query.where(Boekingsregel.jaar == jaar)
    if periode is not None:
        query = query.where(Boekingsregel.periode == periode)
    return query


# =============================================================================
# BTW code suggestion
# =============================================================================

@router.get("/btw-codes/suggest", response_model=SuggestResponse)
async def suggest_code(
    current_user: CurrentUser,
    account_type: Optional[str] = Query(None, pattern=r'^(activa|passiva|kosten|omzet)$'),
    description: str = Query("", max_length=500),
):
    """Most likely BTW code for an account type, with guidance for the user."""
    code = suggest_btw_code(account_type, description)
    return SuggestResponse(
        account_type=account_type,
        suggested_code=code,
        label=format_btw_code(code),
        **get_account_type_guidance(account_type),
    )


# =============================================================================
# CRUD
# =============================================================================

@router.get("/clients/{client_id}/boekingsregels", response_model=BoekingsregelListResponse)
async def list_regels(
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
    jaar: Optional[int] = Query(None, ge=1900, le=2999),
    periode: Optional[int] = Query(None, ge=1, le=12),
    btw_code: Optional[str] = Query(None, max_length=20),
    search: Optional[str] = Query(None, max_length=100),
):
    """Booking rules, newest first, with totals over the filtered set."""
    query = _filtered_query(client.id, jaar, periode)
    if btw_code:
        query = query.where(Boekingsregel.btw_code == btw_code.lower())
    if search:
        search_term = f"%{search.lower()}%"
        query = query.where(
            (func.lower(Boekingsregel.omschrijving).like(search_term)) |
            (func.lower(Boekingsregel.account_number).like(search_term)) |
            (func.lower(Boekingsregel.factuurnummer).like(search_term)) |
            (func.lower(Boekingsregel.btw_code).like(search_term))
        )

    result = await db.execute(
        query.order_by(Boekingsregel.boekdatum.desc(), Boekingsregel.created_at.desc())
    )
    regels = list(result.scalars().all())

    return BoekingsregelListResponse(
        regels=[BoekingsregelResponse.model_validate(r) for r in regels],
        stats=calculate_stats(regels),
    )


@router.post("/clients/{client_id}/boekingsregels", response_model=BoekingsregelSaved, status_code=201)
async def create_regel(
    regel_in: BoekingsregelCreate,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    accounts = await accounts_by_number(db, client.id)
    data, validation = prepare_regel(regel_in.model_dump(), accounts.get(regel_in.account_number))
    _raise_invalid(validation)

    regel = Boekingsregel(client_id=client.id, **data)
    db.add(regel)
    await db.commit()
    await db.refresh(regel)

    return BoekingsregelSaved(
        regel=BoekingsregelResponse.model_validate(regel),
        warnings=validation.warnings,
    )


@router.post("/clients/{client_id}/boekingsregels/validate", response_model=ValidationResponse)
async def validate_regel(regel_in: ValidateRequest, client: OwnedClient):
    """Run the bookkeeping validation without saving anything."""
    validation = validate_boekingsregel(
        regel_in.debet,
        regel_in.credit,
        btw_code=regel_in.btw_code.lower() if regel_in.btw_code else None,
        btw_bedrag=regel_in.btw_bedrag,
        account_type=regel_in.account_type,
    )
    return ValidationResponse(**validation.to_dict())


@router.get("/clients/{client_id}/boekingsregels/export")
async def export_regels(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    jaar: Optional[int] = Query(None, ge=1900, le=2999),
    periode: Optional[int] = Query(None, ge=1, le=12),
):
    result = await db.execute(
        _filtered_query(client.id, jaar, periode).order_by(Boekingsregel.boekdatum)
    )
    regels = list(result.scalars().all())

    periode_label = None
    if jaar is not None and periode is not None:
        periode_label = format_period("maand", periode, jaar)
    elif jaar is not None:
        periode_label = str(jaar)

    filename, content = export_boekingsregels(regels, client=client, periode_label=periode_label)
    bookkeeping_logger.export_generated(
        export_type="boekingsregels",
        file_name=filename,
        row_count=len(regels),
        client_id=client.id,
        user_id=current_user.id,
    )
    return file_response(content, filename, XLSX_MEDIA_TYPE)


@router.post("/clients/{client_id}/boekingsregels/import", response_model=ImportResponse)
async def import_regels(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...),
    sheet_name: Optional[str] = Form(None),
    mapping_id: Optional[UUID] = Form(None),
    mapping: Optional[str] = Form(None),
):
    """
    Import booking rules from Excel.

    Parsed rows get the same treatment as a manual create; rows failing
    validation are reported and skipped.
    """
    client_id, user_id = client.id, current_user.id
    content = await read_upload(file)
    file_name = file.filename or "boekingsregels.xlsx"
    file_type = UploadFileType.BOEKINGSREGELS.value
    column_mapping = await resolve_mapping(db, user_id, file_type, mapping_id, mapping)

    try:
        parsed = parse_boekingsregels(content, sheet_name=sheet_name, mapping=column_mapping)
    except ExcelImportError as e:
        raise await reject_upload(db, user_id, client_id, file_type, file_name, str(e))

    if not parsed.data:
        message = "; ".join(parsed.errors) or "Geen boekingsregels gevonden in het bestand"
        raise await reject_upload(db, user_id, client_id, file_type, file_name, message)

    accounts = await accounts_by_number(db, client_id)
    errors = list(parsed.errors)
    warnings = list(parsed.warnings)
    imported = 0

    for row in parsed.data:
        data, validation = prepare_regel(row, accounts.get(row["account_number"]))
        label = f"{row['boekdatum'].strftime('%d-%m-%Y')} {row['omschrijving']}"
        if not validation.is_valid:
            errors.append(f"{label}: {'; '.join(validation.errors)}")
            continue
        warnings.extend(f"{label}: {w}" for w in validation.warnings)
        db.add(Boekingsregel(client_id=client_id, **data))
        imported += 1

    upload = UploadLog(
        client_id=client_id,
        user_id=user_id,
        file_name=file_name,
        file_type=file_type,
        records_processed=imported,
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
        records_processed=imported,
        records_failed=len(errors),
        client_id=client_id,
        user_id=user_id,
    )

    return ImportResponse(
        upload_id=upload.id,
        imported=imported,
        failed=len(errors),
        errors=errors,
        warnings=warnings,
        sheet_names=parsed.sheet_names,
    )


@router.post("/clients/{client_id}/boekingsregels/invoice", response_model=InvoiceOcrResponse)
async def book_invoice(
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...),
    save: bool = Form(False),
    expense_account: str = Form(DEFAULT_EXPENSE_ACCOUNT, max_length=20),
):
    """
    Read a purchase invoice image and propose booking rules for it.

    With save=true the proposed rules are stored directly.
    """
    client_id, user_id = client.id, current_user.id
    content = await read_upload(file)

    try:
        text = extract_text(content)
    except InvoiceOcrError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "OCR_FAILED", "message": str(e)},
        )

    invoice = parse_invoice_text(text)
    proposals = invoice_to_regels(invoice, expense_account=expense_account)

    saved: List[Boekingsregel] = []
    warnings: List[str] = []
    if save:
        if not proposals:
            raise HTTPException(
                status_code=422,
                detail={"code": "NO_TOTAL_FOUND", "message": "Geen totaalbedrag gevonden op de factuur."},
            )
        accounts = await accounts_by_number(db, client_id)
        for proposal in proposals:
            data, validation = prepare_regel(
                {**vars(proposal), "relatie": invoice.supplier_name},
                accounts.get(proposal.account_number),
                fill_btw=False,
            )
            warnings.extend(
                f"{proposal.account_number}: {message}"
                for message in validation.errors + validation.warnings
            )
            regel = Boekingsregel(client_id=client_id, **data)
            db.add(regel)
            saved.append(regel)
        await db.commit()
        for regel in saved:
            await db.refresh(regel)

        bookkeeping_logger.invoice_booked(
            client_id=client_id,
            regel_count=len(saved),
            factuurnummer=invoice.invoice_number,
            total_amount=float(invoice.total_amount) if invoice.total_amount is not None else None,
            user_id=user_id,
        )

    return InvoiceOcrResponse(
        invoice=InvoiceDataResponse.model_validate(invoice),
        regels=[ProposedRegelResponse.model_validate(p) for p in proposals],
        saved=[BoekingsregelResponse.model_validate(r) for r in saved],
        warnings=warnings,
    )


@router.get("/clients/{client_id}/boekingsregels/{regel_id}", response_model=BoekingsregelResponse)
async def get_regel(
    regel_id: UUID,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _get_regel(db, client.id, regel_id)


@router.put("/clients/{client_id}/boekingsregels/{regel_id}", response_model=BoekingsregelSaved)
async def update_regel(
    regel_id: UUID,
    regel_in: BoekingsregelUpdate,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Partial update. Changing an amount or the code without a new BTW
    amount recalculates the BTW amount.
    """
    regel = await _get_regel(db, client.id, regel_id)
    update_data = regel_in.model_dump(exclude_unset=True)

    current = {name: getattr(regel, name) for name in REGEL_FIELDS}
    current.update({k: v for k, v in update_data.items() if v is not None or k not in REQUIRED_FIELDS})
    if "btw_bedrag" not in update_data and {"debet", "credit", "btw_code"} & update_data.keys():
        current["btw_bedrag"] = Decimal("0")

    accounts = await accounts_by_number(db, client.id)
    data, validation = prepare_regel(current, accounts.get(current["account_number"]))
    _raise_invalid(validation)

    for field, value in data.items():
        setattr(regel, field, value)
    await db.commit()
    await db.refresh(regel)

    return BoekingsregelSaved(
        regel=BoekingsregelResponse.model_validate(regel),
        warnings=validation.warnings,
    )


@router.delete("/clients/{client_id}/boekingsregels/{regel_id}", status_code=204)
async def delete_regel(
    regel_id: UUID,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    regel = await _get_regel(db, client.id, regel_id)
    await db.delete(regel)
    await db.commit()
    return None

"""
BTW Aangifte API Endpoints

Calculation, storage and status of the aangifte omzetbelasting of a client,
with Excel and PDF exports.
"""
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.btw_aangifte import AangifteStatus
from app.schemas.btw import (
    PeriodRequest,
    BtwCalculationResponse,
    BtwAangifteResponse,
    StatusUpdateRequest,
    QuarterSummaryResponse,
)
from app.services.btw.aangifte import (
    AangifteNotFoundError,
    AangifteSubmittedError,
    BtwAangifteService,
    InvalidPeriodError,
)
from app.services.btw.helpers import period_slug
from app.services.btw.pdf import generate_aangifte_pdf
from app.services.excel.exporter import XLSX_MEDIA_TYPE, export_aangifte, slugify
from app.services.logging import bookkeeping_logger
from app.api.v1.deps import CurrentUser, OwnedClient, file_response

router = APIRouter()


def _not_found(e: AangifteNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "AANGIFTE_NOT_FOUND", "message": str(e)},
    )


def _submitted(message: str) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": "AANGIFTE_INGEDIEND", "message": message},
    )


@router.post("/clients/{client_id}/btw/calculate", response_model=BtwCalculationResponse)
async def calculate_aangifte(
    period: PeriodRequest,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Calculate the rubrieken of a period without storing them."""
    service = BtwAangifteService(db, client.id)
    try:
        calc = await service.calculate(period.periode_type, period.periode, period.jaar)
    except InvalidPeriodError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_PERIOD", "message": str(e)},
        )
    return BtwCalculationResponse(**calc.to_dict())


@router.post("/clients/{client_id}/btw/aangiftes", response_model=BtwAangifteResponse)
async def save_aangifte(
    period: PeriodRequest,
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Calculate and store the aangifte of a period as concept.

    A stored concept is recalculated; an ingediend aangifte is left alone.
    """
    client_id, user_id = client.id, current_user.id
    service = BtwAangifteService(db, client_id)
    try:
        aangifte, calc = await service.save(period.periode_type, period.periode, period.jaar)
    except InvalidPeriodError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_PERIOD", "message": str(e)},
        )
    except AangifteSubmittedError as e:
        bookkeeping_logger.aangifte_blocked(
            aangifte_id=None,
            client_id=client_id,
            attempted_action="recalculate",
            user_id=user_id,
        )
        raise _submitted(str(e))

    bookkeeping_logger.aangifte_calculated(
        aangifte_id=aangifte.id,
        client_id=client_id,
        periode_label=calc.periode_label,
        te_betalen=float(aangifte.rubriek_5e_btw),
        transaction_count=calc.total_transactions,
        user_id=user_id,
    )
    return aangifte


@router.get("/clients/{client_id}/btw/aangiftes", response_model=List[BtwAangifteResponse])
async def list_aangiftes(
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
    jaar: Optional[int] = Query(None, ge=1900, le=2999),
):
    return await BtwAangifteService(db, client.id).list_aangiftes(jaar=jaar)


@router.get("/clients/{client_id}/btw/kwartalen", response_model=List[QuarterSummaryResponse])
async def quarterly_overview(
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
    jaar: int = Query(..., ge=1900, le=2999),
):
    """Status, totals and deadline of the four quarters of a year."""
    return await BtwAangifteService(db, client.id).quarterly_overview(jaar)


@router.get("/clients/{client_id}/btw/aangiftes/{aangifte_id}", response_model=BtwAangifteResponse)
async def get_aangifte(
    aangifte_id: UUID,
    client: OwnedClient,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await BtwAangifteService(db, client.id).get(aangifte_id)
    except AangifteNotFoundError as e:
        raise _not_found(e)


@router.patch("/clients/{client_id}/btw/aangiftes/{aangifte_id}/status", response_model=BtwAangifteResponse)
async def update_aangifte_status(
    aangifte_id: UUID,
    status_in: StatusUpdateRequest,
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Move an aangifte through concept -> definitief -> ingediend.

    Once ingediend the status is final; only the notes can still change.
    """
    client_id, user_id = client.id, current_user.id
    service = BtwAangifteService(db, client_id)
    try:
        aangifte = await service.get(aangifte_id)
    except AangifteNotFoundError as e:
        raise _not_found(e)

    old_status = aangifte.status
    if old_status == AangifteStatus.INGEDIEND.value and status_in.status != old_status:
        bookkeeping_logger.aangifte_blocked(
            aangifte_id=aangifte_id,
            client_id=client_id,
            attempted_action=f"status -> {status_in.status}",
            user_id=user_id,
        )
        raise _submitted("Deze BTW aangifte is al ingediend; de status kan niet meer gewijzigd worden.")

    if old_status == status_in.status:
        if status_in.notes is not None:
            aangifte.notes = status_in.notes
            await db.commit()
            await db.refresh(aangifte)
        return aangifte

    aangifte = await service.update_status(aangifte_id, status_in.status, notes=status_in.notes)
    bookkeeping_logger.aangifte_status_changed(
        aangifte_id=aangifte_id,
        client_id=client_id,
        old_status=old_status,
        new_status=aangifte.status,
        user_id=user_id,
    )
    return aangifte


@router.get("/clients/{client_id}/btw/aangiftes/{aangifte_id}/export")
async def export_aangifte_excel(
    aangifte_id: UUID,
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        aangifte = await BtwAangifteService(db, client.id).get(aangifte_id)
    except AangifteNotFoundError as e:
        raise _not_found(e)

    filename, content = export_aangifte(client, aangifte)
    bookkeeping_logger.export_generated(
        export_type="btw_aangifte",
        file_name=filename,
        row_count=1,
        client_id=client.id,
        user_id=current_user.id,
    )
    return file_response(content, filename, XLSX_MEDIA_TYPE)


@router.get("/clients/{client_id}/btw/aangiftes/{aangifte_id}/pdf")
async def export_aangifte_pdf(
    aangifte_id: UUID,
    client: OwnedClient,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        aangifte = await BtwAangifteService(db, client.id).get(aangifte_id)
    except AangifteNotFoundError as e:
        raise _not_found(e)

    content = generate_aangifte_pdf(client, aangifte)
    filename = (
        f"BTW-Aangifte-{slugify(client.name)}-"
        f"{period_slug(aangifte.periode_type, aangifte.periode, aangifte.jaar)}.pdf"
    )
    bookkeeping_logger.export_generated(
        export_type="btw_aangifte_pdf",
        file_name=filename,
        row_count=1,
        client_id=client.id,
        user_id=current_user.id,
    )
    return file_response(content, filename, "application/pdf")

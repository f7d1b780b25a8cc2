"""
Helper endpoints

Stateless lookups for the bookkeeper: rubriek explanations, account type
guidance, the glossary, period labels, BTW amounts, filing deadlines and
the Excel import templates.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.schemas.btw import (
    BtwAmountRequest,
    BtwAmountResponse,
    DeadlineResponse,
    PeriodLabelResponse,
    PeriodRequest,
)
from app.services.btw.codes import calculate_btw_amount, format_btw_code, format_euro, to_decimal
from app.services.btw.helpers import (
    ACCOUNTING_TERMS,
    format_period,
    get_account_type_guidance,
    get_btw_deadline,
    get_rubriek_explanation,
    period_slug,
)
from app.services.excel.exporter import XLSX_MEDIA_TYPE
from app.services.excel.templates import get_template
from app.api.v1.deps import file_response

router = APIRouter()


def _period(periode_type: str, periode: int, jaar: int) -> PeriodRequest:
    try:
        return PeriodRequest(periode_type=periode_type, periode=periode, jaar=jaar)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_PERIOD", "message": str(e)},
        )


@router.get("/helpers/rubrieken/{rubriek}")
async def rubriek_explanation(rubriek: str):
    rubriek = rubriek.lower()
    return {"rubriek": rubriek, "explanation": get_rubriek_explanation(rubriek)}


@router.get("/helpers/account-types/{account_type}")
async def account_type_guidance(account_type: str):
    return {"account_type": account_type, **get_account_type_guidance(account_type.lower())}


@router.get("/helpers/terms")
async def accounting_terms():
    """Glossary of bookkeeping terms."""
    return ACCOUNTING_TERMS


@router.get("/helpers/period-label", response_model=PeriodLabelResponse)
async def period_label(
    periode_type: str = Query(...),
    periode: int = Query(...),
    jaar: int = Query(...),
):
    period = _period(periode_type, periode, jaar)
    return PeriodLabelResponse(
        label=format_period(period.periode_type, period.periode, period.jaar),
        slug=period_slug(period.periode_type, period.periode, period.jaar),
    )


@router.post("/helpers/btw-amount", response_model=BtwAmountResponse)
async def btw_amount(request: BtwAmountRequest):
    """BTW on a base amount, e.g. 21% of €100,00 is €21,00."""
    code = request.code.strip().lower() if request.code else None
    amount = calculate_btw_amount(request.base, code)
    return BtwAmountResponse(
        base=to_decimal(request.base),
        code=code,
        btw_bedrag=amount,
        formatted_code=format_btw_code(code),
        formatted_amount=format_euro(amount),
    )


@router.get("/btw/deadline", response_model=DeadlineResponse)
async def btw_deadline(
    periode_type: str = Query(...),
    periode: int = Query(...),
    jaar: int = Query(...),
    today: Optional[date] = Query(None, description="Reference date, defaults to today"),
):
    period = _period(periode_type, periode, jaar)
    deadline = get_btw_deadline(period.periode_type, period.periode, period.jaar, today=today)
    return DeadlineResponse(
        periode_label=format_period(period.periode_type, period.periode, period.jaar),
        deadline=deadline.deadline,
        days_remaining=deadline.days_remaining,
        is_overdue=deadline.is_overdue,
    )


@router.get("/templates/{template_type}")
async def download_template(template_type: str):
    """Empty Excel import template with example rows."""
    try:
        filename, content = get_template(template_type)
    except ValueError:
        raise HTTPException(
            status_code=404,
            detail={"code": "TEMPLATE_NOT_FOUND", "message": f"Onbekend template: {template_type}"},
        )
    return file_response(content, filename, XLSX_MEDIA_TYPE)

from fastapi import APIRouter, Depends, Path

from spendwise.core.security import get_current_user_id
from spendwise.routers.deps import get_report_builder, ok
from spendwise.utils.reports import ReportBuilder

router = APIRouter()


@router.get("/monthly/{year}/{month}")
def monthly_report(
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    """
    Spending by category and income for one calendar month. Example: /api/reports/monthly/2025/11
    """
    return ok(builder.monthly_report(user_id, month, year))


@router.get("/annual/{year}")
def annual_report(
    year: int = Path(..., ge=1970, le=9999),
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    return ok(builder.annual_report(user_id, year))

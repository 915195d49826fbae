from fastapi import APIRouter, Depends

from spendwise.core.security import get_current_user_id
from spendwise.routers.deps import get_report_builder, ok
from spendwise.utils.reports import ReportBuilder

router = APIRouter()


@router.get("/health")
def financial_health(
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    """Score (0-100) and metrics over the last six months."""
    return ok(builder.financial_health(user_id))


@router.get("/predictions")
def predictions(
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    return ok(builder.predictive_analysis(user_id))

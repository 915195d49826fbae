from fastapi import APIRouter, Depends

from spendwise.core.security import get_current_user_id
from spendwise.routers.deps import get_report_builder, ok
from spendwise.utils.reports import ReportBuilder

router = APIRouter()


@router.get("/spending-patterns")
def spending_patterns(
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    return ok(builder.spending_insights(user_id))


@router.get("/budget-analysis")
def budget_analysis(
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    return ok(builder.budget_analysis(user_id))


@router.get("/savings-opportunities")
def savings_opportunities(
    user_id: str = Depends(get_current_user_id),
    builder: ReportBuilder = Depends(get_report_builder),
):
    return ok(builder.savings_opportunities(user_id))

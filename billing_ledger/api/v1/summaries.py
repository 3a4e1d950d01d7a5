"""/v1/summaries - monthly financial summaries"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import get_current_user_id
from billing_ledger.api.v1.schemas import MonthlySummaryResponse
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.summaries import MonthlySummaryService

router = APIRouter()


@router.get("/summaries/{year}/{month}", response_model=MonthlySummaryResponse)
def get_summary(
    year: int,
    month: int = Path(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Cached summary for the month, computed on first access"""
    return MonthlySummaryResponse.model_validate(MonthlySummaryService(db).get_summary(user_id, month, year))


@router.post("/summaries/{year}/{month}/recalculate", response_model=MonthlySummaryResponse)
def recalculate_summary(
    year: int,
    month: int = Path(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Rebuild the month from its transactions and unpaid installments"""
    return MonthlySummaryResponse.model_validate(MonthlySummaryService(db).recalculate(user_id, month, year))

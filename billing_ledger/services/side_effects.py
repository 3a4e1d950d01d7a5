"""Best-effort execution of trailing steps after a primary operation commits"""

from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from billing_ledger.domain.exceptions import DomainException
from billing_ledger.domain.models import SideEffect
from billing_ledger.infrastructure.observability.logging import log_side_effect_failure
from billing_ledger.infrastructure.observability.metrics import side_effect_failure_counter

# Step names reported in OperationResult.side_effects
GENERATE_INSTALLMENTS = "generate_installments"
REGENERATE_INSTALLMENTS = "regenerate_installments"
RECALCULATE_SUMMARY = "recalculate_summary"
RECALCULATE_CREDIT_CARD_INSTALLMENTS = "recalculate_credit_card_installments"


def run_best_effort(
    db: Session,
    name: str,
    step: Callable[[], Any],
    error_code: Optional[str] = None,
    **context: Any,
) -> SideEffect:
    """
    Run a trailing step whose failure must not undo the primary operation.

    The primary write is already committed when this runs. On failure the
    step's own uncommitted writes are rolled back, the error is logged and
    counted, and a failed SideEffect is returned instead of raising.
    """
    try:
        step()
    except Exception as e:
        db.rollback()
        side_effect_failure_counter.labels(step=name).inc()
        log_side_effect_failure(name, e, **context)
        code = error_code or (e.code if isinstance(e, DomainException) else "SIDE_EFFECT_FAILED")
        return SideEffect(name=name, succeeded=False, error_code=code, detail=str(e))

    return SideEffect(name=name, succeeded=True)

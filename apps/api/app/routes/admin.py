from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pymongo.database import Database

from src.catalog.config import AppConfig
from src.catalog.jobs.auto_verification import run_auto_verification
from src.catalog.logging_utils import configure_logger
from src.catalog.notifications.email import Notifier

from ..dependencies import get_config, get_db, get_notifier, require_admin
from ..errors import error_responses
from ..schemas.jobs import VerificationReportOut

router = APIRouter(prefix="/admin", tags=["admin"])

logger = configure_logger(__name__)


@router.post(
    "/jobs/auto-verification",
    response_model=VerificationReportOut,
    summary="Run the auto-verification sweep now (admin)",
    description="Runs the same sweep as the daily schedule, synchronously, and returns its report.",
    responses=error_responses(401, 403, 500),
)
def trigger_auto_verification(
    admin=Depends(require_admin),
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    config: AppConfig = Depends(get_config),
) -> VerificationReportOut:
    logger.info(
        "Manual auto-verification requested",
        extra={"event": "verification.manual_trigger", "user_id": str(admin["_id"])},
    )
    report = run_auto_verification(
        db,
        notifier,
        min_account_age_days=config.jobs.min_account_age_days,
        min_review_count=config.jobs.min_review_count,
    )
    return VerificationReportOut.from_report(report)


@router.get(
    "/jobs/auto-verification",
    summary="Scheduler state and last scheduled report (admin)",
    responses=error_responses(401, 403),
)
def auto_verification_status(request: Request, _admin=Depends(require_admin)):
    scheduler = getattr(request.app.state, "scheduler", None)
    last_report = scheduler.last_report if scheduler is not None else None
    return {
        "enabled": scheduler is not None,
        "running": bool(scheduler and scheduler.running),
        "lastReport": VerificationReportOut.from_report(last_report).model_dump() if last_report else None,
    }

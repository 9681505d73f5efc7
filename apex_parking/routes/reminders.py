from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from apex_parking.core.auth import check_bearer
from apex_parking.core.config import get_settings
from apex_parking.db.session import get_db
from apex_parking.scheduler.reminder_scheduler import run_reminder_sweep
from apex_parking.schemas.common import ok

router = APIRouter(prefix="/api", tags=["reminders"])


@router.post("/scheduled-reminders")
def scheduled_reminders(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    """Run the reminder sweep now, e.g. from an external cron."""
    check_bearer(authorization, get_settings().cron_secret)
    return ok(run_reminder_sweep(db))

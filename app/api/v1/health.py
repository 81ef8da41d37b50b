"""Liveness for the identity service: database reachability and whether codes are emailed or only logged."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health status, database connectivity and whether
    verification emails are delivered or only logged.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
        email_delivery="enabled" if settings.SEND_EMAILS else "disabled",
        sms_delivery="enabled" if settings.SEND_SMS else "disabled",
    )

"""
System batch HTTP routes, invoked by an external scheduler.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Union

from orbit.database import get_db
from orbit.exceptions import InvalidDateRangeException, StorageUnavailableException
from orbit.schemas import (
    MaterializeRequest, MaterializeResponse, DryRunResponse,
    EndOfDayRequest, EndOfDayResponse, HealthResponse
)
from orbit.services.materializer_service import MaterializerService
from orbit.services.sweeper_service import SweeperService

logger = logging.getLogger("orbit.api")

router = APIRouter(prefix="/api/v1/system", tags=["system"])

GATEWAY_AUTH = "Bearer CRON_SECRET (verified by the gateway)"


@router.post("/ensure-instances", response_model=Union[MaterializeResponse, DryRunResponse])
def ensure_instances(request: MaterializeRequest, db: Session = Depends(get_db)):
    """Batch generate obligation instances for a date range (max 30 days)."""
    service = MaterializerService(db)
    try:
        return service.materialize_batch(
            request.start_date,
            request.end_date,
            user_ids=request.user_ids,
            dry_run=request.dry_run
        )
    except InvalidDateRangeException as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageUnavailableException as e:
        logger.error(f"[ENSURE-INSTANCES] Fatal error: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/ensure-instances", response_model=HealthResponse)
def ensure_instances_health():
    """Static metadata for liveness probing."""
    return HealthResponse(
        endpoint="/api/v1/system/ensure-instances",
        method="POST",
        auth=GATEWAY_AUTH,
        description="Batch generate task instances for date range (service-role only)",
        parameters={
            "user_ids": "optional array of user IDs (default: all active users)",
            "start_date": "required YYYY-MM-DD",
            "end_date": "required YYYY-MM-DD (max 30 days from start)",
            "dry_run": "optional boolean (default: false)",
        }
    )


@router.post("/end-of-day", response_model=EndOfDayResponse)
def end_of_day(request: EndOfDayRequest = EndOfDayRequest(), db: Session = Depends(get_db)):
    """Expire unconfirmed instances, write daily snapshots and decay missed streaks."""
    service = SweeperService(db)
    try:
        target_day = request.as_of_date or service.default_target_day()
        return service.sweep(target_day)
    except StorageUnavailableException as e:
        logger.error(f"[END-OF-DAY] Fatal error: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/end-of-day", response_model=HealthResponse)
def end_of_day_health():
    """Static metadata for liveness probing."""
    return HealthResponse(
        endpoint="/api/v1/system/end-of-day",
        method="POST",
        auth=GATEWAY_AUTH,
        description="End-of-day job to expire habits and generate snapshots",
        parameters={
            "as_of_date": "optional YYYY-MM-DD (default: yesterday)",
        }
    )

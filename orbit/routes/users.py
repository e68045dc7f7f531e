"""
Per-user HTTP routes: gamification reads and instance actions.
"""
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from orbit.database import get_db
from orbit.exceptions import (
    InstanceNotFoundException, InvalidTransitionException, ValidationException
)
from orbit.repositories.task_repository import ProfileRepository
from orbit.schemas import (
    GamificationStatsResponse, AchievementResponse,
    CompletionResponse, DeferRequest, DeferResponse
)
from orbit.services.achievement_service import AchievementService
from orbit.services.date_service import DateService
from orbit.services.gamification_service import GamificationService
from orbit.services.instance_service import InstanceService

router = APIRouter(prefix="/api/v1/users/{user_id}", tags=["users"])


@router.get("/gamification", response_model=GamificationStatsResponse)
def get_gamification_stats(
    user_id: str,
    today: Optional[date] = None,
    db: Session = Depends(get_db)
):
    """Streaks, points, level and today's point budget."""
    if today is None:
        today = DateService.today(ProfileRepository.get_timezone(db, user_id))
    return GamificationService(db).get_stats(user_id, today)


@router.get("/achievements", response_model=List[AchievementResponse])
def get_achievements(user_id: str, db: Session = Depends(get_db)):
    """Achievement catalog with unlock state and progress."""
    return AchievementService(db).list_with_progress(user_id)


@router.post("/instances/{task_id}/{logical_day}/complete", response_model=CompletionResponse)
def complete_instance(
    user_id: str,
    task_id: int,
    logical_day: date,
    db: Session = Depends(get_db)
):
    """Mark an obligation done and award points."""
    try:
        return InstanceService(db).complete(user_id, task_id, logical_day)
    except InstanceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidTransitionException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/instances/{task_id}/{logical_day}/defer", response_model=DeferResponse)
def defer_instance(
    user_id: str,
    task_id: int,
    logical_day: date,
    request: DeferRequest = DeferRequest(),
    db: Session = Depends(get_db)
):
    """Skip an obligation today and re-create it on a later day."""
    try:
        return InstanceService(db).defer(user_id, task_id, logical_day, request.target_day)
    except InstanceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidTransitionException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationException as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

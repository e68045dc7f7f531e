"""
Instance action service.
Completion and deferral on the pending/done/skipped state machine.
"""
import logging
from datetime import date, datetime, timedelta, timezone as dt_timezone
from typing import Optional
from sqlalchemy.orm import Session

from orbit.constants import INSTANCE_STATUS_PENDING, INSTANCE_STATUS_DONE, INSTANCE_STATUS_SKIPPED
from orbit.exceptions import InstanceNotFoundException, InvalidTransitionException, ValidationException
from orbit.repositories.instance_repository import InstanceRepository
from orbit.schemas import CompletionResponse, DeferResponse, InstanceResponse
from orbit.services.achievement_service import AchievementService
from orbit.services.gamification_service import GamificationService

logger = logging.getLogger("orbit.instances")


class InstanceService:
    """Service for obligation instance state transitions"""

    def __init__(self, db: Session):
        self.db = db
        self.instance_repo = InstanceRepository()
        self.gamification_service = GamificationService(db)
        self.achievement_service = AchievementService(db)

    def _get_or_raise(self, user_id: str, task_id: int, logical_day: date):
        instance = self.instance_repo.get(self.db, user_id, task_id, logical_day)
        if not instance:
            raise InstanceNotFoundException(task_id, logical_day)
        return instance

    def complete(
        self,
        user_id: str,
        task_id: int,
        logical_day: date,
        now: Optional[datetime] = None
    ) -> CompletionResponse:
        """
        Mark an instance done and credit the completion.

        Completing a done instance again is a no-op (no points, no
        streak change). A skipped instance is terminal.

        Raises:
            InstanceNotFoundException: No instance for the key
            InvalidTransitionException: The instance was already skipped
        """
        instance = self._get_or_raise(user_id, task_id, logical_day)

        if instance.status == INSTANCE_STATUS_DONE:
            return CompletionResponse(instance=InstanceResponse.model_validate(instance))
        if instance.status != INSTANCE_STATUS_PENDING:
            raise InvalidTransitionException(instance.status, INSTANCE_STATUS_DONE)

        instance.status = INSTANCE_STATUS_DONE
        confirmed_at = now or datetime.now(dt_timezone.utc)
        if confirmed_at.tzinfo is not None:
            confirmed_at = confirmed_at.astimezone(dt_timezone.utc).replace(tzinfo=None)
        instance.confirmed_at = confirmed_at
        self.db.flush()

        award = self.gamification_service.record_completion(
            user_id, logical_day, task_id=task_id, commit=False
        )
        unlocked = self.achievement_service.check_unlocks(user_id, commit=False)
        self.db.commit()
        self.db.refresh(instance)

        logger.info(f"User {user_id} completed task {task_id} on {logical_day}: +{award.points} points")
        return CompletionResponse(
            instance=InstanceResponse.model_validate(instance),
            award=award,
            unlocked_achievements=[a.id for a in unlocked]
        )

    def defer(
        self,
        user_id: str,
        task_id: int,
        logical_day: date,
        target_day: Optional[date] = None
    ) -> DeferResponse:
        """
        Push a pending obligation to another day.

        The original instance becomes skipped and a pending instance is
        ensured on target_day (default: the next day). There is no
        separate "delayed" state.

        Raises:
            InstanceNotFoundException: No instance for the key
            InvalidTransitionException: The instance is not pending
            ValidationException: target_day is not after logical_day
        """
        target_day = target_day or logical_day + timedelta(days=1)
        if target_day <= logical_day:
            raise ValidationException("target_day", "must be after the instance's logical day")

        instance = self._get_or_raise(user_id, task_id, logical_day)
        if instance.status != INSTANCE_STATUS_PENDING:
            raise InvalidTransitionException(instance.status, INSTANCE_STATUS_SKIPPED)

        instance.status = INSTANCE_STATUS_SKIPPED
        self.instance_repo.bulk_insert_pending(self.db, [{
            "user_id": user_id,
            "task_id": task_id,
            "logical_day": target_day,
        }])
        self.db.commit()

        deferred = self.instance_repo.get(self.db, user_id, task_id, target_day)
        self.db.refresh(instance)
        return DeferResponse(
            skipped=InstanceResponse.model_validate(instance),
            deferred_to=InstanceResponse.model_validate(deferred)
        )

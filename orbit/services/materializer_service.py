"""
Instance materialization service.
Ensures exactly one obligation instance exists per (task, logical day)
that a recurrence rule says is due. Safe to re-run over the same range.
"""
import logging
from datetime import date
from typing import List, NamedTuple, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orbit.database import ensure_storage_available
from orbit.exceptions import InvalidDateRangeException, ValidationException
from orbit.repositories.instance_repository import InstanceRepository
from orbit.repositories.settings_repository import SettingsRepository
from orbit.repositories.task_repository import TaskRepository, ProfileRepository
from orbit.schemas import (
    MaterializeError, MaterializeResponse, DryRunPlan, DryRunResponse
)
from orbit.services.date_service import DateService
from orbit.services.recurrence_service import RecurrenceService

logger = logging.getLogger("orbit.materializer")


class UserMaterialization(NamedTuple):
    created: int
    warnings: List[str]


class MaterializerService:
    """Service for expanding recurrence rules into obligation instances"""

    def __init__(self, db: Session):
        self.db = db
        self.task_repo = TaskRepository()
        self.profile_repo = ProfileRepository()
        self.instance_repo = InstanceRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService()
        self.recurrence_service = RecurrenceService()

    def validate_range(self, start_date: date, end_date: date) -> int:
        """
        Validate a materialization range.

        Args:
            start_date: First logical day (inclusive)
            end_date: Last logical day (inclusive)

        Returns:
            Number of days in the range

        Raises:
            InvalidDateRangeException: If end precedes start or the span is too long
        """
        settings = self.settings_repo.get(self.db)

        if end_date < start_date:
            raise InvalidDateRangeException(start_date, end_date, "end_date must not be before start_date")

        span = (end_date - start_date).days
        if span > settings.max_materialize_range_days:
            raise InvalidDateRangeException(
                start_date, end_date,
                f"range cannot exceed {settings.max_materialize_range_days} days"
            )

        return span + 1

    def materialize(self, user_id: str, start_date: date, end_date: date) -> int:
        """
        Materialize one user's instances for an inclusive date range.

        Args:
            user_id: Owner of the recurring tasks
            start_date: First logical day
            end_date: Last logical day

        Returns:
            Number of instances created
        """
        self.validate_range(start_date, end_date)
        outcome = self._materialize_user(user_id, start_date, end_date)
        self.db.commit()
        return outcome.created

    def materialize_batch(
        self,
        start_date: date,
        end_date: date,
        user_ids: Optional[List[str]] = None,
        dry_run: bool = False
    ) -> MaterializeResponse | DryRunResponse:
        """
        Materialize a range for many users, isolating per-user failures.

        Each user runs inside its own SAVEPOINT: a failing user is rolled
        back and reported, the rest of the batch continues.

        Args:
            start_date: First logical day
            end_date: Last logical day
            user_ids: Users to process (default: all users with active rules)
            dry_run: Only report what would be processed

        Returns:
            MaterializeResponse, or DryRunResponse when dry_run is set

        Raises:
            InvalidDateRangeException: Before any work, on a bad range
            StorageUnavailableException: If the database cannot be reached
        """
        days = self.validate_range(start_date, end_date)
        ensure_storage_available(self.db)

        if user_ids:
            users = list(dict.fromkeys(user_ids))
        else:
            users = self.task_repo.get_users_with_active_rules(self.db)

        if dry_run:
            return DryRunResponse(
                would_process=DryRunPlan(
                    users=len(users),
                    days=days,
                    start_date=start_date,
                    end_date=end_date
                )
            )

        result = MaterializeResponse(start_date=start_date, end_date=end_date)

        for user_id in users:
            savepoint = self.db.begin_nested()
            try:
                outcome = self._materialize_user(user_id, start_date, end_date)
                savepoint.commit()
            except SQLAlchemyError as e:
                savepoint.rollback()
                logger.error(f"Materialization failed for user {user_id}: {e}")
                result.errors.append(MaterializeError(user_id=user_id, error=str(e)))
                continue

            result.processed_users += 1
            result.created_instances += outcome.created
            result.warnings.extend(outcome.warnings)

        self.db.commit()

        logger.info(
            f"[ENSURE-INSTANCES] {start_date}..{end_date}: "
            f"users={result.processed_users} created={result.created_instances} "
            f"errors={len(result.errors)}"
        )
        return result

    def _materialize_user(self, user_id: str, start_date: date, end_date: date) -> UserMaterialization:
        """Read rules and existing keys, then insert the missing due instances"""
        warnings: List[str] = []

        # 1. Active rules
        rules = self.task_repo.get_active_rules(self.db, user_id)
        if not rules:
            return UserMaterialization(created=0, warnings=warnings)

        timezone = self.profile_repo.get_timezone(self.db, user_id)
        settings = self.settings_repo.get(self.db)
        if timezone is None:
            timezone = settings.default_timezone

        # 2. Existing keys, one read
        task_ids = [rule.task_id for rule in rules]
        existing = self.instance_repo.get_existing_keys(self.db, task_ids, start_date, end_date)

        parsed = []
        fell_back = False
        for rule in rules:
            try:
                rule_spec = self.recurrence_service.parse_rule(rule.rule_type, rule.rule_config)
            except ValidationException as e:
                logger.warning(f"Skipping rule {rule.id} of user {user_id}: {e}")
                warnings.append(f"User {user_id}: rule {rule.id} skipped ({e})")
                continue

            created_day = None
            if rule.task.created_at is not None:
                resolution = self.date_service.resolve(rule.task.created_at, timezone)
                created_day = resolution.day
                fell_back = fell_back or resolution.fell_back
            parsed.append((rule, rule_spec, created_day))

        if fell_back:
            warnings.append(f"User {user_id}: invalid timezone '{timezone}', used UTC")

        # 3. Queue due instances that are not there yet
        queued = []
        for day in self.date_service.iter_days(start_date, end_date):
            for rule, rule_spec, created_day in parsed:
                if not self.recurrence_service.is_due(rule_spec, day, created_day):
                    continue
                if (rule.task_id, day) in existing:
                    continue
                queued.append({
                    "user_id": user_id,
                    "task_id": rule.task_id,
                    "logical_day": day,
                })

        # 4. One bulk write; conflicting keys from a concurrent run are ignored
        created = self.instance_repo.bulk_insert_pending(self.db, queued)
        if created < len(queued):
            logger.info(
                f"User {user_id}: {len(queued) - created} instances already existed (concurrent run)"
            )

        return UserMaterialization(created=created, warnings=warnings)

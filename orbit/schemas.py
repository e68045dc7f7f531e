from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import List, Optional


# ===== BATCH: MATERIALIZE =====

class MaterializeRequest(BaseModel):
    user_ids: Optional[List[str]] = None  # Default: all users with active rules
    start_date: date
    end_date: date
    dry_run: bool = False


class MaterializeError(BaseModel):
    user_id: str
    error: str


class MaterializeResponse(BaseModel):
    success: bool = True
    dry_run: bool = False
    start_date: date
    end_date: date
    processed_users: int = 0
    created_instances: int = 0
    errors: List[MaterializeError] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)  # Recoverable conditions (timezone fallbacks, bad rules)


class DryRunPlan(BaseModel):
    users: int
    days: int
    start_date: date
    end_date: date


class DryRunResponse(BaseModel):
    success: bool = True
    dry_run: bool = True
    would_process: DryRunPlan
    errors: List[MaterializeError] = Field(default_factory=list)


# ===== BATCH: END OF DAY =====

class EndOfDayRequest(BaseModel):
    as_of_date: Optional[date] = None  # Default: yesterday in the default timezone


class EndOfDayResponse(BaseModel):
    success: bool = True
    logical_day: date
    expired_instances: int = 0
    snapshots_created: int = 0
    streaks_reset: int = 0
    errors: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "healthy"
    endpoint: str
    method: str
    auth: str
    description: str
    parameters: dict = Field(default_factory=dict)


# ===== GAMIFICATION =====

class CompletionAward(BaseModel):
    points: int              # Points actually logged (after the daily cap)
    streak_bonus: int        # Part of the uncapped award that came from the streak multiplier
    capped: bool             # True if the daily cap reduced the award
    total_points: int
    level: int
    current_streak: int
    longest_streak: int
    is_new_record: bool


class GamificationStatsResponse(BaseModel):
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    total_points: int = 0
    level: int = 1
    last_active_date: Optional[date] = None
    today_points: int = 0
    can_earn_more: bool = True


class AchievementProgress(BaseModel):
    current: int
    target: int
    percentage: int


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    tier: str
    icon: str
    points: int
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    progress: AchievementProgress


# ===== INSTANCES =====

class InstanceResponse(BaseModel):
    id: int
    user_id: str
    task_id: int
    logical_day: date
    status: str
    confirmed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompletionResponse(BaseModel):
    instance: InstanceResponse
    award: Optional[CompletionAward] = None  # None when the instance was already done
    unlocked_achievements: List[str] = Field(default_factory=list)


class DeferRequest(BaseModel):
    target_day: Optional[date] = None  # Default: the following day


class DeferResponse(BaseModel):
    skipped: InstanceResponse
    deferred_to: InstanceResponse

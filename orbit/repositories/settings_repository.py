"""
Settings repository - Data access layer for the engine Settings row.
"""
from sqlalchemy.orm import Session
from orbit.models import Settings


class SettingsRepository:
    """Repository for Settings data access"""

    @staticmethod
    def get(db: Session) -> Settings:
        """
        Get engine settings (creates the row with defaults if missing).

        A new row is only flushed; it is persisted by whatever unit of
        work the caller commits.

        Returns:
            Settings object
        """
        settings = db.query(Settings).first()
        if not settings:
            settings = Settings()
            db.add(settings)
            db.flush()
        return settings

    @staticmethod
    def update(db: Session, settings: Settings) -> Settings:
        """Persist changes made to the settings row"""
        db.commit()
        db.refresh(settings)
        return settings

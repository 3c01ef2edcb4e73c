from sqlalchemy import Column, Integer, Boolean, String, DateTime
from sqlalchemy.sql import func
from pinme.core.database import Base, JSONType

class ReminderSetting(Base):
    """
    One row per user holding all three reminder bundles.

    Every bundle exists in two column layouts: a nested JSON column written by
    older app builds and flat columns written by newer ones. See
    ``pinme.services.settings_codec`` for how they are merged.
    """
    __tablename__ = "reminder_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True)

    # Long play
    longplay_enabled = Column(Boolean, nullable=True)
    longplay_duration_min = Column(Integer, nullable=True)
    longplay_methods = Column(JSONType, nullable=True)  # {"push": bool, "inApp": bool}
    longplay_push = Column(Boolean, nullable=True)
    longplay_inapp = Column(Boolean, nullable=True)

    # Idle toy
    idle_enabled = Column(Boolean, nullable=True)
    idle_days = Column(Integer, nullable=True)
    idle_options = Column(JSONType, nullable=True)  # {"smartSuggest": bool}
    idle_smart_suggest = Column(Boolean, nullable=True)

    # Smart tidy-up
    tidy_enabled = Column(Boolean, nullable=True)
    tidy_time = Column(String, nullable=True)  # HH:MM
    tidy_repeat = Column(String, nullable=True)
    tidy_dnd = Column(JSONType, nullable=True)  # {"start": "HH:MM", "end": "HH:MM"}
    tidy_dnd_start = Column(String, nullable=True)
    tidy_dnd_end = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

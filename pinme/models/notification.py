from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from pinme.core.database import Base, JSONType

class Notification(Base):
    """Server-side mirror of the notification history of signed-in users."""
    __tablename__ = "notifications"

    id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String, index=True)
    title = Column(String)
    body = Column(String, nullable=True)
    source = Column(String, nullable=True, index=True)  # dedupe token, e.g. idleToy:<toy>:14
    data = Column(JSONType, nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pinme.core.database import Base

class Toy(Base):
    __tablename__ = "toys"

    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    owner = Column(String, nullable=True)
    status = Column(String, default="in", index=True)  # in | out
    photo_url = Column(String, nullable=True)
    location = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    play_sessions = relationship("PlaySession", back_populates="toy", cascade="all, delete-orphan")

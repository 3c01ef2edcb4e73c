from sqlalchemy import Column, BigInteger, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from pinme.core.database import Base

class PlaySession(Base):
    __tablename__ = "play_sessions"

    id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True)
    toy_id = Column(String, ForeignKey("toys.id"), index=True)
    scan_time = Column(DateTime(timezone=True), index=True)

    toy = relationship("Toy", back_populates="play_sessions")

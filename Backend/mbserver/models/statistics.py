from sqlalchemy import Column, Integer, String, DateTime, func
from mbserver.services.database import Base

class Statistic(Base):
    __tablename__ = "statistic"
    __table_args__ = {"schema": "statistics"}

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    value = Column(Integer, nullable=False)
    date_collected = Column(DateTime(timezone=True), server_default=func.now())

import uuid
from sqlalchemy import Column, String, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from mbserver.services.database import Base

class Artist(Base):
    __tablename__ = "artist"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    gid = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    sort_name = Column(String(255), nullable=True)
    comment = Column(Text, nullable=False, default="")

    # An artist can have many releases (one-to-many relationship)
    releases = relationship("Release", back_populates="artist")

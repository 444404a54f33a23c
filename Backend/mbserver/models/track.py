import uuid
from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from mbserver.services.database import Base

class Recording(Base):
    __tablename__ = "recording"

    id = Column(Integer, primary_key=True, index=True)
    gid = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String, nullable=False)
    length = Column(Integer, nullable=True)
    artist_id = Column(Integer, ForeignKey("artist.id"), nullable=True)

    artist = relationship("Artist")


class Track(Base):
    __tablename__ = "track"

    id = Column(Integer, primary_key=True, index=True)
    gid = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False)
    number = Column(String, nullable=False)
    # Milliseconds
    length = Column(Integer, nullable=True)

    # Link to its parent medium
    medium_id = Column(Integer, ForeignKey("medium.id"), nullable=False, index=True)
    medium = relationship("Medium", back_populates="tracks")

    recording_id = Column(Integer, ForeignKey("recording.id"), nullable=False, index=True)
    recording = relationship("Recording")

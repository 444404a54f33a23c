import uuid
from sqlalchemy import Column, String, Integer, ForeignKey, SmallInteger
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from mbserver.services.database import Base

class ReleaseGroup(Base):
    __tablename__ = "release_group"

    id = Column(Integer, primary_key=True, index=True)
    gid = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String, nullable=False)
    artist_id = Column(Integer, ForeignKey("artist.id"), nullable=True)

    releases = relationship("Release", back_populates="release_group")
    meta = relationship("ReleaseGroupMeta", uselist=False, back_populates="release_group")


class ReleaseGroupMeta(Base):
    """Derived data, refreshed by triggers in the database."""
    __tablename__ = "release_group_meta"

    id = Column(Integer, ForeignKey("release_group.id"), primary_key=True)
    release_count = Column(Integer, nullable=False, default=0)
    first_release_date_year = Column(SmallInteger, nullable=True)
    rating = Column(SmallInteger, nullable=True)
    rating_count = Column(Integer, nullable=True)

    release_group = relationship("ReleaseGroup", back_populates="meta")

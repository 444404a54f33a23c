import uuid
from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from mbserver.services.database import Base

class Release(Base):
    __tablename__ = "release"

    id = Column(Integer, primary_key=True, index=True)
    gid = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String, nullable=False)
    barcode = Column(String, nullable=True)
    comment = Column(String, nullable=False, default="")

    # A release is credited to one artist
    artist_id = Column(Integer, ForeignKey("artist.id"), nullable=True)
    artist = relationship("Artist", back_populates="releases")

    release_group_id = Column(Integer, ForeignKey("release_group.id"), nullable=True, index=True)
    release_group = relationship("ReleaseGroup", back_populates="releases")

    # A release has one or more mediums, in position order
    mediums = relationship(
        "Medium",
        back_populates="release",
        order_by="Medium.position",
        cascade="all, delete-orphan"
    )

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from mbserver.services.database import Base

class MediumFormat(Base):
    __tablename__ = "medium_format"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    has_discids = Column(Boolean, nullable=False, default=False)


class Medium(Base):
    __tablename__ = "medium"

    id = Column(Integer, primary_key=True, index=True)
    release_id = Column(Integer, ForeignKey("release.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=1)
    name = Column(String, nullable=False, default="")
    format_id = Column(Integer, ForeignKey("medium_format.id"), nullable=True)
    # Maintained alongside the track list
    track_count = Column(Integer, nullable=False, default=0)

    release = relationship("Release", back_populates="mediums")
    format = relationship("MediumFormat")
    tracks = relationship("Track", back_populates="medium", order_by="Track.position")
    medium_cdtocs = relationship("MediumCDTOC", back_populates="medium")

    @property
    def may_have_discids(self) -> bool:
        # Mediums without a known format are allowed disc IDs
        return self.format is None or bool(self.format.has_discids)

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import ARRAY as PGARRAY
from sqlalchemy.orm import relationship
from mbserver.services.database import Base
from mbserver.services.discid import TableOfContents

class CDTOC(Base):
    __tablename__ = "cdtoc"

    id = Column(Integer, primary_key=True, index=True)
    discid = Column(String(28), unique=True, nullable=False)
    freedb_id = Column(String(8), nullable=False, index=True)
    track_count = Column(Integer, nullable=False)
    leadout_offset = Column(Integer, nullable=False)
    track_offset = Column(PGARRAY(Integer), nullable=False)
    degraded = Column(Boolean, nullable=False, default=False)
    created = Column(DateTime(timezone=True), server_default=func.now())

    medium_cdtocs = relationship("MediumCDTOC", back_populates="cdtoc")

    @classmethod
    def from_toc(cls, toc: TableOfContents) -> "CDTOC":
        return cls(
            discid=toc.discid,
            freedb_id=toc.freedb_id,
            track_count=toc.track_count,
            leadout_offset=toc.leadout_offset,
            track_offset=list(toc.track_offsets),
        )

    @property
    def toc(self) -> TableOfContents:
        return TableOfContents.from_offsets(self.track_count, self.leadout_offset, self.track_offset)

    @property
    def track_offsets(self) -> list:
        return list(self.track_offset)

    @property
    def length(self) -> int:
        return self.toc.length


class MediumCDTOC(Base):
    """Attaches a disc ID to a medium. Each (medium, cdtoc) pair exists once."""
    __tablename__ = "medium_cdtoc"
    __table_args__ = (UniqueConstraint("medium_id", "cdtoc_id", name="medium_cdtoc_idx_uniq"),)

    id = Column(Integer, primary_key=True, index=True)
    medium_id = Column(Integer, ForeignKey("medium.id"), nullable=False, index=True)
    cdtoc_id = Column(Integer, ForeignKey("cdtoc.id"), nullable=False, index=True)
    edits_pending = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    medium = relationship("Medium", back_populates="medium_cdtocs")
    cdtoc = relationship("CDTOC", back_populates="medium_cdtocs")

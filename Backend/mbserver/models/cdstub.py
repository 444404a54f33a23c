from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func
from sqlalchemy.dialects.postgresql import ARRAY as PGARRAY
from sqlalchemy.orm import relationship
from mbserver.services.database import Base
from mbserver.services.discid import TableOfContents

class CDStub(Base):
    """
    An unverified release submitted together with a disc ID by a ripper,
    kept until the disc is attached to a real medium.
    """
    __tablename__ = "release_raw"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=True)
    barcode = Column(String(255), nullable=True)
    comment = Column(String(255), nullable=True)
    added = Column(DateTime(timezone=True), server_default=func.now())
    lookup_count = Column(Integer, nullable=False, default=0)

    toc = relationship("CDStubTOC", uselist=False, back_populates="cdstub")
    tracks = relationship("CDStubTrack", back_populates="cdstub", order_by="CDStubTrack.sequence")

    @property
    def discid(self) -> str | None:
        return self.toc.discid if self.toc else None

    @property
    def track_count(self) -> int:
        return self.toc.track_count if self.toc else len(self.tracks)

    def update_track_lengths(self) -> None:
        """Fill in each stub track's length from the stub's own TOC."""
        if not self.toc:
            return
        lengths = TableOfContents.from_offsets(
            self.toc.track_count, self.toc.leadout_offset, self.toc.track_offset
        ).track_lengths
        for track, length in zip(self.tracks, lengths):
            track.length = length


class CDStubTOC(Base):
    __tablename__ = "cdtoc_raw"

    id = Column(Integer, primary_key=True)
    release_id = Column(Integer, ForeignKey("release_raw.id"), nullable=False, index=True)
    discid = Column(String(28), nullable=False, index=True)
    track_count = Column(Integer, nullable=False)
    leadout_offset = Column(Integer, nullable=False)
    track_offset = Column(PGARRAY(Integer), nullable=False)

    cdstub = relationship("CDStub", back_populates="toc")


class CDStubTrack(Base):
    __tablename__ = "track_raw"

    id = Column(Integer, primary_key=True)
    release_id = Column(Integer, ForeignKey("release_raw.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=True)
    sequence = Column(Integer, nullable=False)

    cdstub = relationship("CDStub", back_populates="tracks")

    # Not stored; computed from the stub's TOC by CDStub.update_track_lengths()
    length = None

from sqlalchemy import Column, Integer, BigInteger, String, Text, ForeignKey, DateTime, func
from mbserver.services.database import Base

class ArtType(Base):
    __tablename__ = "art_type"
    __table_args__ = {"schema": "cover_art_archive"}

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class CoverArt(Base):
    __tablename__ = "cover_art"
    __table_args__ = {"schema": "cover_art_archive"}

    id = Column(BigInteger, primary_key=True)
    release_id = Column(Integer, ForeignKey("release.id"), nullable=False, index=True)
    mime_type = Column(Text, nullable=False, default="image/jpeg")
    comment = Column(Text, nullable=False, default="")
    ordering = Column(Integer, nullable=False)
    date_uploaded = Column(DateTime(timezone=True), server_default=func.now())

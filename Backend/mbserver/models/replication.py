import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from mbserver.services.database import Base

class ReplicationControl(Base):
    """Single-row table holding the replication checkpoint."""
    __tablename__ = "replication_control"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    current_schema_sequence: Mapped[int] = mapped_column(Integer)
    current_replication_sequence: Mapped[int | None] = mapped_column(Integer)
    last_replication_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True))

class DbmirrorPending(Base):
    """Staging table filled by the replication triggers, drained by each export."""
    __tablename__ = "dbmirror_pending"

    seqid: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Quoted, schema-qualified name e.g. '"musicbrainz"."artist"'
    tablename: Mapped[str] = mapped_column(String)
    op: Mapped[str] = mapped_column(String(1))
    xid: Mapped[int] = mapped_column(Integer, index=True)

class DbmirrorPendingData(Base):
    __tablename__ = "dbmirror_pendingdata"

    seqid: Mapped[int] = mapped_column(ForeignKey("dbmirror_pending.seqid"), primary_key=True)
    iskey: Mapped[bool] = mapped_column(Boolean, primary_key=True)
    data: Mapped[str | None] = mapped_column(Text)

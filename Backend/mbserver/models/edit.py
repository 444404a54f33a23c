import enum
import datetime
from sqlalchemy import Integer, SmallInteger, ForeignKey, DateTime, Boolean, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, Mapped, mapped_column

from mbserver.services.database import Base

class EditType(enum.IntEnum):
    REMOVE_DISCID = 53
    ADD_DISCID = 55
    MOVE_DISCID = 56
    SET_TRACK_LENGTHS = 58

class EditStatus(enum.IntEnum):
    OPEN = 1
    APPLIED = 2
    FAILEDVOTE = 3
    FAILEDDEP = 4
    ERROR = 5
    FAILEDPREREQ = 6
    NOVOTES = 7
    DELETED = 9

class Edit(Base):
    """A proposed change, applied to the database only once it is approved."""
    __tablename__ = "edit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    editor_id: Mapped[int] = mapped_column(ForeignKey("editor.id"), index=True)
    type: Mapped[int] = mapped_column(SmallInteger, index=True)
    status: Mapped[int] = mapped_column(SmallInteger, default=EditStatus.OPEN, index=True)
    autoedit: Mapped[bool] = mapped_column(Boolean, default=False)

    open_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    close_time: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True))

    editor = relationship("Editor")
    data = relationship("EditData", uselist=False, back_populates="edit")
    notes = relationship("EditNote", back_populates="edit", order_by="EditNote.post_time")

class EditData(Base):
    __tablename__ = "edit_data"

    edit_id: Mapped[int] = mapped_column(ForeignKey("edit.id"), primary_key=True)
    data: Mapped[dict] = mapped_column(JSONB)

    edit = relationship("Edit", back_populates="data")

class EditNote(Base):
    __tablename__ = "edit_note"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    edit_id: Mapped[int] = mapped_column(ForeignKey("edit.id"), index=True)
    editor_id: Mapped[int] = mapped_column(ForeignKey("editor.id"), index=True)
    text: Mapped[str] = mapped_column(Text)
    post_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    edit = relationship("Edit", back_populates="notes")

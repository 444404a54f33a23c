from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import relationship
from mbserver.services.database import Base

class Editor(Base):
    __tablename__ = "editor"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False)
    email = Column(String(64), nullable=True)
    password = Column(String(128), nullable=False)
    privs = Column(Integer, nullable=False, default=0)
    bio = Column(Text, nullable=True)
    member_since = Column(DateTime(timezone=True), server_default=func.now())
    last_login_date = Column(DateTime(timezone=True), nullable=True)
    deleted = Column(Boolean, nullable=False, default=False)

    preferences = relationship("EditorPreference", back_populates="editor")


class EditorPreference(Base):
    """Private per-editor settings; only ever exported in the private dump."""
    __tablename__ = "editor_preference"

    id = Column(Integer, primary_key=True)
    editor_id = Column(Integer, ForeignKey("editor.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    value = Column(String(100), nullable=False)

    editor = relationship("Editor", back_populates="preferences")

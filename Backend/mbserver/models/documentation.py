from sqlalchemy import Column, Integer, String, Text, Boolean
from mbserver.services.database import Base

class WikiDocsIndex(Base):
    """Transcluded wiki page revisions."""
    __tablename__ = "wikidocs_index"
    __table_args__ = {"schema": "wikidocs"}

    page_name = Column(Text, primary_key=True)
    revision = Column(Integer, nullable=False)


class LinkTypeDocumentation(Base):
    __tablename__ = "link_type_documentation"
    __table_args__ = {"schema": "documentation"}

    link_type = Column(Integer, primary_key=True)
    documentation = Column(Text, nullable=False)
    examples_deleted = Column(Boolean, nullable=False, default=False)

from sqlalchemy import Column, DateTime, Integer, String

from cloudshare.core.database import Base, utcnow


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=False)
    path = Column(String, nullable=True)
    size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False, default="application/octet-stream")
    user_id = Column(Integer, nullable=True, index=True)
    bucket = Column(String, nullable=True)
    object_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

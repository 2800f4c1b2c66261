from sqlalchemy import Boolean, Column, DateTime, Integer, String

from cloudshare.core.database import Base, utcnow


class SharedLink(Base):
    __tablename__ = "shared_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # files live in another service's table, so no FK constraint here
    file_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    max_access_count = Column(Integer, nullable=True)
    access_count = Column(Integer, nullable=False, default=0)
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    last_accessed = Column(DateTime, nullable=True)

    @property
    def is_password_protected(self) -> bool:
        return self.password_hash is not None

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class FeedState(Base):
    __tablename__ = "feed_state"

    feed_id = Column(String(50), primary_key=True)

    version = Column(String(100))  # opaque token: "41234", "20251019", ...
    filename = Column(Text)  # artifact advertised to the appliance
    source_url = Column(Text)  # upstream base, e.g. the reputation CDN

    last_success = Column(Boolean, default=False, nullable=False)
    last_attempt_at = Column(DateTime)
    last_success_at = Column(DateTime)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "feed_id": self.feed_id,
            "version": self.version,
            "filename": self.filename,
            "source_url": self.source_url,
            "last_success": bool(self.last_success),
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
        }

class FeedArtifact(Base):
    __tablename__ = "feed_artifacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    feed_id = Column(String(50), nullable=False, index=True)

    version = Column(String(100), nullable=False)
    filename = Column(Text, nullable=False)
    checksum = Column(String(64))  # SHA-256 of the main artifact

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_feed_artifacts_feed_version", "feed_id", "version"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "version": self.version,
            "filename": self.filename,
            "checksum": self.checksum,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class WebFilterKey(Base):
    __tablename__ = "webfilter_keys"

    license_number = Column(String(100), primary_key=True)
    key = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

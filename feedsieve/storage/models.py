"""SQLAlchemy models for the persistent item cache."""

from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheEntryModel(Base):
    """One item judged new in a past run and not yet expired."""
    __tablename__ = "cache_entries"

    feed_id = Column(String(2048), primary_key=True)
    identity = Column(String(2048), primary_key=True)

    first_seen = Column(DateTime, nullable=False)  # Naive UTC
    ttl_seconds = Column(Integer, nullable=False)  # Feed TTL snapshot at insert

    __table_args__ = (
        Index('idx_cache_feed', 'feed_id'),
    )


class PluginDataModel(Base):
    """Plugin key/value data, namespaced by plugin and feed."""
    __tablename__ = "plugin_data"

    namespace = Column(String(255), primary_key=True)
    feed_id = Column(String(2048), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text)


def init_db(database_url: str):
    """Initialize database and create all tables."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return engine

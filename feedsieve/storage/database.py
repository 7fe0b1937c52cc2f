"""Whole-map persistence for the item cache and plugin data."""

from datetime import timezone, timedelta
from pathlib import Path
from typing import Iterable, List, Tuple

from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
import structlog

from .models import CacheEntryModel, PluginDataModel, init_db
from ..cache.interfaces import CacheEntry, CacheKey
from ..config.settings import settings
from ..errors import CacheIOError

logger = structlog.get_logger()

PluginRow = Tuple[str, str, str, str]  # namespace, feed_id, key, value


class CacheStorage:
    """SQLite-backed (or any SQLAlchemy URL) store for cache snapshots."""

    def __init__(self, database_url: str = None):
        if database_url is None:
            database_url = settings.cache_database_url
        self.database_url = database_url
        self._engine = None
        self._Session = None

    def _session(self):
        # Deferred so that a broken database is reported as a CacheIOError at load/save time
        if self._Session is None:
            if self.database_url.startswith("sqlite:///"):
                db_path = self.database_url.replace("sqlite:///", "")
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = init_db(self.database_url)
            self._Session = sessionmaker(bind=self._engine)
        return self._Session()

    def load_entries(self) -> List[CacheEntry]:
        """Read every cache entry."""
        try:
            session = self._session()
            try:
                return [self._model_to_entry(m) for m in session.query(CacheEntryModel).all()]
            finally:
                session.close()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"cannot load cache from {self.database_url}: {e}") from e

    def load_plugin_data(self) -> List[PluginRow]:
        try:
            session = self._session()
            try:
                return [
                    (m.namespace, m.feed_id, m.key, m.value)
                    for m in session.query(PluginDataModel).all()
                ]
            finally:
                session.close()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"cannot load plugin data from {self.database_url}: {e}") from e

    def replace_entries(self, entries: Iterable[CacheEntry]) -> int:
        """Replace the stored cache snapshot in one transaction. Returns the entry count."""
        models = [self._entry_to_model(e) for e in entries]
        self._replace(CacheEntryModel, models, "cache")
        logger.debug("cache_snapshot_written", entries=len(models))
        return len(models)

    def replace_plugin_data(self, rows: Iterable[PluginRow]) -> int:
        models = [
            PluginDataModel(namespace=ns, feed_id=feed_id, key=key, value=value)
            for ns, feed_id, key, value in rows
        ]
        self._replace(PluginDataModel, models, "plugin data")
        return len(models)

    def _replace(self, model_class, models: list, what: str) -> None:
        try:
            session = self._session()
            try:
                session.query(model_class).delete()
                session.add_all(models)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
            finally:
                session.close()
        except (SQLAlchemyError, OSError) as e:
            raise CacheIOError(f"cannot save {what} to {self.database_url}: {e}") from e

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @staticmethod
    def _entry_to_model(entry: CacheEntry) -> CacheEntryModel:
        return CacheEntryModel(
            feed_id=entry.key.feed_id,
            identity=entry.key.identity,
            first_seen=entry.first_seen.astimezone(timezone.utc).replace(tzinfo=None),
            ttl_seconds=int(entry.ttl.total_seconds()),
        )

    @staticmethod
    def _model_to_entry(model: CacheEntryModel) -> CacheEntry:
        return CacheEntry(
            key=CacheKey(model.feed_id, model.identity),
            first_seen=model.first_seen.replace(tzinfo=timezone.utc),
            ttl=timedelta(seconds=model.ttl_seconds),
        )

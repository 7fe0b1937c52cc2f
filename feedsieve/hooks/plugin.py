"""Plugin base class and plugin key/value data."""

import threading
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from .interfaces import HookRegistration, Stage

logger = structlog.get_logger()


class Plugin:
    """Base class for plugins.

    A plugin takes part in a stage by defining the method named after it
    (``pre_feed_download``, ``post_feed_process``, ...). ``name`` must be
    stable across runs: it orders plugins of equal priority and namespaces
    their data.
    """

    name: str = ""
    priority: int = 100

    @property
    def plugin_name(self) -> str:
        return self.name or type(self).__name__

    def registrations(self) -> List[HookRegistration]:
        registrations = []
        for stage in Stage:
            callback = getattr(self, stage.value, None)
            if callable(callback):
                registrations.append(HookRegistration(
                    stage=stage,
                    plugin_name=self.plugin_name,
                    callback=callback,
                    priority=self.priority,
                ))
        return registrations


class PluginDataStore:
    """Key/value data kept for plugins between runs, per (namespace, feed)."""

    def __init__(self):
        self._data: Dict[Tuple[str, str, str], str] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, feed_id: str, key: str, default: str = None) -> Optional[str]:
        with self._lock:
            return self._data.get((namespace, feed_id, key), default)

    def set(self, namespace: str, feed_id: str, key: str, value) -> None:
        with self._lock:
            self._data[(namespace, feed_id, key)] = str(value)

    def prune(self, live_feed_ids: Iterable[str]) -> int:
        live = set(live_feed_ids)
        with self._lock:
            orphans = [k for k in self._data if k[1] not in live]
            for k in orphans:
                del self._data[k]
        return len(orphans)

    def rows(self) -> List[Tuple[str, str, str, str]]:
        with self._lock:
            return [(ns, feed_id, key, value) for (ns, feed_id, key), value in self._data.items()]

    def load(self, storage) -> None:
        rows = storage.load_plugin_data()
        with self._lock:
            self._data = {(ns, feed_id, key): value for ns, feed_id, key, value in rows}
        logger.debug("plugin_data_loaded", rows=len(rows))

    def save(self, storage) -> int:
        return storage.replace_plugin_data(self.rows())

    def __len__(self) -> int:
        return len(self._data)

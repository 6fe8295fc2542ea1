"""Backend selection between the durable database and the volatile store.

The choice is made once in `start()`. After that it only changes on two
explicit signals: the engine reporting a lost connection (switch to
volatile) and a successful `try_reconnect()` (switch back to durable).
While volatile, reading `persistence.store` attempts that reconnect at most
once every `reconnect_interval` seconds, so traffic alone brings the
database back. Callers only ever see `persistence.store`.
"""

import threading
import time
from typing import Optional

from leadcaller.config import config
from leadcaller.database import create_db_engine, init_db, on_disconnect, ping
from leadcaller.logging_config import get_logger
from leadcaller.services import DurableStore
from leadcaller.store import Store, VolatileStore

logger = get_logger(__name__)


class Persistence:
    """Owns both stores and decides which one is live."""

    def __init__(self, durable: Optional[DurableStore] = None, volatile: Optional[VolatileStore] = None,
                 reconnect_interval: Optional[float] = None):
        self.durable = durable
        self.volatile = volatile or VolatileStore()
        self._store: Store = self.volatile
        self._lock = threading.Lock()
        self.reconnect_interval = (
            config.DB_RECONNECT_INTERVAL_SECONDS if reconnect_interval is None else reconnect_interval
        )
        self._last_reconnect_attempt = time.monotonic()

        if durable is not None:
            on_disconnect(durable.engine, self.handle_disconnect)

    @classmethod
    def from_config(cls) -> "Persistence":
        if not config.has_database():
            return cls()
        return cls(durable=DurableStore(create_db_engine(config.DATABASE_URL)))

    @property
    def store(self) -> Store:
        if self.durable is not None and self._store is not self.durable and self._reconnect_due():
            self.try_reconnect()
        return self._store

    @property
    def mode(self) -> str:
        return self._store.mode

    def start(self) -> str:
        """Select the backend for this process. Returns the chosen mode."""
        if self.durable is not None and ping(self.durable.engine):
            init_db(self.durable.engine)
            self._store = self.durable
            logger.info("persistence_mode_selected", mode=self.mode)
        else:
            reason = "database_unreachable" if self.durable is not None else "database_not_configured"
            self._enter_volatile(reason)
        return self.mode

    def handle_disconnect(self) -> None:
        """Engine reported a lost connection: serve from the volatile store."""
        if self._store is self.durable:
            self._enter_volatile("database_disconnected")

    def try_reconnect(self) -> bool:
        """Return to the durable store if it answers again. True when durable is live."""
        if self.durable is None:
            return False
        if self._store is self.durable:
            return True
        if not ping(self.durable.engine):
            return False

        with self._lock:
            init_db(self.durable.engine)
            self._store = self.durable
        logger.info("persistence_reconnected", mode=self.mode)
        return True

    def _reconnect_due(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if now - self._last_reconnect_attempt < self.reconnect_interval:
                return False
            self._last_reconnect_attempt = now
            return True

    def close(self) -> None:
        self.volatile.close()
        if self.durable is not None:
            self.durable.close()
        logger.info("persistence_closed")

    def _enter_volatile(self, reason: str) -> None:
        with self._lock:
            self._store = self.volatile
            self._last_reconnect_attempt = time.monotonic()
        logger.warning(
            "volatile_store_active",
            reason=reason,
            detail="Records are kept in process memory only and will be lost on restart",
        )

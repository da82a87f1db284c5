"""
PMS Kalender - Notificaciones en tiempo real
============================================

Canal pub/sub en proceso: los servicios publican "la tabla X del store Y
cambió" después de cada commit y las vistas suscritas vuelven a consultar.
Los callbacks no reciben datos; siempre hay que re-consultar.

Uso:
    handle = hub.subscribe("bookings", store_id, view.refresh_bookings)
    hub.publish("bookings", store_id)
    hub.unsubscribe(handle)
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

TABLES = ("rooms", "bookings", "room_daily_status", "room_deposits")


@dataclass(frozen=True)
class Subscription:
    id: int
    table: str
    store_id: Optional[str]


class RealtimeHub:
    """Thread-safe in-process change feed, one channel per (table, store)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._callbacks: Dict[Subscription, Callable[[], None]] = {}

    def subscribe(self, table: str, store_id: Optional[str], on_change: Callable[[], None]) -> Subscription:
        """Registra un callback. ``store_id=None`` escucha todos los stores."""
        if table not in TABLES:
            raise ValueError(f"Unknown realtime table: {table}")
        handle = Subscription(next(self._ids), table, store_id)
        with self._lock:
            self._callbacks[handle] = on_change
        logger.debug(f"subscribe {table} store={store_id} -> #{handle.id}")
        return handle

    def unsubscribe(self, handle: Subscription) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    def publish(self, table: str, store_id: Optional[str]) -> None:
        with self._lock:
            targets = [
                cb for sub, cb in self._callbacks.items()
                if sub.table == table and (sub.store_id is None or sub.store_id == store_id)
            ]
        for callback in targets:
            try:
                callback()
            except Exception:
                # Un suscriptor roto no debe cortar la notificación a los demás
                logger.exception(f"Realtime callback failed for {table}")

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)


class Debouncer:
    """
    Colapsa llamadas repetidas dentro de ``wait`` segundos en una sola.

    Cada ``trigger()`` reinicia el temporizador; ``func`` corre una vez cuando
    pasan ``wait`` segundos sin nuevos triggers.
    """

    def __init__(self, func: Callable[[], None], wait: float):
        self._func = func
        self._wait = wait
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._wait, self._func)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


# Hub compartido por servicios, API y Streamlit dentro del mismo proceso
hub = RealtimeHub()

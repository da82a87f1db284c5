"""
PMS Kalender - Preferencias de visualización
============================================

Tamaño, colores y tipografía del tablero, guardados en un almacén clave/valor
y notificados a los suscriptores cuando cambian. El último que escribe gana.
"""

import itertools
import json
import threading
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from database import SessionLocal, DisplaySetting
from errors import BackendError
from logging_config import get_logger
from schemas import DisplayPreferences

logger = get_logger(__name__)

PREFERENCES_KEY = "display_preferences"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKeyValueStore:
    """Almacén sobre la tabla display_settings."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            row = db.query(DisplaySetting).filter(DisplaySetting.key == key).first()
            return row.value if row else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            row = db.query(DisplaySetting).filter(DisplaySetting.key == key).first()
            if row is None:
                row = DisplaySetting(key=key)
                db.add(row)
            row.value = value
            row.updated_at = datetime.now()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error guardando preferencia {key}: {e}")
            raise BackendError("Gagal menyimpan pengaturan") from e
        finally:
            db.close()


class PreferencesService:
    """
    Preferencias compartidas por todas las vistas.

    Ejemplo:
        prefs = PreferencesService(SqlKeyValueStore())
        handle = prefs.subscribe(lambda p: print(p.display_size))
        prefs.update(display_size="large")
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscribers: Dict[int, Callable[[DisplayPreferences], None]] = {}

    def load(self) -> DisplayPreferences:
        raw = self._store.get(PREFERENCES_KEY)
        if not raw:
            return DisplayPreferences()
        try:
            return DisplayPreferences.model_validate(json.loads(raw))
        except ValueError as e:
            # Valores corruptos: se vuelve a los valores por defecto
            logger.error(f"Preferencias inválidas, usando valores por defecto: {e}")
            return DisplayPreferences()

    def update(self, **changes) -> DisplayPreferences:
        """Valida, guarda y notifica. Lanza pydantic.ValidationError si algún valor es inválido."""
        current = self.load()
        merged = current.model_dump()
        if "status_colors" in changes and changes["status_colors"] is not None:
            merged["status_colors"] = {**merged["status_colors"], **changes.pop("status_colors")}
        merged.update({k: v for k, v in changes.items() if v is not None})
        prefs = DisplayPreferences.model_validate(merged)

        self._store.set(PREFERENCES_KEY, prefs.model_dump_json())
        logger.info(f"Preferencias actualizadas: {sorted(changes)}")

        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(prefs)
            except Exception:
                logger.exception("Preferences subscriber failed")
        return prefs

    def subscribe(self, callback: Callable[[DisplayPreferences], None]) -> int:
        handle = next(self._ids)
        with self._lock:
            self._subscribers[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            self._subscribers.pop(handle, None)

"""
PMS Kalender - Logging
======================

Un logger raíz "pms_kalender" con tres salidas:
- consola (DEBUG en desarrollo, INFO en producción)
- pms_kalender.log rotativo con todo lo INFO o superior
- pms_kalender_errors.log rotativo solo con errores

Uso:
    from logging_config import get_logger
    logger = get_logger(__name__)
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import ENVIRONMENT, LOG_DIR

ROOT_LOGGER_NAME = "pms_kalender"

MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Librerías demasiado verbosas en DEBUG
NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "watchdog")


def _file_handler(log_dir: Path, filename: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(log_dir / filename, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(environment: str = ENVIRONMENT, log_dir: Path = LOG_DIR) -> logging.Logger:
    """
    Configura el logger raíz de la aplicación. Idempotente: si ya tiene
    handlers (Streamlit re-ejecuta el script) no agrega otros.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    log_dir.mkdir(parents=True, exist_ok=True)
    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO if environment == "production" else logging.DEBUG)
    console.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(_file_handler(log_dir, "pms_kalender.log", logging.INFO, formatter))
    root.addHandler(_file_handler(log_dir, "pms_kalender_errors.log", logging.ERROR, formatter))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging listo (env={environment}, dir={log_dir})")
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger hijo de pms_kalender, p. ej. get_logger("services") -> pms_kalender.services."""
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


setup_logging()

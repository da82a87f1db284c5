"""
PMS Kalender - Configuración
============================

Valores de configuración leídos del entorno (y de un archivo .env si existe).

Uso:
    from config import DATABASE_URL, BOOKING_LOOKBACK_DAYS
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Directorio base del proyecto
BASE_DIR = Path(os.path.abspath(os.path.dirname(__file__)))

# ==========================================
# ENTORNO
# ==========================================

ENVIRONMENT = os.getenv("PMS_ENV", "development")
LOG_DIR = Path(os.getenv("PMS_LOG_DIR", str(BASE_DIR / "logs")))

# ==========================================
# BASE DE DATOS
# ==========================================

DB_NAME = "pms.db"
DATABASE_URL = os.getenv("PMS_DATABASE_URL", f"sqlite:///{BASE_DIR / DB_NAME}")

# Store por defecto cuando la UI no tiene uno seleccionado
DEFAULT_STORE_ID = os.getenv("PMS_STORE_ID", "default")

# Admin inicial (opcional)
ADMIN_USERNAME = os.getenv("PMS_ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("PMS_ADMIN_PASSWORD", "")

# ==========================================
# CALENDARIO
# ==========================================

WINDOW_DAYS_BEFORE = 3
WINDOW_LENGTH = 14

# Margen hacia atrás para encontrar estadías largas que empezaron antes de la ventana
BOOKING_LOOKBACK_DAYS = int(os.getenv("PMS_BOOKING_LOOKBACK_DAYS", "60"))

# Colapsa ráfagas de notificaciones de bookings
BOOKING_REFRESH_DEBOUNCE_SECONDS = float(os.getenv("PMS_BOOKING_DEBOUNCE", "0.5"))

SEARCH_RESULT_LIMIT = 50

# ==========================================
# API
# ==========================================

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "PMS_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000",
    ).split(",")
    if origin.strip()
]

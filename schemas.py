"""
PMS Kalender - Esquemas de Validación (Pydantic)
================================================

Define los Data Transfer Objects (DTOs) que cruzan la frontera de acceso a
datos. Los registros de la base se convierten aquí en entidades tipadas, así
la UI nunca trabaja con campos opcionales sin validar.

Validaciones implementadas (mismas reglas que el formulario de reservas):
- customer_name: 1-100 caracteres
- phone: 8-20 caracteres (dígitos, +, -, espacios, paréntesis); opcional en OTA
- reference_no / bid: máximo 50 caracteres
- note: máximo 500 caracteres
- duration: entre 1 y 365 noches
- price: no negativo
"""

import re
import datetime as dt
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from transitions import BookingStatus


# ==========================================
# VALIDADORES COMPARTIDOS
# ==========================================

PHONE_PATTERN = re.compile(r'^[0-9+\-\s()]{8,20}$')
HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')


def validate_phone_format(phone: Optional[str]) -> str:
    """Valida el teléfono y lo devuelve sin espacios sobrantes."""
    cleaned = (phone or "").strip()
    if cleaned and not PHONE_PATTERN.match(cleaned):
        raise ValueError('Format nomor telepon tidak valid (8-20 karakter, hanya angka dan +/-/())')
    return cleaned


def validate_hex_color(value: str) -> str:
    if not HEX_COLOR_PATTERN.match(value):
        raise ValueError(f'Color inválido: {value}')
    return value.upper()


# ==========================================
# SCHEMAS DE USUARIO
# ==========================================

class UserDTO(BaseModel):
    """Usuario autenticado (solo lectura)."""
    id: str
    username: str
    name: str = ""
    email: Optional[str] = None
    role: str = "staff"
    permissions: List[str] = Field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return self.role == "admin" or permission in self.permissions

    @property
    def sees_all_rooms(self) -> bool:
        return self.role in ("admin", "leader")


# ==========================================
# SCHEMAS DE HABITACIÓN
# ==========================================

class RoomDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    name: str
    status: str = "Aktif"

    @property
    def is_blocked(self) -> bool:
        return self.status != "Aktif"


class RoomCreate(BaseModel):
    store_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    status: str = Field(default="Aktif", min_length=1)


class DailyStatusUpdate(BaseModel):
    """Cambio de estado diario (housekeeping)."""
    date: dt.date
    status: Literal["Kotor", "Aktif"]


# ==========================================
# SCHEMAS DE RESERVA
# ==========================================

class BookingCreate(BaseModel):
    """
    Schema para crear/editar reservas.

    Validaciones:
    - customer_name: obligatorio, se normaliza con strip()
    - phone: obligatorio salvo reservas OTA
    - duration: 1-365 noches
    - price: >= 0
    """
    store_id: str = Field(..., min_length=1, description="Store (partición)")
    room_id: str = Field(..., min_length=1, description="Habitación")
    date: dt.date = Field(..., description="Día de check-in")
    duration: int = Field(default=1, ge=1, le=365, description="Noches (1-365)")
    customer_name: str = Field(..., max_length=100, description="Nombre del huésped")
    phone: str = Field(default="", max_length=20, description="Teléfono")
    bid: Optional[str] = Field(default=None, max_length=50, description="Código de reserva")
    reference_no: str = Field(default="", max_length=50, description="Referencia")
    note: Optional[str] = Field(default=None, max_length=500)
    price: float = Field(default=0.0, ge=0, description="Precio total (>= 0)")
    payment_status: Literal["lunas", "belum_lunas"] = "belum_lunas"
    is_ota: bool = Field(default=False, description="Reserva de agencia online")

    @field_validator('customer_name')
    @classmethod
    def validate_customer_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('Nama pelanggan wajib diisi')
        return cleaned

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return validate_phone_format(v)

    @field_validator('reference_no', 'bid')
    @classmethod
    def strip_reference(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @model_validator(mode='after')
    def validate_phone_required(self):
        """El teléfono es obligatorio salvo para reservas OTA."""
        if not self.is_ota and not self.phone:
            raise ValueError('Nomor telepon wajib diisi')
        return self


class BookingDTO(BaseModel):
    """Reserva tal como la ve el calendario."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_id: str
    room_id: str
    bid: Optional[str] = None
    customer_name: str
    phone: Optional[str] = None
    reference_no: Optional[str] = None
    note: Optional[str] = None
    date: dt.date
    duration: int = 1
    price: float = 0.0
    payment_status: str = "belum_lunas"
    status: str = "BO"
    created_by: Optional[str] = None
    admin_name: Optional[str] = None
    room_name: Optional[str] = None

    @field_validator('duration', mode='before')
    @classmethod
    def default_duration(cls, v):
        return v or 1

    @field_validator('status', mode='before')
    @classmethod
    def default_status(cls, v):
        return v or "BO"


class StatusChangeRequest(BaseModel):
    status: BookingStatus


# ==========================================
# SCHEMAS DE DEPÓSITO
# ==========================================

class DepositCreate(BaseModel):
    """
    Depósito de garantía: dinero (uang) o documento de identidad (identitas).
    """
    deposit_type: Literal["uang", "identitas"] = "uang"
    amount: Optional[float] = Field(default=None, description="Monto (solo uang)")
    identity_type: Optional[str] = Field(default=None, description="KTP, SIM, Paspor...")
    identity_owner_name: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode='after')
    def validate_by_type(self):
        if self.deposit_type == "uang":
            if self.amount is None or self.amount <= 0:
                raise ValueError('Masukkan nominal deposit')
            self.identity_type = None
            self.identity_owner_name = None
        else:
            if not (self.identity_type or "").strip():
                raise ValueError('Pilih jenis identitas')
            self.amount = None
        return self


class DepositDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    store_id: str
    deposit_type: str
    amount: Optional[float] = None
    identity_type: Optional[str] = None
    identity_owner_name: Optional[str] = None
    notes: Optional[str] = None
    status: str = "active"
    created_by: Optional[str] = None

    @property
    def description(self) -> str:
        if self.deposit_type == "uang":
            return f"Rp {self.amount or 0:,.0f}".replace(",", ".")
        return f"Identitas ({self.identity_type})"


# ==========================================
# SCHEMAS DEL CALENDARIO
# ==========================================

class CalendarCellDTO(BaseModel):
    """
    Una celda visible de la grilla.

    kind == "START": tarjeta de reserva que ocupa ``colspan`` columnas.
    kind == "FREE": celda libre; door_status/action/label dicen qué mostrar.
    Las celdas CONTINUATION no se emiten (quedan dentro del colspan).
    """
    date: dt.date
    kind: Literal["START", "FREE"]
    colspan: int = 1
    synthetic: bool = False
    booking: Optional[BookingDTO] = None
    available_transitions: List[str] = Field(default_factory=list)
    door_status: Optional[str] = None
    action: Optional[str] = None
    label: Optional[str] = None
    ready_by: Optional[str] = None
    highlight: bool = False


class CalendarRowDTO(BaseModel):
    room: RoomDTO
    blocked: bool
    has_deposit: bool
    cells: List[CalendarCellDTO]


class PlacementConflictDTO(BaseModel):
    room_id: str
    date: dt.date
    booking_id: str
    shadowed_by: str


class CalendarGridDTO(BaseModel):
    selected_date: dt.date
    dates: List[dt.date]
    rows: List[CalendarRowDTO]
    conflicts: List[PlacementConflictDTO] = Field(default_factory=list)


class StatusChangeResultDTO(BaseModel):
    """Resultado de pedir un cambio de estado a través del deposit gate."""
    committed: bool
    booking: BookingDTO
    pending_step: Optional[str] = None
    active_deposits: List[DepositDTO] = Field(default_factory=list)


# ==========================================
# PREFERENCIAS DE VISUALIZACIÓN
# ==========================================

DEFAULT_STATUS_COLORS = {
    "BO": "#87CEEB",
    "CI": "#90EE90",
    "CO": "#6B7280",
    "BATAL": "#9CA3AF",
}


class DisplayPreferences(BaseModel):
    """Preferencias visuales del tablero (tamaño, colores, tipografía)."""
    display_size: Literal["compact", "normal", "large"] = "normal"
    booking_text_color: str = "#1F2937"
    ready_used_color: str = "#10B981"
    primary_color: str = "#8B5CF6"
    font_family: str = "inter"
    font_weight: Literal["normal", "medium", "semibold", "bold"] = "normal"
    status_colors: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_STATUS_COLORS))

    @field_validator('booking_text_color', 'ready_used_color', 'primary_color')
    @classmethod
    def validate_colors(cls, v: str) -> str:
        return validate_hex_color(v)

    @field_validator('status_colors')
    @classmethod
    def validate_status_colors(cls, v: Dict[str, str]) -> Dict[str, str]:
        merged = dict(DEFAULT_STATUS_COLORS)
        for status, color in v.items():
            if status not in DEFAULT_STATUS_COLORS:
                raise ValueError(f'Estado desconocido: {status}')
            merged[status] = validate_hex_color(color)
        return merged

"""
PMS Kalender API - Display Preferences Endpoints
================================================
"""

from typing import Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ValidationError as PydanticValidationError

from errors import ValidationError
from preferences import PreferencesService, SqlKeyValueStore
from schemas import DisplayPreferences

router = APIRouter()

# Un único servicio por proceso: los suscriptores viven aquí
preferences_service = PreferencesService(SqlKeyValueStore())


def get_preferences_service() -> PreferencesService:
    return preferences_service


class PreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    display_size: Optional[Literal["compact", "normal", "large"]] = None
    booking_text_color: Optional[str] = None
    ready_used_color: Optional[str] = None
    primary_color: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[Literal["normal", "medium", "semibold", "bold"]] = None
    status_colors: Optional[Dict[str, str]] = None


@router.get("", response_model=DisplayPreferences, summary="Get Display Preferences")
def get_preferences(service: PreferencesService = Depends(get_preferences_service)):
    return service.load()


@router.put("", response_model=DisplayPreferences, summary="Update Display Preferences")
def update_preferences(data: PreferencesUpdate, service: PreferencesService = Depends(get_preferences_service)):
    try:
        return service.update(**data.model_dump(exclude_none=True))
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e

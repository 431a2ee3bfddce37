import logging
import math
from typing import Any

from fastapi import APIRouter, Depends

from ..errors import GatewayError, InvalidInput, UpstreamError
from ..schemas import PersonajeCreate
from ..storage import decode_image_data_url
from ..store import DataStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/personajes", tags=["personajes"])

DEFAULT_RATE = 1.0
DEFAULT_PITCH = 0.667


def parse_float(value: Any, default: float) -> float:
    """Lenient float parsing; missing, zero or garbage values use ``default``."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or not result:
        return default
    return result


@router.get("")
def list_personajes(store: DataStore = Depends(get_store)):
    try:
        personajes = store.list_characters()
    except Exception as exc:
        logger.exception("Listing characters failed")
        raise UpstreamError(str(exc))
    return {"success": True, "personajes": [p.model_dump(mode="json") for p in personajes]}


@router.post("")
def create_personaje(payload: PersonajeCreate, store: DataStore = Depends(get_store)):
    if not (payload.name and payload.name.strip()) or not (payload.voice and payload.voice.strip()):
        raise InvalidInput("Nombre y voz son requeridos")

    image = decode_image_data_url(payload.image_base64)
    fields = {
        "name": payload.name,
        "persona": payload.persona,
        "model_id": payload.model_id,
        "model_name": payload.model_name,
        "voice": payload.voice,
        "rate": parse_float(payload.rate, DEFAULT_RATE),
        "pitch": parse_float(payload.pitch, DEFAULT_PITCH),
    }
    try:
        personaje = store.insert_character(fields, image)
    except GatewayError:
        raise
    except Exception as exc:
        logger.exception("Creating character %s failed", payload.name)
        raise UpstreamError(str(exc))
    return {"success": True, "personaje": personaje.model_dump(mode="json")}


@router.delete("/{personaje_id}")
def delete_personaje(personaje_id: str, store: DataStore = Depends(get_store)):
    try:
        store.delete_character(personaje_id)
    except GatewayError:
        raise
    except Exception as exc:
        logger.exception("Deleting character %s failed", personaje_id)
        raise UpstreamError(str(exc))
    return {"success": True}

import logging

from fastapi import APIRouter, Depends

from ..config import mask_secret
from ..errors import GatewayError, InvalidInput, UpstreamError
from ..schemas import ModelCreate
from ..store import DataStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/models", tags=["models"])

LIST_FIELDS = {"id", "name", "url", "is_custom"}


@router.get("")
def list_models(store: DataStore = Depends(get_store)):
    try:
        models = store.list_models()
    except Exception as exc:
        logger.exception("Listing models failed")
        raise UpstreamError(str(exc))
    return {"success": True, "models": [m.model_dump(mode="json", include=LIST_FIELDS) for m in models]}


@router.post("")
def create_model(payload: ModelCreate, store: DataStore = Depends(get_store)):
    if not all(v and v.strip() for v in (payload.name, payload.url, payload.api_key)):
        raise InvalidInput("Faltan campos requeridos")
    try:
        model = store.insert_model(payload.name.strip(), payload.url.strip(), payload.api_key.strip())
    except Exception as exc:
        logger.exception("Inserting model failed")
        raise UpstreamError(str(exc))
    data = model.model_dump(mode="json")
    data["api_key"] = mask_secret(model.api_key)
    return {"success": True, "model": data}


@router.delete("/{model_id}")
def delete_model(model_id: str, store: DataStore = Depends(get_store)):
    try:
        store.delete_model(model_id)
    except GatewayError:
        raise
    except Exception as exc:
        logger.exception("Deleting model %s failed", model_id)
        raise UpstreamError(str(exc))
    return {"success": True}

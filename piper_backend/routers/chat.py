import logging

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..dispatcher import ChatDispatcher
from ..errors import GatewayError, UpstreamError
from ..schemas import ChatRequest, ChatResponse
from ..store import DataStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_dispatcher(
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ChatDispatcher:
    return ChatDispatcher(store, settings)


@router.post("", response_model=ChatResponse)
async def create_chat(payload: ChatRequest, dispatcher: ChatDispatcher = Depends(get_dispatcher)) -> ChatResponse:
    """Relay one message to the model's provider and return the plain-text reply."""
    try:
        reply = await dispatcher.dispatch(payload.model_id, payload.message, payload.system_prompt)
    except GatewayError:
        raise
    except Exception as exc:
        logger.exception("Chat dispatch failed for model %s", payload.model_id)
        raise UpstreamError(str(exc) or exc.__class__.__name__)
    return ChatResponse(response=reply)

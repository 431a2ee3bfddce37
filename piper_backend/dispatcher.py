"""Chat dispatch: model lookup, credential resolution and the provider call."""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from .config import ProviderKind, Settings, mask_secret
from .debug import get_debug_logger
from .errors import ConfigError, InvalidInput, NotFound, UpstreamError
from .providers import (
    GLOBAL_POLICY_TEXT,
    ProviderError,
    build_request,
    build_system_prompt,
    default_persona,
    detect_provider,
    normalize_response,
)
from .schemas import ModelConfig, RecordId
from .store import DataStore

logger = logging.getLogger(__name__)


def resolve_credential(
    model: ModelConfig, credentials: Dict[ProviderKind, Optional[str]]
) -> Optional[str]:
    """Stored key first, then the environment key for the detected provider.

    Providers without an environment key of their own (anthropic, generic
    OpenAI-compatible hosts) fall back to the OpenRouter key.
    """
    if model.api_key and model.api_key.strip():
        return model.api_key
    kind = detect_provider(model.url)
    return credentials.get(kind) or credentials.get(ProviderKind.OPENROUTER) or None


class ChatDispatcher:
    def __init__(
        self,
        store: DataStore,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.settings = settings
        self.transport = transport

    async def _load_model(self, model_id: RecordId) -> ModelConfig:
        try:
            model = await asyncio.wait_for(
                asyncio.to_thread(self.store.get_model, model_id),
                timeout=self.settings.db_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamError("Tiempo de espera agotado consultando el modelo")
        except Exception as exc:
            logger.exception("Model lookup failed for %s", model_id)
            raise UpstreamError(str(exc))
        if model is None:
            raise NotFound("Modelo no encontrado")
        return model

    async def dispatch(
        self,
        model_id: Optional[RecordId],
        message: Optional[str],
        system_prompt: Optional[str] = None,
    ) -> str:
        """Send one message to the model's provider and return the reply text."""
        if not message or not message.strip():
            raise InvalidInput("Mensaje requerido")
        if model_id is None or (isinstance(model_id, str) and not model_id.strip()):
            raise InvalidInput("Modelo requerido")

        model = await self._load_model(model_id)

        credential = resolve_credential(model, self.settings.credentials)
        if not credential:
            raise ConfigError("API Key no configurada")

        kind = detect_provider(model.url)
        prompt = build_system_prompt(GLOBAL_POLICY_TEXT, system_prompt, default_persona(kind))
        try:
            request = build_request(kind, model.url, credential, message, prompt)
        except httpx.InvalidURL as exc:
            raise UpstreamError(f"URL de modelo inválida: {exc}", provider=kind)

        debug = get_debug_logger()
        if debug.is_enabled("llm_requests"):
            masked = {
                k: (mask_secret(v) if k.lower() in ("authorization", "x-api-key") else v)
                for k, v in request.headers.items()
            }
            debug.debug_llm_requests(
                f"{kind.value} request: model={request.model_name}, headers={masked}, body={request.body}"
            )

        timeout = httpx.Timeout(self.settings.provider_timeout, connect=10.0)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                resp = await client.request(
                    request.method, request.url, headers=request.headers, json=request.body
                )
            try:
                payload = resp.json()
            except ValueError:
                payload = None
            debug.debug_llm_responses(f"{kind.value} response {resp.status_code}: {payload if payload is not None else resp.text}")
            return normalize_response(kind, resp.status_code, payload)
        except ProviderError as exc:
            logger.warning("Provider %s failed: %s", exc.kind.value, exc.message)
            raise UpstreamError(exc.message, provider=kind)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Transport error calling %s: %s", kind.value, exc)
            raise UpstreamError(str(exc) or exc.__class__.__name__, provider=kind)

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


RecordId = Union[int, str]


class ModelConfig(BaseModel):
    """One configured LLM endpoint."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: RecordId
    name: str
    url: str
    api_key: Optional[str] = None
    is_custom: bool = False
    created_at: Optional[datetime] = None


class ModelCreate(BaseModel):
    # All required, checked by the router so that a missing field is a 400
    name: Optional[str] = None
    url: Optional[str] = None
    api_key: Optional[str] = None


class Personaje(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: RecordId
    name: str
    persona: Optional[str] = None
    model_id: Optional[RecordId] = None
    model_name: Optional[str] = None
    voice: Optional[str] = None
    rate: float = 1.0
    pitch: float = 0.667
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class PersonajeCreate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    name: Optional[str] = None
    persona: Optional[str] = None
    model_id: Optional[RecordId] = None
    model_name: Optional[str] = None
    voice: Optional[str] = None
    rate: Optional[Any] = None
    pitch: Optional[Any] = None
    image_base64: Optional[str] = None


class ChatRequest(BaseModel):
    """Incoming chat message payload."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: Optional[RecordId] = None
    message: Optional[str] = None
    system_prompt: Optional[str] = None


class ChatResponse(BaseModel):
    success: bool = True
    response: str


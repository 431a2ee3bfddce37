import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text, Float, Boolean
from sqlalchemy.orm import declarative_base

# Define Base here to avoid circular imports
Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IAModel(Base):
    __tablename__ = "ia_models"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    url = Column(String(1000), nullable=False)
    api_key = Column(String(500), nullable=True)
    is_custom = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now, index=True)


class Personaje(Base):
    __tablename__ = "personajes"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    persona = Column(Text, nullable=True)
    model_id = Column(String, nullable=True)
    model_name = Column(String(255), nullable=True)
    voice = Column(String(255), nullable=False)
    rate = Column(Float, nullable=False, default=1.0)
    pitch = Column(Float, nullable=False, default=0.667)
    image_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=_now, index=True)

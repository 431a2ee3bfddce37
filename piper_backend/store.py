"""Data-access layer consumed by the routers and the chat dispatcher.

``DataStore`` is the contract; ``SqlStore`` keeps records in SQLAlchemy tables
and avatars on local disk, ``SupabaseStore`` (see ``supabase_store.py``) talks
to the managed backend.  ``get_store`` picks one from the settings.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from . import models
from .config import Settings, get_settings
from .debug import get_debug_logger
from .errors import InvalidInput, NotFound
from .schemas import ModelConfig, Personaje, RecordId
from .storage import avatar_file_name, delete_avatar, file_name_from_url, save_avatar

logger = logging.getLogger(__name__)

LAST_MODEL_MESSAGE = "No se puede eliminar el último modelo"


class DataStore(ABC):
    @abstractmethod
    def get_model(self, model_id: RecordId) -> Optional[ModelConfig]:
        ...

    @abstractmethod
    def list_models(self) -> List[ModelConfig]:
        """All models, oldest first."""

    @abstractmethod
    def insert_model(self, name: str, url: str, api_key: str) -> ModelConfig:
        ...

    @abstractmethod
    def count_models(self) -> int:
        ...

    @abstractmethod
    def delete_model(self, model_id: RecordId) -> None:
        """Delete any model, custom or not, unless it is the last one left."""

    @abstractmethod
    def list_characters(self) -> List[Personaje]:
        """All characters, newest first."""

    @abstractmethod
    def insert_character(self, fields: Dict[str, Any], image: Optional[bytes] = None) -> Personaje:
        ...

    @abstractmethod
    def delete_character(self, character_id: RecordId) -> None:
        ...


class SqlStore(DataStore):
    def __init__(
        self,
        session_factory: Callable[[], Session],
        image_dir: Optional[Path] = None,
        public_base_url: str = "",
    ):
        self.session_factory = session_factory
        self.image_dir = image_dir
        self.public_base_url = public_base_url.rstrip("/")
        # Serializes the last-model check with the delete that depends on it
        self._delete_lock = threading.Lock()

    def get_model(self, model_id: RecordId) -> Optional[ModelConfig]:
        with self.session_factory() as db:
            row = db.get(models.IAModel, str(model_id))
            return ModelConfig.model_validate(row) if row else None

    def list_models(self) -> List[ModelConfig]:
        with self.session_factory() as db:
            rows = db.query(models.IAModel).order_by(models.IAModel.created_at.asc()).all()
            return [ModelConfig.model_validate(r) for r in rows]

    def insert_model(self, name: str, url: str, api_key: str) -> ModelConfig:
        with self.session_factory() as db:
            row = models.IAModel(name=name, url=url, api_key=api_key, is_custom=True)
            db.add(row)
            db.commit()
            db.refresh(row)
            get_debug_logger().debug_db(f"Inserted model {row.id} ({name})")
            return ModelConfig.model_validate(row)

    def count_models(self) -> int:
        with self.session_factory() as db:
            return db.query(models.IAModel).count()

    def delete_model(self, model_id: RecordId) -> None:
        with self._delete_lock, self.session_factory() as db:
            row = db.get(models.IAModel, str(model_id))
            if row is None:
                raise NotFound("Modelo no encontrado")
            if db.query(models.IAModel).count() <= 1:
                raise InvalidInput(LAST_MODEL_MESSAGE)
            db.delete(row)
            db.commit()
            get_debug_logger().debug_db(f"Deleted model {model_id}")

    def list_characters(self) -> List[Personaje]:
        with self.session_factory() as db:
            rows = db.query(models.Personaje).order_by(models.Personaje.created_at.desc()).all()
            return [Personaje.model_validate(r) for r in rows]

    def insert_character(self, fields: Dict[str, Any], image: Optional[bytes] = None) -> Personaje:
        data = dict(fields)
        if data.get("model_id") is not None:
            data["model_id"] = str(data["model_id"])
        file_name = None
        if image:
            file_name = avatar_file_name(data["name"])
            save_avatar(file_name, image, self.image_dir)
            data["image_url"] = f"{self.public_base_url}/public/avatars/{file_name}"
            get_debug_logger().debug_files(f"Saved avatar {file_name} ({len(image)} bytes)")
        try:
            with self.session_factory() as db:
                row = models.Personaje(**data)
                db.add(row)
                db.commit()
                db.refresh(row)
                return Personaje.model_validate(row)
        except Exception:
            if file_name:
                delete_avatar(file_name, self.image_dir)
                logger.warning("Character insert failed, removed avatar %s", file_name)
            raise

    def delete_character(self, character_id: RecordId) -> None:
        with self.session_factory() as db:
            row = db.get(models.Personaje, str(character_id))
            if row is None:
                raise NotFound("Personaje no encontrado")
            if row.image_url:
                removed = delete_avatar(file_name_from_url(row.image_url), self.image_dir)
                get_debug_logger().debug_files(f"Avatar for {character_id} removed={removed}")
            db.delete(row)
            db.commit()


_store: Optional[DataStore] = None


def build_store(settings: Settings) -> DataStore:
    if settings.use_supabase:
        from .supabase_store import SupabaseStore

        logger.info("Using Supabase store at %s", settings.supabase_url)
        return SupabaseStore.from_settings(settings)

    from .database import SessionLocal, create_tables, seed_default_models

    logger.info("Supabase not configured, using local database")
    create_tables()
    with SessionLocal() as db:
        seed_default_models(db)
    return SqlStore(SessionLocal, public_base_url=settings.public_base_url)


def get_store() -> DataStore:
    """FastAPI dependency returning the process-wide store."""
    global _store
    if _store is None:
        _store = build_store(get_settings())
    return _store

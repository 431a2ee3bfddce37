import logging
import threading
from typing import Any, Dict, List, Optional

from supabase import Client, ClientOptions, create_client

from .config import Settings
from .debug import get_debug_logger
from .errors import InvalidInput, NotFound
from .schemas import ModelConfig, Personaje, RecordId
from .storage import AVATAR_BUCKET, AVATAR_CONTENT_TYPE, avatar_file_name, file_name_from_url
from .store import LAST_MODEL_MESSAGE, DataStore

logger = logging.getLogger(__name__)

MODELS_TABLE = "ia_models"
CHARACTERS_TABLE = "personajes"
# Keys never leave the backend through the listing
MODEL_LIST_COLUMNS = "id, name, url, is_custom, created_at"


class SupabaseStore(DataStore):
    def __init__(self, client: Client, bucket: str = AVATAR_BUCKET):
        self.client = client
        self.bucket = bucket
        # Only guards requests within this process; postgrest has no
        # conditional delete to make the check atomic on the server
        self._delete_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        options = ClientOptions(
            postgrest_client_timeout=settings.db_timeout,
            storage_client_timeout=int(settings.db_timeout),
        )
        client = create_client(settings.supabase_url, settings.supabase_key, options=options)
        logger.info("Supabase client initialized successfully.")
        return cls(client)

    def get_model(self, model_id: RecordId) -> Optional[ModelConfig]:
        res = self.client.table(MODELS_TABLE).select("*").eq("id", model_id).limit(1).execute()
        rows = res.data or []
        return ModelConfig.model_validate(rows[0]) if rows else None

    def list_models(self) -> List[ModelConfig]:
        res = (
            self.client.table(MODELS_TABLE)
            .select(MODEL_LIST_COLUMNS)
            .order("created_at", desc=False)
            .execute()
        )
        return [ModelConfig.model_validate(r) for r in res.data or []]

    def insert_model(self, name: str, url: str, api_key: str) -> ModelConfig:
        res = (
            self.client.table(MODELS_TABLE)
            .insert({"name": name, "url": url, "api_key": api_key, "is_custom": True})
            .execute()
        )
        row = res.data[0]
        get_debug_logger().debug_db(f"Inserted model {row.get('id')} ({name})")
        return ModelConfig.model_validate(row)

    def count_models(self) -> int:
        res = self.client.table(MODELS_TABLE).select("id", count="exact").execute()
        if res.count is not None:
            return res.count
        return len(res.data or [])

    def delete_model(self, model_id: RecordId) -> None:
        with self._delete_lock:
            if self.get_model(model_id) is None:
                raise NotFound("Modelo no encontrado")
            if self.count_models() <= 1:
                raise InvalidInput(LAST_MODEL_MESSAGE)
            self.client.table(MODELS_TABLE).delete().eq("id", model_id).execute()
        get_debug_logger().debug_db(f"Deleted model {model_id}")

    def list_characters(self) -> List[Personaje]:
        res = (
            self.client.table(CHARACTERS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        return [Personaje.model_validate(r) for r in res.data or []]

    def insert_character(self, fields: Dict[str, Any], image: Optional[bytes] = None) -> Personaje:
        data = dict(fields)
        data["image_url"] = None
        if image:
            file_name = avatar_file_name(data["name"])
            bucket = self.client.storage.from_(self.bucket)
            bucket.upload(
                file_name,
                image,
                {"content-type": AVATAR_CONTENT_TYPE, "upsert": "false"},
            )
            data["image_url"] = bucket.get_public_url(file_name)
            get_debug_logger().debug_files(f"Uploaded avatar {file_name} ({len(image)} bytes)")
        try:
            res = self.client.table(CHARACTERS_TABLE).insert(data).execute()
        except Exception:
            if image:
                self.client.storage.from_(self.bucket).remove([file_name])
                logger.warning("Character insert failed, removed avatar %s", file_name)
            raise
        return Personaje.model_validate(res.data[0])

    def delete_character(self, character_id: RecordId) -> None:
        res = (
            self.client.table(CHARACTERS_TABLE)
            .select("image_url")
            .eq("id", character_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            raise NotFound("Personaje no encontrado")
        image_url = rows[0].get("image_url")
        if image_url:
            self.client.storage.from_(self.bucket).remove([file_name_from_url(image_url)])
            get_debug_logger().debug_files(f"Removed avatar for {character_id}")
        self.client.table(CHARACTERS_TABLE).delete().eq("id", character_id).execute()

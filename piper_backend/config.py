#!/usr/bin/env python3
"""Piper Backend configuration - environment-backed with .env support"""

import os
from functools import lru_cache
from typing import Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()


# Provider enum
class ProviderKind(str, Enum):
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    GROQ = "groq"
    OPENROUTER = "openrouter"
    OPENAI = "openai"


DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost",
    "https://localhost",
    "http://localhost:8100",
    "http://localhost:5173",
    "capacitor://localhost",
    "ionic://localhost",
]


class Settings(BaseModel):
    # Managed database
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Local fallback store
    database_url: str = "sqlite:///" + os.path.join(os.path.dirname(os.path.abspath(__file__)), "app.db")
    public_base_url: str = "http://localhost:3000"

    # Provider credentials, only these three families come from the environment
    credentials: Dict[ProviderKind, Optional[str]] = Field(default_factory=dict)

    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    db_timeout: float = 15.0
    provider_timeout: float = 30.0
    max_body_bytes: int = 10 * 1024 * 1024
    port: int = 3000
    debug_categories: List[str] = Field(default_factory=list)

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_settings() -> Settings:
    """Build settings from the process environment."""
    origins = _split_csv(os.getenv("ALLOWED_ORIGINS"))
    data = {
        "supabase_url": os.getenv("SUPABASE_URL") or None,
        "supabase_key": os.getenv("SUPABASE_KEY") or None,
        "public_base_url": os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/"),
        "credentials": {
            ProviderKind.OPENROUTER: os.getenv("OPENROUTER_API_KEY") or None,
            ProviderKind.GROQ: os.getenv("GROQ_API_KEY") or None,
            ProviderKind.GEMINI: os.getenv("GEMINI_API_KEY") or None,
        },
        "db_timeout": float(os.getenv("DB_TIMEOUT_SECONDS", "15")),
        "provider_timeout": float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")),
        "max_body_bytes": int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024))),
        "port": int(os.getenv("PORT", "3000")),
        "debug_categories": _split_csv(os.getenv("PIPER_DEBUG")),
    }
    if os.getenv("DATABASE_URL"):
        data["database_url"] = os.getenv("DATABASE_URL")
    if origins:
        data["allowed_origins"] = origins
    return Settings(**data)


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read once at first use."""
    return load_settings()


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Mask sensitive values"""
    if not value:
        return None
    if len(value) <= 4:
        return "*" * len(value)
    return value[:2] + "*" * (len(value) - 4) + value[-2:]

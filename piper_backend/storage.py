from __future__ import annotations

from pathlib import Path
from typing import Optional
import base64
import binascii
import os
import re
import time

from .errors import InvalidInput

AVATAR_BUCKET = "personajes-avatars"
AVATAR_CONTENT_TYPE = "image/jpeg"
_WHITESPACE = re.compile(r"\s")


def public_dir() -> Path:
    here = Path(__file__).resolve().parent
    return (here / ".." / "public").resolve()


def avatars_dir() -> Path:
    d = public_dir() / "avatars"
    d.mkdir(parents=True, exist_ok=True)
    return d


def avatar_file_name(name: str) -> str:
    """``<epoch ms>_<name with whitespace as underscores>.jpg``"""
    return f"{int(time.time() * 1000)}_{_WHITESPACE.sub('_', name)}.jpg"


def file_name_from_url(url: str) -> str:
    return url.rstrip("/").split("/")[-1]


def decode_image_data_url(value: Optional[str]) -> Optional[bytes]:
    """Return image bytes for a ``data:image/...;base64,`` value, else None."""
    if not value or not value.startswith("data:image"):
        return None
    _, _, encoded = value.partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput(f"Imagen inválida: {exc}")


def save_avatar(file_name: str, data: bytes, directory: Optional[Path] = None) -> Path:
    d = directory or avatars_dir()
    d.mkdir(parents=True, exist_ok=True)
    p = d / file_name
    tmp = p.with_suffix(p.suffix + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, p)
    return p


def delete_avatar(file_name: str, directory: Optional[Path] = None) -> bool:
    p = (directory or avatars_dir()) / os.path.basename(file_name)
    if not p.exists():
        return False
    p.unlink()
    return True

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import BinaryIO


def _base_root() -> Path:
    env_root = os.getenv("WORKTRACKER_UPLOADS_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "uploads"


def ensure_upload_root(table: str) -> Path:
    """Ensure the upload folder for ``table`` exists and return it."""

    root = _base_root() / table
    root.mkdir(parents=True, exist_ok=True)
    return root


def save_upload(table: str, filename: str, source: BinaryIO) -> Path:
    """Persist an uploaded import file under the table's upload folder."""

    safe_name = Path(filename).name
    target = ensure_upload_root(table) / safe_name
    with target.open("wb") as buffer:
        shutil.copyfileobj(source, buffer)
    return target
